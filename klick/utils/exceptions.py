from typing import Optional, Any, Dict


class KlickError(Exception):
    """Base exception for all Klick core errors"""

    def __init__(
            self,
            message,
            error_code: Optional[str] = None,
            details: Optional[Dict[str, Any]] = None,
            original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.original_error = original_error
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the exception into a dictionary."""
        return {
            'error_type': self.__class__.__name__,
            'error_code': self.error_code,
            'message': self.message,
            'details': self.details,
            'original_error': str(self.original_error) if self.original_error else None
        }


class CompositionError(KlickError):
    """Composition scoring related errors."""
    pass


class FrameSampleError(CompositionError):
    """Unusable frame sample handed to the symmetry scorer."""
    pass


class BlurError(KlickError):
    """Base class for background blur errors."""
    pass


class SegmentationError(BlurError):
    """Person segmentation collaborator failed or returned nothing."""
    pass


class MaskRefinementError(BlurError):
    """A mask refinement stage failed."""
    pass


class CompositingError(BlurError):
    """Blurring or blending the background failed."""
    pass


class CacheError(KlickError):
    """Mask and result cache errors."""
    pass


class SessionError(CacheError):
    """Editing session lifecycle errors."""
    pass
