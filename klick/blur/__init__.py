from .fingerprint import image_fingerprint
from .segmentation import SegmentationProvider, align_mask_to_image, apply_subject_mask_highlight
from .mask_refinement import MaskRefinementPipeline, RefinementPlan
from .compositor import BlurCompositor
from .blur_service import BackgroundBlurService

__all__ = [
    'image_fingerprint',
    'SegmentationProvider',
    'align_mask_to_image',
    'apply_subject_mask_highlight',
    'MaskRefinementPipeline',
    'RefinementPlan',
    'BlurCompositor',
    'BackgroundBlurService',
]
