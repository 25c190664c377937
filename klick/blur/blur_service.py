import asyncio
from typing import Optional, Tuple

import cv2
import numpy as np

from config.settings import get_blur_config
from config.validators import BlurConfig
from .compositor import BlurCompositor
from .fingerprint import image_fingerprint
from .mask_refinement import MaskRefinementPipeline
from .segmentation import (
    SegmentationProvider,
    align_mask_to_image,
    apply_subject_mask_highlight,
)
from ..cache.cache_layer import BlurCacheLayer, CacheStats
from ..cache.session_manager import EditingSession, SessionManager
from ..utils.exceptions import BlurError, SegmentationError
from ..utils.geometry_utils import aspect_fit_size
from ..utils.logger import PerformanceTimer, get_logger, log_performance
from ..utils.threading_utils import ResourceMonitor, ThreadPoolManager, get_thread_manager

logger = get_logger(__name__)


class BackgroundBlurService:
    """Portrait-style background blur over a pluggable segmentation provider.

    Every failure degrades to returning the original image. Masks and
    composited results are cached per image fingerprint; cache misses
    regenerate transparently.
    """

    def __init__(
            self,
            segmentation_provider: SegmentationProvider,
            cache: Optional[BlurCacheLayer] = None,
            session_manager: Optional[SessionManager] = None,
            refiner: Optional[MaskRefinementPipeline] = None,
            compositor: Optional[BlurCompositor] = None,
            config: Optional[BlurConfig] = None,
            thread_manager: Optional[ThreadPoolManager] = None,
    ):
        self.segmentation_provider = segmentation_provider
        self.config = config or get_blur_config()
        self.cache = cache or BlurCacheLayer()
        self.session_manager = session_manager or SessionManager(self.cache)
        self.refiner = refiner or MaskRefinementPipeline()
        self.compositor = compositor or BlurCompositor(self.config)
        self._thread_manager = thread_manager

        logger.info(
            "background_blur_service_initialized",
            provider=type(segmentation_provider).__name__,
            max_intensity=self.config.max_intensity,
        )

    @property
    def thread_manager(self) -> ThreadPoolManager:
        if self._thread_manager is None:
            self._thread_manager = get_thread_manager()
        return self._thread_manager

    def is_segmentation_supported(self) -> bool:
        is_supported = getattr(self.segmentation_provider, "is_supported", None)
        if is_supported is None:
            return True
        try:
            return bool(is_supported())
        except Exception as e:
            logger.warning("segmentation_support_check_failed", exception=e)
            return False

    # =========================================================================
    # Rendering
    # =========================================================================

    def apply_background_blur(
            self,
            image: np.ndarray,
            blur_intensity: float,
            use_cache: bool = True,
            scale: float = 1.0
    ) -> np.ndarray:
        """
        Blur everything but the subject.

        Args:
            image: HxW or HxWxC uint8/float image
            blur_intensity: gaussian sigma, 0 returns ``image`` itself
            use_cache: read and populate the mask and result caches
            scale: display scale factor, part of the image identity

        Returns:
            The blurred image, or the original image when segmentation fails.
            Cached results are shared and read-only.
        """
        if not (blur_intensity > 0) or image.size == 0:
            return image

        image_id = image_fingerprint(image, scale)

        if use_cache:
            cached = self.cache.get_result(image_id, blur_intensity)
            if cached is not None:
                return cached

        with PerformanceTimer(logger, "apply_background_blur"):
            mask = self._mask_for(image, image_id, use_cache)
            if mask is None:
                return image

            result = self._render(image, mask, blur_intensity)
            if result is image:
                return image

        if use_cache:
            self._cache_result(image_id, blur_intensity, result)
        return result

    def generate_blur_preview(
            self,
            image: np.ndarray,
            blur_intensity: float,
            preview_size: Optional[Tuple[int, int]] = None,
            scale: float = 1.0
    ) -> np.ndarray:
        """Reduced-size blur for slider feedback.

        The image is fitted into ``preview_size`` (width, height) with its
        aspect ratio kept. The full image's mask is reused when cached and
        scaled down to the preview before refinement.
        """
        if image.size == 0:
            return image

        preview_size = tuple(preview_size or self.config.default_preview_size)
        height, width = image.shape[:2]
        target_w, target_h = aspect_fit_size(width, height, *preview_size)
        preview = cv2.resize(image, (target_w, target_h), interpolation=cv2.INTER_AREA)
        if preview.ndim == 2 and image.ndim == 3:
            preview = preview[:, :, None]

        if not (blur_intensity > 0):
            return preview

        image_id = image_fingerprint(image, scale)

        cached = self.cache.get_result(image_id, blur_intensity, preview_size)
        if cached is not None:
            return cached

        mask = self._mask_for(image, image_id, use_cache=True)
        if mask is None:
            return preview

        # refine at preview extent so the plan scales to the preview
        preview_mask = align_mask_to_image(mask, preview.shape)
        result = self._render(preview, preview_mask, blur_intensity)
        if result is not preview:
            self._cache_result(image_id, blur_intensity, result, preview_size)
        return result

    def apply_subject_masking(
            self,
            image: np.ndarray,
            use_cache: bool = True,
            scale: float = 1.0
    ) -> np.ndarray:
        """Subject painted white over the untouched background"""
        if image.size == 0:
            return image

        mask = self._mask_for(image, image_fingerprint(image, scale), use_cache)
        if mask is None:
            return image

        try:
            return apply_subject_mask_highlight(image, mask, self.config.subject_highlight_color)
        except (SegmentationError, cv2.error) as e:
            logger.warning("subject_masking_failed", exception=e)
            return image

    # =========================================================================
    # Async front ends
    # =========================================================================

    async def apply_background_blur_async(
            self,
            image: np.ndarray,
            blur_intensity: float,
            use_cache: bool = True,
            scale: float = 1.0
    ) -> np.ndarray:
        return await self.thread_manager.run_blur_task(
            self.apply_background_blur, image, blur_intensity, use_cache, scale
        )

    async def generate_blur_preview_async(
            self,
            image: np.ndarray,
            blur_intensity: float,
            preview_size: Optional[Tuple[int, int]] = None,
            scale: float = 1.0
    ) -> np.ndarray:
        return await self.thread_manager.run_blur_task(
            self.generate_blur_preview, image, blur_intensity, preview_size, scale
        )

    @log_performance("preload_segmentation")
    async def preload_segmentation(self, image: np.ndarray, scale: float = 1.0) -> bool:
        """Warm the mask cache for an image about to be edited"""
        if image.size == 0:
            return False

        image_id = image_fingerprint(image, scale)
        if self.cache.get_mask(image_id) is not None:
            return True

        try:
            mask = await self.thread_manager.run_blur_task(self._mask_for, image, image_id, True)
        except asyncio.TimeoutError:
            logger.warning("segmentation_preload_timeout", image_id=image_id)
            return False
        return mask is not None

    # =========================================================================
    # Cache and session control
    # =========================================================================

    def clear_all_caches(self) -> None:
        self.cache.clear_all()

    def clear_cache_for_image(self, image: np.ndarray, scale: float = 1.0) -> int:
        return self.cache.clear_for_image(image_fingerprint(image, scale))

    def start_session(self, image: np.ndarray, scale: float = 1.0) -> EditingSession:
        return self.session_manager.start_session(image_fingerprint(image, scale))

    def end_session(self, clear_all: bool = True) -> None:
        self.session_manager.end_session(clear_all)

    def check_session_expiry(self) -> bool:
        return self.session_manager.check_expiry()

    def get_cache_stats(self) -> CacheStats:
        return self.cache.get_stats()

    def handle_memory_pressure(self) -> None:
        self.cache.handle_memory_pressure()

    def check_memory_pressure(self, monitor: Optional[ResourceMonitor] = None) -> bool:
        """Clear caches if system memory is under pressure; True when cleared"""
        monitor = monitor or ResourceMonitor(self.cache.config.memory_pressure.threshold_percent)
        if monitor.is_memory_pressure():
            self.handle_memory_pressure()
            return True
        return False

    # =========================================================================
    # Internals
    # =========================================================================

    def _mask_for(self, image: np.ndarray, image_id: str, use_cache: bool) -> Optional[np.ndarray]:
        """Aligned float32 mask for ``image`` or None when segmentation fails"""
        if use_cache:
            cached = self.cache.get_mask(image_id)
            if cached is not None:
                return cached

        try:
            raw = self.segmentation_provider.generate_mask(image)
            if raw is None:
                raise SegmentationError("no subject found", details={'image_id': image_id})
            mask = align_mask_to_image(raw, image.shape)
        except SegmentationError as e:
            logger.info("segmentation_unavailable", image_id=image_id, reason=e.message)
            return None
        except Exception as e:
            logger.warning("segmentation_failed", image_id=image_id, exception=e)
            return None

        mask.setflags(write=False)
        if use_cache:
            self.cache.store_mask(image_id, mask, self.session_manager.current_session_id)
        return mask

    def _render(self, image: np.ndarray, mask: np.ndarray, blur_intensity: float) -> np.ndarray:
        try:
            refined = self.refiner.refine(mask, blur_intensity)
            return self.compositor.composite(image, refined, blur_intensity)
        except (BlurError, cv2.error) as e:
            logger.warning("background_blur_failed", exception=e)
            return image

    def _cache_result(
            self,
            image_id: str,
            blur_intensity: float,
            result: np.ndarray,
            preview_size: Optional[Tuple[int, int]] = None
    ) -> None:
        result.setflags(write=False)
        self.cache.store_result(
            image_id,
            blur_intensity,
            result,
            preview_size,
            self.session_manager.current_session_id,
        )
