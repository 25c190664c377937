import math
from typing import Optional

import cv2
import numpy as np

from config.settings import get_blur_config
from config.validators import BlurConfig
from .segmentation import align_mask_to_image, restore_dtype
from ..utils.exceptions import CompositingError, SegmentationError


class BlurCompositor:
    """Blends a sharp subject over a gaussian-blurred copy of the image"""

    def __init__(self, config: Optional[BlurConfig] = None):
        self.config = config or get_blur_config()

    def composite(
            self,
            image: np.ndarray,
            refined_mask: np.ndarray,
            blur_intensity: float
    ) -> np.ndarray:
        """
        Keep the subject (bright mask) sharp and blur the background.

        Args:
            image: HxW or HxWxC source image
            refined_mask: blend weights, bright = subject
            blur_intensity: gaussian sigma in pixels, capped at max_intensity

        Returns:
            Image with the input's shape and dtype; the very same object when
            there is nothing to do.

        Raises:
            CompositingError: If blurring or blending fails
        """
        if not (blur_intensity > 0) or image.size == 0:
            return image

        try:
            weights = align_mask_to_image(refined_mask, image.shape)
        except SegmentationError as e:
            raise CompositingError(
                "mask cannot be aligned to the image",
                details=e.details,
                original_error=e,
            ) from e

        sigma = min(float(blur_intensity), self.config.max_intensity)
        source = image.astype(np.float32)
        try:
            blurred = self.blur(source, sigma)
        except cv2.error as e:
            raise CompositingError(
                "background blur failed",
                details={'shape': image.shape, 'intensity': blur_intensity},
                original_error=e,
            ) from e

        if source.ndim == 3:
            weights = weights[:, :, None]
        blended = source * weights + blurred * (1.0 - weights)

        return restore_dtype(blended, image.dtype)

    def blur(self, source: np.ndarray, sigma: float) -> np.ndarray:
        """Full-image gaussian blur with edges extended first so borders do not darken"""
        height, width = source.shape[:2]
        pad = int(math.ceil(self.config.edge_extend_sigmas * sigma))

        extended = cv2.copyMakeBorder(source, pad, pad, pad, pad, cv2.BORDER_REPLICATE)
        blurred = cv2.GaussianBlur(extended, (0, 0), sigmaX=sigma, sigmaY=sigma)
        blurred = blurred[pad:pad + height, pad:pad + width]

        # cv2 drops a trailing singleton channel
        return blurred.reshape(source.shape)
