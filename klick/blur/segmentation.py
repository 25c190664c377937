from typing import Optional, Protocol, Sequence, Tuple, runtime_checkable

import cv2
import numpy as np

from ..utils.exceptions import SegmentationError


@runtime_checkable
class SegmentationProvider(Protocol):
    """Person segmentation collaborator.

    ``generate_mask`` returns a single-channel mask (bright = subject) for
    the image, at any resolution, or None when no subject could be found.
    Providers may also define ``is_supported() -> bool``.
    """

    def generate_mask(self, image: np.ndarray) -> Optional[np.ndarray]:
        ...


def normalize_mask(mask: np.ndarray) -> np.ndarray:
    """Single-channel float32 mask in [0, 1]"""
    mask = np.asarray(mask)

    if mask.ndim == 3:
        if mask.shape[2] == 0:
            raise SegmentationError("mask has no channels", details={'shape': mask.shape})
        mask = mask[:, :, 0]
    if mask.ndim != 2:
        raise SegmentationError(
            "mask must be two dimensional",
            details={'shape': tuple(mask.shape)},
        )

    if mask.dtype == np.bool_:
        return mask.astype(np.float32)
    if np.issubdtype(mask.dtype, np.integer):
        return (mask.astype(np.float32) / float(np.iinfo(mask.dtype).max)).clip(0.0, 1.0)
    return np.clip(mask.astype(np.float32), 0.0, 1.0)


def align_mask_to_image(mask: np.ndarray, image_shape: Sequence[int]) -> np.ndarray:
    """Scale a provider mask to the image's pixel extent as float32 [0, 1]"""
    normalized = normalize_mask(mask)
    height, width = int(image_shape[0]), int(image_shape[1])

    if normalized.size == 0 or width == 0 or height == 0:
        raise SegmentationError(
            "cannot align an empty mask",
            details={'mask_shape': normalized.shape, 'image_shape': (height, width)},
        )

    if normalized.shape != (height, width):
        normalized = cv2.resize(normalized, (width, height), interpolation=cv2.INTER_LINEAR)
    return np.ascontiguousarray(normalized, dtype=np.float32)


def apply_subject_mask_highlight(
        image: np.ndarray,
        mask: np.ndarray,
        color: Tuple[int, int, int] = (255, 255, 255)
) -> np.ndarray:
    """Paint the subject in a flat color over the untouched background.

    Alpha (if present) is kept from the source image.
    """
    weights = align_mask_to_image(mask, image.shape)
    source = image.astype(np.float32)

    if source.ndim == 2:
        fill = np.float32(np.mean(color))
        blended = source * (1.0 - weights) + fill * weights
    else:
        color_channels = min(3, source.shape[2])
        fill = np.asarray(color[:color_channels], dtype=np.float32)
        blended = source.copy()
        w = weights[:, :, None]
        blended[:, :, :color_channels] = (
            source[:, :, :color_channels] * (1.0 - w) + fill * w
        )

    return restore_dtype(blended, image.dtype)


def restore_dtype(values: np.ndarray, dtype: np.dtype) -> np.ndarray:
    if np.issubdtype(dtype, np.integer):
        info = np.iinfo(dtype)
        return np.clip(np.rint(values), info.min, info.max).astype(dtype)
    return values.astype(dtype)
