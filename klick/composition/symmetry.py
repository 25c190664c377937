from typing import Optional

import cv2
import numpy as np

from config.settings import get_composition_config
from config.validators import SymmetryScorerConfig
from ..utils.exceptions import FrameSampleError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class SymmetryScorer:
    """Left/right mirror similarity of a frame sample in [0, 1].

    The sample is shrunk to fit a small square canvas (aspect preserved,
    centered on black), then every n-th row and every other column of the
    left half is compared against its mirrored pixel on the right.
    """

    def __init__(self, config: Optional[SymmetryScorerConfig] = None):
        self.config = config or get_composition_config().symmetry_scorer

    def score(self, frame_sample: Optional[np.ndarray]) -> float:
        """Symmetry of ``frame_sample``; 0.0 when there is nothing usable"""
        if frame_sample is None:
            return 0.0

        try:
            canvas = self._downsample(self._as_rgb(frame_sample))
        except FrameSampleError as e:
            logger.debug("symmetry_sample_rejected", reason=e.message, **e.details)
            return 0.0
        except cv2.error as e:
            logger.warning("symmetry_downsample_failed", error=str(e))
            return 0.0

        return self._vertical_symmetry(canvas)

    def _as_rgb(self, frame_sample: np.ndarray) -> np.ndarray:
        sample = np.asarray(frame_sample)

        if sample.size == 0 or sample.ndim not in (2, 3):
            raise FrameSampleError(
                "frame sample must be a non-empty 2D or 3D array",
                details={'shape': tuple(sample.shape)},
            )

        if sample.dtype != np.uint8:
            sample = np.clip(sample, 0, 255).astype(np.uint8)

        if sample.ndim == 2:
            return cv2.cvtColor(sample, cv2.COLOR_GRAY2RGB)

        channels = sample.shape[2]
        if channels == 1:
            return cv2.cvtColor(sample[:, :, 0], cv2.COLOR_GRAY2RGB)
        if channels < 3:
            raise FrameSampleError(
                "unsupported channel count",
                details={'channels': channels},
            )
        return np.ascontiguousarray(sample[:, :, :3])

    def _downsample(self, rgb: np.ndarray) -> np.ndarray:
        target = self.config.target_size
        h, w = rgb.shape[:2]

        scale = min(target / w, target / h)
        new_w = max(1, min(target, int(round(w * scale))))
        new_h = max(1, min(target, int(round(h * scale))))

        resized = cv2.resize(rgb, (new_w, new_h), interpolation=cv2.INTER_AREA)

        canvas = np.zeros((target, target, 3), dtype=np.uint8)
        top = (target - new_h) // 2
        left = (target - new_w) // 2
        canvas[top:top + new_h, left:left + new_w] = resized
        return canvas

    def _vertical_symmetry(self, canvas: np.ndarray) -> float:
        height, width = canvas.shape[:2]
        row_step = max(1, height // self.config.row_samples)

        luma = canvas.astype(np.float64).mean(axis=2)
        rows = luma[::row_step]

        left_cols = np.arange(0, width // 2, self.config.column_step)
        if left_cols.size == 0 or rows.shape[0] == 0:
            return 0.0
        right_cols = width - 1 - left_cols

        diff = np.abs(rows[:, left_cols] - rows[:, right_cols])
        similarity = 1.0 - float(diff.mean()) / 255.0

        return float(np.clip(similarity, 0.0, 1.0))
