"""Soft-edge refinement of person segmentation masks.

Turns a hard provider mask into a feathered blend weight so the sharp
subject fades into the blurred background without a visible cutout line.
Low intensities run the standard chain (open, dilate, feather, contrast,
gamma); high intensities swap feathering for a multi-radius blend and an
S-curve remap.
"""
import math
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

import cv2
import numpy as np

from config.settings import get_refinement_config
from config.validators import MaskRefinementConfig
from .segmentation import normalize_mask
from ..utils.exceptions import MaskRefinementError
from ..utils.geometry_utils import clamp
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RefinementPlan:
    """Every parameter the pipeline will use for one mask extent and intensity"""
    scale: float
    normalized_intensity: float
    premium: bool
    open_radius: float
    expand_radius: float
    feather_radii: Tuple[float, ...]
    blend_radii: Tuple[float, ...]
    contrast: float
    brightness: float
    gamma: float

    @property
    def effective_feather_radius(self) -> float:
        """Overall softening radius of the edge.

        Sequential gaussian passes combine as the root of summed squares;
        the premium blend softens by the weighted mean of its radii.
        """
        if self.premium:
            return float(sum(self.blend_radii))
        return math.sqrt(sum(r * r for r in self.feather_radii))


def _structuring_element(radius: float) -> np.ndarray:
    k = max(1, int(round(radius)))
    return cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (2 * k + 1, 2 * k + 1))


def _gaussian(mask: np.ndarray, sigma: float) -> np.ndarray:
    if sigma <= 0:
        return mask
    return cv2.GaussianBlur(mask, (0, 0), sigmaX=sigma, sigmaY=sigma,
                            borderType=cv2.BORDER_REPLICATE)


class MaskRefinementPipeline:

    def __init__(self, config: Optional[MaskRefinementConfig] = None):
        self.config = config or get_refinement_config()

    def plan(self, extent: Sequence[int], blur_intensity: float) -> RefinementPlan:
        """Parameters for a mask of ``extent`` = (height, width)"""
        cfg = self.config
        height, width = int(extent[0]), int(extent[1])

        n = clamp(blur_intensity / cfg.max_intensity) if math.isfinite(blur_intensity) else 0.0
        scale = max(max(width, height) / cfg.reference_dimension, cfg.min_scale)

        premium = cfg.premium.enabled and blur_intensity > cfg.premium.intensity_threshold

        feather_radii: Tuple[float, ...] = ()
        blend_radii: Tuple[float, ...] = ()
        if premium:
            blend_radii = tuple(
                weight * radius * scale * (1.0 + n)
                for radius, weight in zip(cfg.premium.radii, cfg.premium.weights)
            )
        else:
            first = (cfg.feather_base + cfg.feather_intensity * n) * scale
            feather_radii = (first,)
            if n > cfg.second_pass_threshold:
                second = (
                    cfg.second_pass_base
                    + cfg.second_pass_intensity * (n - cfg.second_pass_threshold)
                ) * scale
                feather_radii = (first, second)

        return RefinementPlan(
            scale=scale,
            normalized_intensity=n,
            premium=premium,
            open_radius=cfg.open_radius * scale,
            expand_radius=(cfg.expand_base + cfg.expand_intensity * n) * scale,
            feather_radii=feather_radii,
            blend_radii=blend_radii,
            contrast=cfg.contrast_base + cfg.contrast_intensity * n,
            brightness=cfg.brightness_base + cfg.brightness_intensity * n,
            gamma=cfg.gamma_base - cfg.gamma_intensity * n,
        )

    def refine(self, mask: np.ndarray, blur_intensity: float) -> np.ndarray:
        """Refined float32 mask with the input's shape; empty masks come back untouched"""
        if mask is None or np.asarray(mask).size == 0:
            return mask

        original_shape = np.shape(mask)
        current = normalize_mask(mask)
        plan = self.plan(current.shape, blur_intensity)

        current = self._stage("open", current, lambda m: cv2.morphologyEx(
            m, cv2.MORPH_OPEN, _structuring_element(plan.open_radius)))
        current = self._stage("expand", current, lambda m: cv2.dilate(
            m, _structuring_element(plan.expand_radius)))

        if plan.premium:
            current = self._stage("multi_radius_blend", current,
                                  lambda m: self._blend(m, plan))
            current = self._stage("s_curve", current, self._s_curve)
        else:
            for index, radius in enumerate(plan.feather_radii):
                current = self._stage(f"feather_{index + 1}", current,
                                      lambda m, r=radius: _gaussian(m, r))
            current = self._stage("contrast", current, lambda m: np.clip(
                (m - 0.5) * plan.contrast + 0.5 + plan.brightness, 0.0, 1.0))
            current = self._stage("gamma", current,
                                  lambda m: np.power(m, plan.gamma))

        refined = np.clip(current, 0.0, 1.0).astype(np.float32)
        if len(original_shape) == 3:
            refined = np.repeat(refined[:, :, None], original_shape[2], axis=2)
        return refined

    def _blend(self, mask: np.ndarray, plan: RefinementPlan) -> np.ndarray:
        cfg = self.config.premium
        blended = np.zeros_like(mask)
        for radius, weight in zip(cfg.radii, cfg.weights):
            blended += weight * _gaussian(mask, radius * plan.scale * (1.0 + plan.normalized_intensity))
        return blended

    def _s_curve(self, mask: np.ndarray) -> np.ndarray:
        xs, ys = zip(*self.config.premium.s_curve)
        return np.interp(mask, xs, ys).astype(np.float32)

    def _stage(
            self,
            name: str,
            mask: np.ndarray,
            operation: Callable[[np.ndarray], np.ndarray]
    ) -> np.ndarray:
        """Run one stage; a failing stage leaves the previous mask in place"""
        try:
            result = operation(mask)
            if result is None or result.shape != mask.shape:
                raise MaskRefinementError(
                    f"stage {name} changed the mask shape",
                    details={'stage': name},
                )
            return result.astype(np.float32, copy=False)
        except (cv2.error, ValueError, MaskRefinementError) as e:
            logger.warning("mask_refinement_stage_failed", stage=name, error=str(e))
            return mask
