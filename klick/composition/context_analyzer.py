from typing import Optional

from config.settings import get_composition_config
from config.validators import ContextConfig
from .models import (
    CompositionContext,
    EdgeProximity,
    FrameSize,
    HeadroomAnalysis,
    Observation,
    SubjectSize,
)
from ..utils.geometry_utils import clamp


class ContextAnalyzer:
    """Derives subject size, offsets, edge proximity and headroom from a box.

    Pure and stateless apart from its thresholds; safe to share between
    threads.
    """

    def __init__(self, config: Optional[ContextConfig] = None):
        self.config = config or get_composition_config().context

    def analyze(self, observation: Observation, frame_size: FrameSize) -> CompositionContext:
        cfg = self.config

        area = observation.area
        if area < cfg.small_area_threshold:
            subject_size = SubjectSize.SMALL
        elif area < cfg.medium_area_threshold:
            subject_size = SubjectSize.MEDIUM
        else:
            subject_size = SubjectSize.LARGE

        offset_x = clamp((observation.mid_x - 0.5) * 2.0, -1.0, 1.0)
        offset_y = clamp((observation.mid_y - 0.5) * 2.0, -1.0, 1.0)

        return CompositionContext(
            subject_size=subject_size,
            subject_offset_x=offset_x,
            subject_offset_y=offset_y,
            multiple_subjects=False,
            edge_proximity=self.edge_proximity(observation),
            headroom=self.headroom(observation),
        )

    def edge_proximity(self, observation: Observation) -> EdgeProximity:
        margin = self.config.edge_margin

        # bottom-left origin: small min_y touches the bottom edge
        checks = (
            ("left", observation.min_x < margin),
            ("right", observation.max_x > 1.0 - margin),
            ("bottom", observation.min_y < margin),
            ("top", observation.max_y > 1.0 - margin),
        )
        dangerous = tuple(side for side, hit in checks if hit)

        safety_margin = min(
            observation.min_x,
            1.0 - observation.max_x,
            observation.min_y,
            1.0 - observation.max_y,
        )

        return EdgeProximity(
            too_close_to_edge=bool(dangerous),
            dangerous_edges=dangerous,
            safety_margin=clamp(safety_margin),
        )

    def headroom(self, observation: Observation) -> HeadroomAnalysis:
        cfg = self.config
        headroom_ratio = 1.0 - observation.max_y
        cutoff = observation.min_y < cfg.cutoff_margin

        return HeadroomAnalysis(
            excessive_headroom=headroom_ratio > cfg.excessive_headroom,
            cutoff_limbs=cutoff,
            portrait_optimal=(
                cfg.portrait_headroom_min < headroom_ratio < cfg.portrait_headroom_max
                and not cutoff
            ),
        )


def analyze_context(
        observation: Observation,
        frame_size: FrameSize,
        config: Optional[ContextConfig] = None
) -> CompositionContext:
    """Analyze a single observation with the given (or configured) thresholds"""
    return ContextAnalyzer(config).analyze(observation, frame_size)
