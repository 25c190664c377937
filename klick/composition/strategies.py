import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Type, Union

import numpy as np

from config.settings import get_composition_config, get_settings
from config.validators import CompositionConfig
from .context_analyzer import ContextAnalyzer
from .models import (
    CompositionContext,
    CompositionFeedback,
    CompositionStatus,
    CompositionType,
    EdgeProximity,
    EnhancedCompositionResult,
    FrameSize,
    HeadroomAnalysis,
    Observation,
    OverlayElement,
    SubjectSize,
    SuggestionCategory,
)
from .overlays import CYAN, GREEN, ORANGE, PURPLE, YELLOW, OverlayBuilder
from .symmetry import SymmetryScorer
from ..utils.geometry_utils import (
    Point2D,
    calculate_rule_of_thirds_points,
    clamp,
    find_nearest_composition_point,
    nearest_line_distance,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

FALLBACK_SUGGESTION = "Find your spot"

STEP_BACK_ICON = "arrow.up.backward"
GET_CLOSER_ICON = "arrow.down.circle"
PERFECT_ICON = "checkmark.circle.fill"


@dataclass(frozen=True)
class Verdict:
    status: CompositionStatus
    suggestion: str
    category: SuggestionCategory


class CompositionStrategy(ABC):
    """One composition rule.

    ``evaluate`` never raises: degenerate input and internal failures yield
    a zero-score "needs adjustment" result.
    """

    composition_type: CompositionType
    icons: Dict[str, str] = {}

    def __init__(
            self,
            config: Optional[CompositionConfig] = None,
            context_analyzer: Optional[ContextAnalyzer] = None,
            symmetry_scorer: Optional[SymmetryScorer] = None,
            overlay_builder: Optional[OverlayBuilder] = None,
    ):
        self.config = config or get_composition_config()
        self.context_analyzer = context_analyzer or ContextAnalyzer(self.config.context)
        self.symmetry_scorer = symmetry_scorer or SymmetryScorer(self.config.symmetry_scorer)
        self.overlays = overlay_builder or OverlayBuilder(self.config.overlays)
        self._log_scores = get_settings().get_logging_config().features.composition_scores

    @property
    def name(self) -> str:
        return self.composition_type.display_name

    def evaluate(
            self,
            observation: Observation,
            frame_size: FrameSize,
            frame_sample: Optional[np.ndarray] = None
    ) -> EnhancedCompositionResult:
        if observation.is_degenerate or not _valid_frame(frame_size):
            logger.debug(
                "composition_input_degenerate",
                composition=self.composition_type.value,
                width=observation.width,
                height=observation.height,
                frame_size=frame_size,
            )
            return self._fallback_result(observation, frame_size)

        try:
            context = self.context_analyzer.analyze(observation, frame_size)
            score, verdict, overlays = self._evaluate(observation, frame_size, frame_sample, context)
        except Exception as e:
            logger.warning(
                "composition_evaluation_failed",
                composition=self.composition_type.value,
                exception=e,
            )
            return self._fallback_result(observation, frame_size)

        result = self._build_result(score, verdict, context, overlays)

        if self._log_scores:
            logger.debug(
                "composition_evaluated",
                composition=self.composition_type.value,
                score=round(result.score, 3),
                suggestion=result.suggestion,
            )

        return result

    @abstractmethod
    def _evaluate(
            self,
            observation: Observation,
            frame_size: FrameSize,
            frame_sample: Optional[np.ndarray],
            context: CompositionContext
    ) -> Tuple[float, Verdict, List[OverlayElement]]:
        """Return raw score, verdict and overlays for a valid observation"""

    def icon_for(self, suggestion: str, status: CompositionStatus) -> str:
        return self.icons.get(suggestion, status.icon)

    def _build_result(
            self,
            score: float,
            verdict: Verdict,
            context: CompositionContext,
            overlays: List[OverlayElement]
    ) -> EnhancedCompositionResult:
        if not math.isfinite(score):
            score = 0.0
        icon = self.icon_for(verdict.suggestion, verdict.status)
        return EnhancedCompositionResult(
            composition=self.composition_type,
            score=clamp(score),
            status=verdict.status,
            suggestion=verdict.suggestion,
            context=context,
            overlay_elements=tuple(overlays),
            feedback_icon=icon,
            feedback=CompositionFeedback.for_suggestion(verdict.suggestion, verdict.category, icon),
        )

    def _fallback_result(self, observation: Observation, frame_size: FrameSize) -> EnhancedCompositionResult:
        try:
            context = self.context_analyzer.analyze(observation, frame_size)
        except (ArithmeticError, ValueError, TypeError):
            context = _neutral_context()
        verdict = Verdict(
            CompositionStatus.NEEDS_ADJUSTMENT,
            FALLBACK_SUGGESTION,
            SuggestionCategory.DIRECTIONAL,
        )
        return self._build_result(0.0, verdict, context, [])


class RuleOfThirdsStrategy(CompositionStrategy):
    """Scores the subject's eye-level (or center) point against the thirds grid"""

    composition_type = CompositionType.RULE_OF_THIRDS
    icons = {
        "Step back": STEP_BACK_ICON,
        "Get closer": GET_CLOSER_ICON,
        "Subject cut off": "person.fill.viewfinder",
        "Nailed it!": PERFECT_ICON,
        "Looking good!": "hand.thumbsup.fill",
        "Almost there": "target",
        "Go lower-left": "arrow.down.left",
        "Go upper-left": "arrow.up.left",
        "Go lower-right": "arrow.down.right",
        "Go upper-right": "arrow.up.right",
    }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.rule = self.config.rule_of_thirds
        self.intersections = calculate_rule_of_thirds_points(self.rule.thirds)
        low, high = self.rule.thirds
        self.quadrant_names = {
            (low, low): "lower-left",
            (low, high): "upper-left",
            (high, low): "lower-right",
            (high, high): "upper-right",
        }

    def scoring_point(self, observation: Observation) -> Point2D:
        """Approximate eye level for portrait-like boxes, box center otherwise"""
        aspect = observation.width / observation.height
        if observation.area < self.rule.portrait_area_max and aspect < self.rule.portrait_aspect_max:
            eye_y = observation.max_y - observation.height * self.rule.eye_level_ratio
            return Point2D(observation.mid_x, eye_y)
        return Point2D(observation.mid_x, observation.mid_y)

    def _evaluate(self, observation, frame_size, frame_sample, context):
        rule = self.rule
        point = self.scoring_point(observation)

        multiplier = (
            rule.large_subject_multiplier
            if context.subject_size is SubjectSize.LARGE
            else rule.default_multiplier
        )
        intersection_tol = rule.intersection_tolerance * multiplier
        line_tol = rule.line_tolerance * multiplier

        nearest, distance = find_nearest_composition_point(point, self.intersections)
        intersection_score = self._falloff(distance, intersection_tol)

        vertical = self._falloff(nearest_line_distance(point.x, rule.thirds), line_tol)
        horizontal = self._falloff(nearest_line_distance(point.y, rule.thirds), line_tol)
        line_score = min(
            1.0,
            rule.vertical_line_weight * vertical + rule.horizontal_line_weight * horizontal
        )

        score = max(intersection_score, line_score * rule.line_score_weight)
        verdict = self._verdict(intersection_score, line_score, nearest, context)

        overlays = []
        if context.edge_proximity.too_close_to_edge:
            overlays.append(self.overlays.safety_zone(frame_size, YELLOW, 2.0))

        return score, verdict, overlays

    def _falloff(self, distance: float, tolerance: float) -> float:
        if distance > tolerance:
            return 0.0
        return (1.0 - distance / tolerance) ** self.rule.falloff_exponent

    def _checks_headroom(self, context: CompositionContext) -> bool:
        # distant subjects always leave lots of space above them
        return context.subject_size.rank >= SubjectSize(self.rule.headroom_check_min_size).rank

    def _verdict(
            self,
            intersection_score: float,
            line_score: float,
            nearest: Point2D,
            context: CompositionContext
    ) -> Verdict:
        rule = self.rule
        needs = CompositionStatus.NEEDS_ADJUSTMENT

        if context.edge_proximity.too_close_to_edge:
            return Verdict(needs, "Step back", SuggestionCategory.FRAMING)

        if self._checks_headroom(context):
            if context.headroom.excessive_headroom:
                return Verdict(needs, "Get closer", SuggestionCategory.FRAMING)
            if context.headroom.cutoff_limbs:
                return Verdict(needs, "Subject cut off", SuggestionCategory.CRITICAL)

        if intersection_score > rule.perfect_threshold:
            return Verdict(CompositionStatus.PERFECT, "Nailed it!", SuggestionCategory.PERFECT)
        if intersection_score > rule.good_threshold or line_score > rule.good_line_threshold:
            return Verdict(CompositionStatus.GOOD, "Looking good!", SuggestionCategory.GOOD)
        if line_score > rule.almost_line_threshold:
            return Verdict(CompositionStatus.GOOD, "Almost there", SuggestionCategory.ALMOST)

        quadrant = self.quadrant_names.get(nearest.to_tuple())
        if quadrant is None:
            return Verdict(needs, FALLBACK_SUGGESTION, SuggestionCategory.DIRECTIONAL)
        return Verdict(needs, f"Go {quadrant}", SuggestionCategory.DIRECTIONAL)


class CenterFramingStrategy(CompositionStrategy):
    """Rewards a subject centered in the frame, with a light symmetry bonus"""

    composition_type = CompositionType.CENTER_FRAMING
    icons = {
        "Step back": STEP_BACK_ICON,
        "Get closer": GET_CLOSER_ICON,
        "Perfect!": PERFECT_ICON,
        "Nice center!": "circle.circle.fill",
        "Go up-left": "arrow.up.left",
        "Go down-left": "arrow.down.left",
        "Go up-right": "arrow.up.right",
        "Go down-right": "arrow.down.right",
        "Shift left": "arrow.left",
        "Shift right": "arrow.right",
        "Shift up": "arrow.up",
        "Shift down": "arrow.down",
        "Almost there": "scope",
    }

    MAX_DISTANCE = math.sqrt(0.5)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.rule = self.config.center_framing
        self.center = Point2D.from_tuple(self.rule.center)

    def is_centered(self, observation: Observation) -> bool:
        return self._offset(observation)[2] <= self.rule.center_tolerance

    def _offset(self, observation: Observation) -> Tuple[float, float, float]:
        dx = observation.mid_x - self.center.x
        dy = observation.mid_y - self.center.y
        return dx, dy, math.hypot(dx, dy)

    def _evaluate(self, observation, frame_size, frame_sample, context):
        rule = self.rule
        dx, dy, distance = self._offset(observation)
        centered = distance <= rule.center_tolerance

        score = max(0.0, 1.0 - distance / self.MAX_DISTANCE)
        symmetry = 0.0
        if centered and frame_sample is not None:
            symmetry = self.symmetry_scorer.score(frame_sample)
            score = rule.base_weight * score + rule.symmetry_weight * symmetry

        verdict = self._verdict(centered, symmetry, dx, dy, context)

        overlays = []
        if centered and symmetry > rule.symmetry_overlay_threshold:
            overlays.append(self.overlays.symmetry_line(frame_size, GREEN))
        if context.edge_proximity.too_close_to_edge:
            overlays.append(self.overlays.safety_zone(frame_size, ORANGE, 2.0))

        return score, verdict, overlays

    def _verdict(
            self,
            centered: bool,
            symmetry: float,
            dx: float,
            dy: float,
            context: CompositionContext
    ) -> Verdict:
        needs = CompositionStatus.NEEDS_ADJUSTMENT

        if context.edge_proximity.safety_margin < self.rule.min_safety_margin:
            return Verdict(needs, "Step back", SuggestionCategory.FRAMING)

        if context.headroom.excessive_headroom and context.headroom.cutoff_limbs:
            return Verdict(needs, "Get closer", SuggestionCategory.FRAMING)

        if centered:
            if symmetry > self.rule.perfect_symmetry:
                return Verdict(CompositionStatus.PERFECT, "Perfect!", SuggestionCategory.PERFECT)
            return Verdict(CompositionStatus.GOOD, "Nice center!", SuggestionCategory.GOOD)

        return self._direction(dx, dy)

    def _direction(self, dx: float, dy: float) -> Verdict:
        """Guidance from the photographer's point of view"""
        deadband = self.rule.direction_deadband
        horizontal = "left" if dx > 0 else "right"
        vertical = "up" if dy > 0 else "down"
        needs = CompositionStatus.NEEDS_ADJUSTMENT

        if abs(dx) > deadband and abs(dy) > deadband:
            return Verdict(needs, f"Go {vertical}-{horizontal}", SuggestionCategory.DIRECTIONAL)
        if abs(dx) > deadband:
            return Verdict(needs, f"Shift {horizontal}", SuggestionCategory.DIRECTIONAL)
        if abs(dy) > deadband:
            return Verdict(needs, f"Shift {vertical}", SuggestionCategory.DIRECTIONAL)
        return Verdict(needs, "Almost there", SuggestionCategory.ALMOST)


class SymmetryStrategy(CompositionStrategy):
    """Mirror symmetry of the frame combined with horizontal centering"""

    composition_type = CompositionType.SYMMETRY
    icons = {
        "Step back": STEP_BACK_ICON,
        "So balanced!": PERFECT_ICON,
        "Well balanced": "checkmark.seal.fill",
        "Good balance": "equal.circle",
        "Shift right": "arrow.right",
        "Shift left": "arrow.left",
        "Find center": "plus.viewfinder",
    }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.rule = self.config.symmetry
        self.center = Point2D.from_tuple(self.rule.center)

    def balance(self, observation: Observation) -> str:
        if observation.mid_x < self.rule.left_weighted_below:
            return "left-weighted"
        if observation.mid_x > self.rule.right_weighted_above:
            return "right-weighted"
        return "balanced"

    def _evaluate(self, observation, frame_size, frame_sample, context):
        rule = self.rule
        distance = Point2D(observation.mid_x, observation.mid_y).distance_to(self.center)

        symmetry = self.symmetry_scorer.score(frame_sample)
        centering = max(0.0, 1.0 - distance * rule.centering_penalty)
        score = rule.symmetry_weight * symmetry + rule.centering_weight * centering

        verdict = self._verdict(symmetry, centering, self.balance(observation), context)

        overlays = []
        if context.edge_proximity.too_close_to_edge:
            overlays.append(self.overlays.safety_zone(frame_size, PURPLE, 1.0))
        if verdict.status in (CompositionStatus.PERFECT, CompositionStatus.GOOD):
            overlays.append(self.overlays.symmetry_line(frame_size, CYAN))

        return score, verdict, overlays

    def _verdict(
            self,
            symmetry: float,
            centering: float,
            balance: str,
            context: CompositionContext
    ) -> Verdict:
        rule = self.rule
        needs = CompositionStatus.NEEDS_ADJUSTMENT

        if context.edge_proximity.too_close_to_edge:
            return Verdict(needs, "Step back", SuggestionCategory.FRAMING)

        if symmetry > rule.perfect_symmetry and centering > rule.perfect_centering:
            return Verdict(CompositionStatus.PERFECT, "So balanced!", SuggestionCategory.PERFECT)

        if symmetry > rule.good_symmetry:
            if balance == "balanced":
                return Verdict(CompositionStatus.GOOD, "Well balanced", SuggestionCategory.GOOD)
            return Verdict(CompositionStatus.GOOD, "Good balance", SuggestionCategory.ALMOST)

        if balance == "left-weighted":
            return Verdict(needs, "Shift right", SuggestionCategory.DIRECTIONAL)
        if balance == "right-weighted":
            return Verdict(needs, "Shift left", SuggestionCategory.DIRECTIONAL)
        return Verdict(needs, "Find center", SuggestionCategory.DIRECTIONAL)


_STRATEGIES: Dict[CompositionType, Type[CompositionStrategy]] = {
    CompositionType.RULE_OF_THIRDS: RuleOfThirdsStrategy,
    CompositionType.CENTER_FRAMING: CenterFramingStrategy,
    CompositionType.SYMMETRY: SymmetryStrategy,
}


def create_strategy(
        composition_type: Union[CompositionType, str],
        config: Optional[CompositionConfig] = None,
        **kwargs
) -> CompositionStrategy:
    """Build the strategy for a composition type (enum or its string value)"""
    composition_type = CompositionType(composition_type)
    return _STRATEGIES[composition_type](config, **kwargs)


def _valid_frame(frame_size: FrameSize) -> bool:
    try:
        width, height = frame_size
        return width > 0 and height > 0
    except (TypeError, ValueError):
        return False


def _neutral_context() -> CompositionContext:
    return CompositionContext(
        subject_size=SubjectSize.SMALL,
        subject_offset_x=0.0,
        subject_offset_y=0.0,
        multiple_subjects=False,
        edge_proximity=EdgeProximity(False, (), 0.0),
        headroom=HeadroomAnalysis(False, False, False),
    )
