import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

# (width, height) of the camera frame in pixels
FrameSize = Tuple[float, float]


@dataclass(frozen=True)
class Observation:
    """Detected subject bounding box in normalized frame coordinates.

    Origin is the bottom-left corner of the frame and y grows upward, so
    ``max_y`` is the top edge of the subject.
    """
    x: float
    y: float
    width: float
    height: float

    @property
    def min_x(self) -> float:
        return self.x

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def min_y(self) -> float:
        return self.y

    @property
    def max_y(self) -> float:
        return self.y + self.height

    @property
    def mid_x(self) -> float:
        return self.x + self.width / 2.0

    @property
    def mid_y(self) -> float:
        return self.y + self.height / 2.0

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def is_degenerate(self) -> bool:
        return not (self.width > 0 and self.height > 0)


class SubjectSize(Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"

    @property
    def rank(self) -> int:
        return _SIZE_RANK[self]


_SIZE_RANK = {SubjectSize.SMALL: 0, SubjectSize.MEDIUM: 1, SubjectSize.LARGE: 2}


@dataclass(frozen=True)
class EdgeProximity:
    too_close_to_edge: bool
    dangerous_edges: Tuple[str, ...]
    safety_margin: float


@dataclass(frozen=True)
class HeadroomAnalysis:
    excessive_headroom: bool
    cutoff_limbs: bool
    portrait_optimal: bool


@dataclass(frozen=True)
class CompositionContext:
    """Subject and scene metrics derived from one observation"""
    subject_size: SubjectSize
    subject_offset_x: float
    subject_offset_y: float
    multiple_subjects: bool
    edge_proximity: EdgeProximity
    headroom: HeadroomAnalysis


class CompositionType(Enum):
    RULE_OF_THIRDS = "rule_of_thirds"
    CENTER_FRAMING = "center_framing"
    SYMMETRY = "symmetry"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    CompositionType.RULE_OF_THIRDS: "Rule of Thirds",
    CompositionType.CENTER_FRAMING: "Center Framing",
    CompositionType.SYMMETRY: "Symmetry",
}


class CompositionStatus(Enum):
    PERFECT = "Perfect"
    GOOD = "Good"
    NEEDS_ADJUSTMENT = "Needs Adjustment"

    @property
    def icon(self) -> str:
        return _STATUS_ICONS[self]


_STATUS_ICONS = {
    CompositionStatus.PERFECT: "star.fill",
    CompositionStatus.GOOD: "hand.thumbsup.fill",
    CompositionStatus.NEEDS_ADJUSTMENT: "arrow.trianglehead.2.clockwise",
}


class SuggestionCategory(Enum):
    """Kind of advice; each maps to one feedback level (1 = best)"""
    PERFECT = 1
    GOOD = 2
    ALMOST = 3
    DIRECTIONAL = 4
    FRAMING = 5
    CRITICAL = 6

    @property
    def level(self) -> int:
        return self.value


PERFECT_COLOR = "#38b000"
DEFAULT_COLOR = "#ffffff"


@dataclass(frozen=True)
class CompositionFeedback:
    """Structured feedback consumed by the UI"""
    label: str
    suggestion: str
    composition_level: int
    color: str

    @classmethod
    def for_suggestion(
            cls,
            suggestion: str,
            category: SuggestionCategory,
            icon: str
    ) -> 'CompositionFeedback':
        color = PERFECT_COLOR if category is SuggestionCategory.PERFECT else DEFAULT_COLOR
        return cls(
            label=icon,
            suggestion=suggestion,
            composition_level=category.level,
            color=color,
        )


class OverlayType(Enum):
    GRID = "grid"
    CENTER_CROSSHAIR = "center_crosshair"
    SYMMETRY_LINE = "symmetry_line"
    GUIDE_LINE = "guide_line"
    SAFETY_ZONE = "safety_zone"


@dataclass(frozen=True)
class PathCommand:
    """One path primitive in frame pixel space.

    ``move`` and ``line`` carry a single point, ``rect`` carries origin,
    width and height as ``(x, y, w, h)``.
    """
    op: str
    values: Tuple[float, ...]


@dataclass(frozen=True)
class OverlayElement:
    type: OverlayType
    path: Tuple[PathCommand, ...]
    color: str
    opacity: float
    line_width: float


@dataclass(frozen=True)
class EnhancedCompositionResult:
    """Immutable outcome of evaluating one observation against one rule"""
    composition: CompositionType
    score: float
    status: CompositionStatus
    suggestion: str
    context: CompositionContext
    overlay_elements: Tuple[OverlayElement, ...] = field(default_factory=tuple)
    feedback_icon: str = ""
    feedback: Optional[CompositionFeedback] = None

    @property
    def is_well_composed(self) -> bool:
        return self.status in (CompositionStatus.PERFECT, CompositionStatus.GOOD)

    def to_json(self) -> Dict[str, Any]:
        return {
            "composition": self.composition.value,
            "score": round(self.score, 2),
            "status": self.status.value,
            "suggestion": self.suggestion,
            "feedbackIcon": self.feedback_icon,
            "context": {
                "subjectSize": self.context.subject_size.value,
                "subjectOffsetX": round(self.context.subject_offset_x, 2),
                "subjectOffsetY": round(self.context.subject_offset_y, 2),
                "multipleSubjects": self.context.multiple_subjects,
            },
        }

    def to_json_string(self) -> str:
        return json.dumps(self.to_json(), indent=2)


__all__: List[str] = [
    'FrameSize',
    'Observation',
    'SubjectSize',
    'EdgeProximity',
    'HeadroomAnalysis',
    'CompositionContext',
    'CompositionType',
    'CompositionStatus',
    'SuggestionCategory',
    'CompositionFeedback',
    'OverlayType',
    'PathCommand',
    'OverlayElement',
    'EnhancedCompositionResult',
]
