from .models import (
    Observation,
    SubjectSize,
    EdgeProximity,
    HeadroomAnalysis,
    CompositionContext,
    CompositionType,
    CompositionStatus,
    SuggestionCategory,
    CompositionFeedback,
    OverlayType,
    PathCommand,
    OverlayElement,
    EnhancedCompositionResult,
)
from .context_analyzer import ContextAnalyzer, analyze_context
from .symmetry import SymmetryScorer
from .overlays import OverlayBuilder
from .strategies import (
    CompositionStrategy,
    RuleOfThirdsStrategy,
    CenterFramingStrategy,
    SymmetryStrategy,
    create_strategy,
)
from .composition_manager import CompositionManager, LiveCompositionEvaluator

__all__ = [
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
    'ContextAnalyzer',
    'analyze_context',
    'SymmetryScorer',
    'OverlayBuilder',
    'CompositionStrategy',
    'RuleOfThirdsStrategy',
    'CenterFramingStrategy',
    'SymmetryStrategy',
    'create_strategy',
    'CompositionManager',
    'LiveCompositionEvaluator',
]
