import json
from unittest.mock import Mock

import numpy as np
import pytest

from config.validators import CompositionConfig
from klick.composition import (
    CenterFramingStrategy,
    CompositionStatus,
    CompositionType,
    Observation,
    OverlayType,
    RuleOfThirdsStrategy,
    SuggestionCategory,
    SymmetryScorer,
    SymmetryStrategy,
    create_strategy,
)
from klick.composition.models import PERFECT_COLOR
from klick.composition.overlays import CYAN, GREEN, YELLOW

FRAME = (1920.0, 1080.0)


@pytest.fixture
def config():
    return CompositionConfig()


@pytest.fixture
def thirds(config):
    return RuleOfThirdsStrategy(config)


@pytest.fixture
def center(config):
    return CenterFramingStrategy(config)


@pytest.fixture
def symmetry(config):
    return SymmetryStrategy(config)


def _grid_observations():
    for x in np.linspace(0.0, 0.8, 5):
        for y in np.linspace(0.0, 0.8, 5):
            for size in (0.05, 0.2):
                yield Observation(float(x), float(y), size, size * 1.5)


class TestCommonContract:

    @pytest.mark.parametrize("composition_type", list(CompositionType))
    def test_scores_are_bounded(self, config, composition_type, symmetric_frame):
        strategy = create_strategy(composition_type, config)

        for observation in _grid_observations():
            for sample in (None, symmetric_frame):
                result = strategy.evaluate(observation, FRAME, sample)
                assert 0.0 <= result.score <= 1.0

    @pytest.mark.parametrize("composition_type", list(CompositionType))
    def test_evaluation_is_deterministic(self, config, composition_type, symmetric_frame):
        strategy = create_strategy(composition_type, config)
        observation = Observation(0.3, 0.25, 0.2, 0.4)

        first = strategy.evaluate(observation, FRAME, symmetric_frame)
        second = strategy.evaluate(observation, FRAME, symmetric_frame)

        assert first == second

    @pytest.mark.parametrize("composition_type", list(CompositionType))
    @pytest.mark.parametrize("observation,frame_size", [
        (Observation(0.4, 0.4, 0.0, 0.2), FRAME),
        (Observation(0.4, 0.4, 0.2, -0.1), FRAME),
        (Observation(0.4, 0.4, 0.2, 0.2), (0.0, 0.0)),
    ])
    def test_degenerate_input_scores_zero(self, config, composition_type, observation, frame_size):
        result = create_strategy(composition_type, config).evaluate(observation, frame_size)

        assert result.score == 0.0
        assert result.status is CompositionStatus.NEEDS_ADJUSTMENT
        assert result.suggestion == "Find your spot"
        assert result.feedback.composition_level == SuggestionCategory.DIRECTIONAL.level

    def test_internal_failure_falls_back(self, config):
        scorer = Mock(spec=SymmetryScorer)
        scorer.score.side_effect = RuntimeError("boom")
        strategy = SymmetryStrategy(config, symmetry_scorer=scorer)

        result = strategy.evaluate(Observation(0.45, 0.45, 0.1, 0.1), FRAME, np.zeros((4, 4, 3)))

        assert result.score == 0.0
        assert result.suggestion == "Find your spot"

    def test_create_strategy_accepts_string(self, config):
        assert isinstance(create_strategy("symmetry", config), SymmetryStrategy)
        with pytest.raises(ValueError):
            create_strategy("golden_ratio", config)

    def test_to_json(self, thirds):
        result = thirds.evaluate(Observation(0.3, 0.2, 0.15, 0.3), FRAME)

        payload = result.to_json()

        assert set(payload) == {"composition", "score", "status", "suggestion", "feedbackIcon", "context"}
        assert payload["composition"] == "rule_of_thirds"
        assert payload["score"] == round(result.score, 2)
        assert set(payload["context"]) == {
            "subjectSize", "subjectOffsetX", "subjectOffsetY", "multipleSubjects"
        }
        assert json.loads(result.to_json_string()) == payload


class TestRuleOfThirds:

    @pytest.mark.parametrize("eps", [0.005, 0.01, 0.02])
    def test_subject_on_intersection_is_perfect(self, thirds, eps):
        third = 1.0 / 3.0
        observation = Observation(third - eps, third - eps, 2 * eps, 2 * eps)

        result = thirds.evaluate(observation, FRAME)

        assert result.status is CompositionStatus.PERFECT
        assert result.score > 0.9
        assert result.suggestion == "Nailed it!"
        assert result.feedback.color == PERFECT_COLOR
        assert result.feedback.composition_level == 1
        assert result.feedback_icon == "checkmark.circle.fill"

    def test_portrait_box_scores_eye_level(self, thirds):
        observation = Observation(0.3, 0.2, 0.1, 0.4)

        point = thirds.scoring_point(observation)

        assert point.x == pytest.approx(0.35)
        assert point.y == pytest.approx(0.6 - 0.4 * 0.25)

    def test_wide_box_scores_center(self, thirds):
        point = thirds.scoring_point(Observation(0.1, 0.1, 0.6, 0.2))

        assert point.to_tuple() == pytest.approx((0.4, 0.2))

    def test_edge_subject_steps_back(self, thirds):
        result = thirds.evaluate(Observation(0.01, 0.3, 0.2, 0.3), FRAME)

        assert result.suggestion == "Step back"
        assert result.status is CompositionStatus.NEEDS_ADJUSTMENT
        assert result.feedback.composition_level == SuggestionCategory.FRAMING.level
        zones = [e for e in result.overlay_elements if e.type is OverlayType.SAFETY_ZONE]
        assert len(zones) == 1
        assert zones[0].color == YELLOW

    def test_medium_subject_with_headroom_gets_closer(self, thirds):
        result = thirds.evaluate(Observation(0.1, 0.05, 0.5, 0.5), FRAME)

        assert result.suggestion == "Get closer"
        assert result.feedback_icon == "arrow.down.circle"

    def test_small_subject_skips_headroom_check(self, thirds):
        # 0.6 of the frame above the subject but it is far away
        result = thirds.evaluate(Observation(0.31, 0.31, 0.04, 0.04), FRAME)

        assert result.suggestion != "Get closer"

    def test_directional_guidance(self, thirds):
        result = thirds.evaluate(Observation(0.46, 0.48, 0.04, 0.04), FRAME)

        assert result.status is CompositionStatus.NEEDS_ADJUSTMENT
        assert result.suggestion == "Go upper-left"
        assert result.feedback.composition_level == SuggestionCategory.DIRECTIONAL.level
        assert result.feedback_icon == "arrow.up.left"


class TestCenterFraming:

    def test_centered_box(self, center):
        result = center.evaluate(Observation(0.45, 0.45, 0.1, 0.1), FRAME)

        assert result.status in (CompositionStatus.PERFECT, CompositionStatus.GOOD)
        assert result.score > 0.8
        assert result.suggestion == "Nice center!"

    def test_centered_box_with_symmetric_frame_is_perfect(self, center, symmetric_frame):
        result = center.evaluate(Observation(0.45, 0.45, 0.1, 0.1), FRAME, symmetric_frame)

        assert result.status is CompositionStatus.PERFECT
        assert result.suggestion == "Perfect!"
        lines = [e for e in result.overlay_elements if e.type is OverlayType.SYMMETRY_LINE]
        assert len(lines) == 1
        assert lines[0].color == GREEN

    def test_center_tolerance(self, center):
        assert center.is_centered(Observation(0.51, 0.45, 0.1, 0.1))
        assert not center.is_centered(Observation(0.58, 0.45, 0.1, 0.1))

    def test_diagonal_guidance(self, center):
        result = center.evaluate(Observation(0.1, 0.1, 0.2, 0.2), FRAME)

        assert result.suggestion == "Go down-right"
        assert result.status is CompositionStatus.NEEDS_ADJUSTMENT

    def test_horizontal_guidance(self, center):
        result = center.evaluate(Observation(0.6, 0.4, 0.2, 0.2), FRAME)

        assert result.suggestion == "Shift left"
        assert result.feedback_icon == "arrow.left"

    def test_thin_margin_steps_back(self, center):
        result = center.evaluate(Observation(0.02, 0.3, 0.3, 0.3), FRAME)

        assert result.suggestion == "Step back"

    def test_score_falls_with_distance(self, center):
        near = center.evaluate(Observation(0.4, 0.4, 0.2, 0.2), FRAME).score
        far = center.evaluate(Observation(0.1, 0.4, 0.2, 0.2), FRAME).score

        assert near > far


class TestSymmetry:

    def test_symmetric_centered_frame(self, symmetry, symmetric_frame):
        result = symmetry.evaluate(Observation(0.45, 0.45, 0.1, 0.1), FRAME, symmetric_frame)

        assert result.status is CompositionStatus.PERFECT
        assert result.suggestion == "So balanced!"
        assert result.score == pytest.approx(1.0)
        lines = [e for e in result.overlay_elements if e.type is OverlayType.SYMMETRY_LINE]
        assert lines and lines[0].color == CYAN

    def test_missing_sample_degrades(self, symmetry):
        result = symmetry.evaluate(Observation(0.45, 0.45, 0.1, 0.1), FRAME)

        assert result.score == pytest.approx(0.2)
        assert result.suggestion == "Find center"
        assert not any(e.type is OverlayType.SYMMETRY_LINE for e in result.overlay_elements)

    def test_left_weighted_subject(self, symmetry):
        result = symmetry.evaluate(Observation(0.2, 0.4, 0.1, 0.1), FRAME)

        assert symmetry.balance(Observation(0.2, 0.4, 0.1, 0.1)) == "left-weighted"
        assert result.suggestion == "Shift right"

    def test_edge_subject(self, symmetry, symmetric_frame):
        result = symmetry.evaluate(Observation(0.3, 0.3, 0.4, 0.69), FRAME, symmetric_frame)

        assert result.suggestion == "Step back"
        assert any(e.type is OverlayType.SAFETY_ZONE for e in result.overlay_elements)
