import pytest

from config.validators import ContextConfig
from klick.composition import ContextAnalyzer, Observation, SubjectSize, analyze_context

FRAME = (1920.0, 1080.0)


@pytest.fixture
def analyzer():
    return ContextAnalyzer(ContextConfig())


class TestSubjectSize:

    @pytest.mark.parametrize("side,expected", [
        (0.2, SubjectSize.SMALL),      # area 0.04
        (0.5, SubjectSize.MEDIUM),     # area 0.25
        (0.7, SubjectSize.LARGE),      # area 0.49
    ])
    def test_size_buckets(self, analyzer, side, expected):
        context = analyzer.analyze(Observation(0.1, 0.1, side, side), FRAME)

        assert context.subject_size is expected

    def test_threshold_boundary_is_exclusive(self, analyzer):
        # area exactly 0.15 is no longer small
        context = analyzer.analyze(Observation(0.2, 0.2, 0.5, 0.3), FRAME)

        assert context.subject_size is SubjectSize.MEDIUM


class TestOffsets:

    def test_centered_subject(self, analyzer):
        context = analyzer.analyze(Observation(0.4, 0.4, 0.2, 0.2), FRAME)

        assert context.subject_offset_x == pytest.approx(0.0)
        assert context.subject_offset_y == pytest.approx(0.0)
        assert context.multiple_subjects is False

    def test_offsets_follow_frame_axes(self, analyzer):
        # right of center and above center with y growing upward
        context = analyzer.analyze(Observation(0.6, 0.6, 0.2, 0.2), FRAME)

        assert context.subject_offset_x == pytest.approx(0.4)
        assert context.subject_offset_y == pytest.approx(0.4)


class TestEdgeProximity:

    def test_left_edge(self, analyzer):
        proximity = analyzer.edge_proximity(Observation(0.01, 0.3, 0.2, 0.3))

        assert "left" in proximity.dangerous_edges
        assert proximity.too_close_to_edge is True
        assert proximity.safety_margin == pytest.approx(0.01)

    def test_bottom_and_top_use_bottom_left_origin(self, analyzer):
        bottom = analyzer.edge_proximity(Observation(0.3, 0.0, 0.2, 0.3))
        top = analyzer.edge_proximity(Observation(0.3, 0.7, 0.2, 0.29))

        assert bottom.dangerous_edges == ("bottom",)
        assert top.dangerous_edges == ("top",)

    def test_edges_reported_in_fixed_order(self, analyzer):
        proximity = analyzer.edge_proximity(Observation(0.0, 0.0, 1.0, 1.0))

        assert proximity.dangerous_edges == ("left", "right", "bottom", "top")
        assert proximity.safety_margin == 0.0

    def test_margin_comparison_is_strict(self, analyzer):
        proximity = analyzer.edge_proximity(Observation(0.03, 0.3, 0.2, 0.3))

        assert proximity.dangerous_edges == ()
        assert proximity.too_close_to_edge is False


class TestHeadroom:

    def test_excessive_headroom(self, analyzer):
        headroom = analyzer.headroom(Observation(0.4, 0.1, 0.2, 0.3))

        assert headroom.excessive_headroom is True
        assert headroom.portrait_optimal is False

    def test_cutoff(self, analyzer):
        headroom = analyzer.headroom(Observation(0.4, 0.005, 0.2, 0.8))

        assert headroom.cutoff_limbs is True
        assert headroom.portrait_optimal is False

    def test_portrait_optimal(self, analyzer):
        headroom = analyzer.headroom(Observation(0.3, 0.2, 0.4, 0.6))

        assert headroom.excessive_headroom is False
        assert headroom.cutoff_limbs is False
        assert headroom.portrait_optimal is True


def test_analyze_context_uses_configured_thresholds():
    context = analyze_context(Observation(0.01, 0.3, 0.2, 0.3), FRAME)

    assert context.edge_proximity.dangerous_edges == ("left",)
