import numpy as np
import pytest

from config.validators import MaskRefinementConfig
from klick.blur import MaskRefinementPipeline


@pytest.fixture
def pipeline():
    return MaskRefinementPipeline(MaskRefinementConfig())


@pytest.fixture
def hard_mask():
    mask = np.zeros((200, 300), dtype=np.uint8)
    mask[50:150, 100:200] = 255
    return mask


class TestRefinementPlan:

    def test_feather_radius_grows_with_intensity(self, pipeline):
        radii = [
            pipeline.plan((1200, 1600), intensity).effective_feather_radius
            for intensity in np.linspace(0.0, 20.0, 41)
        ]

        assert all(later >= earlier for earlier, later in zip(radii, radii[1:]))
        assert radii[-1] > radii[0]

    def test_premium_above_threshold(self, pipeline):
        assert pipeline.plan((1000, 1000), 8.0).premium is False
        assert pipeline.plan((1000, 1000), 8.5).premium is True

    def test_second_feather_pass(self, pipeline):
        assert len(pipeline.plan((1000, 1000), 2.0).feather_radii) == 1
        assert len(pipeline.plan((1000, 1000), 7.0).feather_radii) == 2

    def test_scale_follows_mask_extent(self, pipeline):
        small = pipeline.plan((100, 100), 5.0)
        large = pipeline.plan((2000, 3000), 5.0)

        assert small.scale == pytest.approx(0.5)
        assert large.scale == pytest.approx(3.0)
        assert large.effective_feather_radius > small.effective_feather_radius

    def test_premium_disabled(self):
        config = MaskRefinementConfig(premium={'enabled': False})

        plan = MaskRefinementPipeline(config).plan((1000, 1000), 18.0)

        assert plan.premium is False
        assert plan.blend_radii == ()


class TestRefine:

    @pytest.mark.parametrize("intensity", [0.0, 3.0, 12.0, 20.0])
    def test_shape_dtype_and_range(self, pipeline, hard_mask, intensity):
        refined = pipeline.refine(hard_mask, intensity)

        assert refined.shape == hard_mask.shape
        assert refined.dtype == np.float32
        assert refined.min() >= 0.0
        assert refined.max() <= 1.0

    def test_subject_stays_bright_and_background_dark(self, pipeline, hard_mask):
        refined = pipeline.refine(hard_mask, 10.0)

        assert refined[100, 150] > 0.9
        assert refined[5, 5] < 0.1

    def test_edges_are_softened(self, pipeline, hard_mask):
        refined = pipeline.refine(hard_mask, 10.0)
        row = refined[100, 60:120]

        assert np.count_nonzero((row > 0.05) & (row < 0.95)) > 2

    def test_multi_channel_mask_keeps_shape(self, pipeline, hard_mask):
        mask = np.dstack([hard_mask] * 3)

        refined = pipeline.refine(mask, 5.0)

        assert refined.shape == mask.shape
        assert np.array_equal(refined[:, :, 0], refined[:, :, 2])

    def test_empty_mask_returned_unchanged(self, pipeline):
        empty = np.zeros((0, 0), dtype=np.float32)

        assert pipeline.refine(empty, 5.0) is empty
        assert pipeline.refine(None, 5.0) is None

    def test_failing_stage_keeps_previous_mask(self, pipeline, hard_mask):
        def broken(mask):
            raise ValueError("bad kernel")

        current = hard_mask.astype(np.float32) / 255.0

        assert pipeline._stage("broken", current, broken) is current
