from unittest.mock import Mock

import numpy as np
import pytest

from config.validators import BlurConfig, CacheConfig, SessionConfig, StoreLimitsConfig
from klick.blur import BackgroundBlurService, MaskRefinementPipeline, image_fingerprint
from klick.cache import BlurCacheLayer, SessionManager
from klick.utils.threading_utils import ResourceMonitor

from conftest import CountingSegmentation


@pytest.fixture
def cache():
    return BlurCacheLayer(CacheConfig())


@pytest.fixture
def service(segmentation, cache, fake_clock, thread_manager):
    sessions = SessionManager(cache, SessionConfig(), fake_clock)
    return BackgroundBlurService(
        segmentation,
        cache=cache,
        session_manager=sessions,
        config=BlurConfig(),
        thread_manager=thread_manager,
    )


class TestApplyBackgroundBlur:

    def test_zero_intensity_is_identity(self, service, segmentation, portrait_image):
        assert service.apply_background_blur(portrait_image, 0.0) is portrait_image
        assert segmentation.calls == 0

    def test_empty_image_is_identity(self, service):
        empty = np.zeros((0, 0, 3), dtype=np.uint8)

        assert service.apply_background_blur(empty, 5.0) is empty

    def test_blurs_background(self, service, portrait_image):
        result = service.apply_background_blur(portrait_image, 8.0)

        assert result.shape == portrait_image.shape
        assert result.dtype == portrait_image.dtype
        assert result[:10].std() < portrait_image[:10].std()

    def test_cached_result_reused(self, service, segmentation, portrait_image):
        first = service.apply_background_blur(portrait_image, 6.0)
        second = service.apply_background_blur(portrait_image, 6.0)

        assert second is first
        assert segmentation.calls == 1
        assert first.flags.writeable is False

    def test_mask_reused_across_intensities(self, service, segmentation, portrait_image):
        service.apply_background_blur(portrait_image, 4.0)
        service.apply_background_blur(portrait_image, 12.0)

        assert segmentation.calls == 1

    def test_without_cache(self, service, segmentation, cache, portrait_image):
        service.apply_background_blur(portrait_image, 6.0, use_cache=False)
        service.apply_background_blur(portrait_image, 6.0, use_cache=False)

        assert segmentation.calls == 2
        assert cache.get_stats().result_count == 0

    def test_clear_for_image_forces_regeneration(self, service, segmentation, portrait_image):
        service.apply_background_blur(portrait_image, 6.0)
        removed = service.clear_cache_for_image(portrait_image)
        service.apply_background_blur(portrait_image, 6.0)

        assert removed == 2
        assert segmentation.calls == 2

    @pytest.mark.parametrize("provider", [
        CountingSegmentation(fail=True),
        CountingSegmentation(empty=True),
    ])
    def test_segmentation_failure_returns_original(self, cache, fake_clock, portrait_image, provider):
        service = BackgroundBlurService(
            provider,
            cache=cache,
            session_manager=SessionManager(cache, SessionConfig(), fake_clock),
            config=BlurConfig(),
        )

        assert service.apply_background_blur(portrait_image, 6.0) is portrait_image
        assert service.apply_subject_masking(portrait_image) is portrait_image
        assert cache.get_stats().mask_count == 0

    def test_mask_over_budget_still_renders(self, segmentation, fake_clock, portrait_image):
        config = CacheConfig(mask_cache=StoreLimitsConfig(count_limit=5, cost_limit_mb=0.05))
        cache = BlurCacheLayer(config)
        service = BackgroundBlurService(
            segmentation,
            cache=cache,
            session_manager=SessionManager(cache, SessionConfig(), fake_clock),
            config=BlurConfig(),
        )

        first = service.apply_background_blur(portrait_image, 4.0)
        service.apply_background_blur(portrait_image, 9.0)

        assert first is not portrait_image
        assert cache.get_stats().mask_count == 0
        assert cache.get_stats().result_count == 2
        assert segmentation.calls == 2

    def test_results_tagged_with_session(self, service, cache, portrait_image):
        session = service.start_session(portrait_image)
        service.apply_background_blur(portrait_image, 6.0)

        assert cache.session_of("result", f"{session.fingerprint}_6.00") == session.session_id


class TestPreview:

    def test_preview_fits_requested_size(self, service, portrait_image):
        preview = service.generate_blur_preview(portrait_image, 6.0, (80, 80))

        assert preview.shape == (60, 80, 3)

    def test_default_preview_size(self, service, portrait_image):
        preview = service.generate_blur_preview(portrait_image, 6.0)

        assert max(preview.shape[:2]) == 300

    def test_zero_intensity_preview_is_resized_original(self, service, segmentation, portrait_image):
        preview = service.generate_blur_preview(portrait_image, 0.0, (80, 80))

        assert preview.shape == (60, 80, 3)
        assert segmentation.calls == 0

    def test_preview_shares_full_image_mask(self, service, segmentation, cache, portrait_image):
        service.apply_background_blur(portrait_image, 6.0)
        service.generate_blur_preview(portrait_image, 6.0, (80, 80))
        service.generate_blur_preview(portrait_image, 6.0, (80, 80))

        assert segmentation.calls == 1
        assert cache.get_stats().result_count == 2

    def test_preview_refines_preview_sized_mask(self, segmentation, cache, fake_clock, thread_manager, portrait_image):
        refiner = Mock(wraps=MaskRefinementPipeline())
        service = BackgroundBlurService(
            segmentation,
            cache=cache,
            session_manager=SessionManager(cache, SessionConfig(), fake_clock),
            refiner=refiner,
            config=BlurConfig(),
            thread_manager=thread_manager,
        )

        preview = service.generate_blur_preview(portrait_image, 6.0, (80, 80))

        refined_mask = refiner.refine.call_args[0][0]
        assert refined_mask.shape == (60, 80)
        assert preview.shape == (60, 80, 3)
        assert cache.get_mask(image_fingerprint(portrait_image)).shape == (120, 160)


class TestSubjectMasking:

    def test_subject_painted_white(self, service, portrait_image):
        masked = service.apply_subject_masking(portrait_image)

        assert tuple(masked[60, 80]) == (255, 255, 255)
        assert np.array_equal(masked[2, 2], portrait_image[2, 2])


class TestCacheControl:

    def test_memory_pressure_clears_caches(self, service, portrait_image):
        service.apply_background_blur(portrait_image, 6.0)
        monitor = Mock(spec=ResourceMonitor)
        monitor.is_memory_pressure.return_value = True

        assert service.check_memory_pressure(monitor) is True
        assert service.get_cache_stats().result_count == 0

    def test_no_memory_pressure(self, service, portrait_image):
        service.apply_background_blur(portrait_image, 6.0)
        monitor = Mock(spec=ResourceMonitor)
        monitor.is_memory_pressure.return_value = False

        assert service.check_memory_pressure(monitor) is False
        assert service.get_cache_stats().result_count == 1

    def test_end_session_clears_everything(self, service, portrait_image):
        service.start_session(portrait_image)
        service.apply_background_blur(portrait_image, 6.0)

        service.end_session()

        stats = service.get_cache_stats()
        assert stats.mask_count == 0
        assert stats.result_count == 0

    def test_segmentation_support(self, service, segmentation):
        assert service.is_segmentation_supported() is True

        segmentation.is_supported = Mock(return_value=False)

        assert service.is_segmentation_supported() is False


class TestAsync:

    @pytest.mark.asyncio
    async def test_preload_segmentation(self, service, segmentation, portrait_image):
        assert await service.preload_segmentation(portrait_image) is True
        assert await service.preload_segmentation(portrait_image) is True

        assert segmentation.calls == 1

    @pytest.mark.asyncio
    async def test_async_blur_matches_sync(self, service, portrait_image):
        result = await service.apply_background_blur_async(portrait_image, 5.0)

        assert np.array_equal(result, service.apply_background_blur(portrait_image, 5.0))

    @pytest.mark.asyncio
    async def test_async_preview(self, service, portrait_image):
        preview = await service.generate_blur_preview_async(portrait_image, 5.0, (40, 40))

        assert preview.shape == (30, 40, 3)
