import threading

import numpy as np
import pytest

from config.validators import CacheConfig, StoreLimitsConfig
from klick.cache import BlurCacheLayer, result_key
from klick.cache.cache_layer import MASK_STORE, RESULT_STORE

MB = 1024 * 1024


def _image(width=100, height=50):
    return np.zeros((height, width, 3), dtype=np.uint8)


@pytest.fixture
def layer():
    return BlurCacheLayer(CacheConfig())


class TestResultKeys:

    def test_full_and_preview_keys(self):
        assert result_key("abc", 5.0) == "abc_5.00"
        assert result_key("abc", 5.0, (300, 200)) == "abc_preview_300x200_5.00"


class TestBlurCacheLayer:

    def test_cost_estimate(self, layer):
        assert layer.cost_of(_image(100, 50)) == 100 * 50 * 4
        assert layer.cost_of(np.zeros((50, 100), dtype=np.float32)) == 100 * 50 * 4

    def test_store_and_lookup(self, layer):
        mask = np.ones((50, 100), dtype=np.float32)
        result = _image()

        assert layer.store_mask("img", mask, "s1") is True
        assert layer.store_result("img", 4.0, result, session_id="s1") is True

        assert layer.get_mask("img") is mask
        assert layer.get_result("img", 4.0) is result
        assert layer.get_result("img", 5.0) is None
        assert layer.get_result("img", 4.0, (300, 300)) is None
        assert layer.keys_for_image("img") == {(MASK_STORE, "img"), (RESULT_STORE, "img_4.00")}
        assert layer.session_of(RESULT_STORE, "img_4.00") == "s1"

    def test_clear_for_image_only_touches_that_image(self, layer):
        layer.store_mask("a", np.ones((10, 10)))
        layer.store_result("a", 3.0, _image())
        layer.store_result("a", 3.0, _image(), preview_size=(30, 30))
        layer.store_mask("b", np.ones((10, 10)))

        assert layer.clear_for_image("a") == 3

        assert layer.get_mask("a") is None
        assert layer.get_mask("b") is not None
        assert layer.tracked_images() == {"b"}

    def test_retain_only(self, layer):
        for image_id in ("a", "b", "c"):
            layer.store_result(image_id, 2.0, _image())

        assert layer.retain_only("b") == 2
        assert layer.tracked_images() == {"b"}
        assert layer.get_stats().result_count == 1

    def test_clear_for_session(self, layer):
        layer.store_result("a", 1.0, _image(), session_id="old")
        layer.store_result("a", 2.0, _image(), session_id="new")

        assert layer.clear_for_session("old") == 1
        assert layer.keys_for_image("a") == {(RESULT_STORE, "a_2.00")}

    def test_eviction_updates_index(self):
        config = CacheConfig(mask_cache=StoreLimitsConfig(count_limit=2, cost_limit_mb=1))
        layer = BlurCacheLayer(config)

        for image_id in ("a", "b", "c"):
            layer.store_mask(image_id, np.ones((10, 10), dtype=np.float32))

        assert layer.get_mask("a") is None
        assert layer.tracked_images() == {"b", "c"}

    def test_oversized_entry_not_indexed(self):
        config = CacheConfig(result_cache=StoreLimitsConfig(count_limit=5, cost_limit_mb=0.01))
        layer = BlurCacheLayer(config)

        assert layer.store_result("big", 1.0, _image(1000, 1000)) is False
        assert layer.tracked_images() == set()
        assert layer.get_stats().result_cost_bytes == 0

    def test_stats_and_memory_pressure(self, layer):
        layer.store_mask("a", np.ones((512, 512), dtype=np.float32))
        layer.store_result("a", 1.0, _image(512, 512))

        stats = layer.get_stats()

        assert stats.mask_count == 1
        assert stats.result_count == 1
        assert stats.estimated_memory_mb == pytest.approx(2 * 512 * 512 * 4 / MB)
        assert stats.to_dict()['tracked_images'] == 1

        layer.handle_memory_pressure()

        cleared = layer.get_stats()
        assert cleared.mask_count == 0
        assert cleared.result_count == 0
        assert cleared.tracked_images == 0

    def test_concurrent_store_and_clear(self, layer):
        errors = []

        def worker(image_id):
            try:
                for i in range(50):
                    layer.store_result(image_id, float(i % 10), _image(20, 20))
                    if i % 7 == 0:
                        layer.clear_for_image(image_id)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(f"img{n}",)) for n in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        stats = layer.get_stats()
        indexed = sum(len(layer.keys_for_image(i)) for i in layer.tracked_images())
        assert indexed == stats.mask_count + stats.result_count
        assert stats.result_cost_bytes == stats.result_count * 20 * 20 * 4
