import numpy as np
import pytest

from config.settings import reset_settings
from klick.utils.threading_utils import reset_thread_manager


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingSegmentation:
    """Segmentation provider returning a centered rectangular subject"""

    def __init__(self, fail: bool = False, empty: bool = False):
        self.calls = 0
        self.fail = fail
        self.empty = empty

    def generate_mask(self, image):
        self.calls += 1
        if self.fail:
            raise RuntimeError("segmentation model unavailable")
        if self.empty:
            return None

        height, width = image.shape[:2]
        # half resolution to exercise alignment
        mask = np.zeros((max(1, height // 2), max(1, width // 2)), dtype=np.uint8)
        mh, mw = mask.shape
        mask[mh // 4:3 * mh // 4, mw // 4:3 * mw // 4] = 255
        return mask


@pytest.fixture(autouse=True)
def fresh_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def segmentation():
    return CountingSegmentation()


@pytest.fixture
def thread_manager():
    from klick.utils.threading_utils import get_thread_manager

    manager = get_thread_manager()
    yield manager
    reset_thread_manager()


@pytest.fixture
def portrait_image():
    """Textured RGB image so blurring visibly changes the background"""
    rng = np.random.default_rng(7)
    return rng.integers(0, 256, size=(120, 160, 3), dtype=np.uint8)


@pytest.fixture
def symmetric_frame():
    frame = np.zeros((48, 64, 3), dtype=np.uint8)
    frame[:, :8] = 200
    frame[:, -8:] = 200
    frame[16:32, 24:40] = (30, 120, 220)
    return frame
