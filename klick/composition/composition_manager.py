import asyncio
import threading
from typing import Dict, List, Optional, Union

import numpy as np

from config.settings import get_composition_config
from config.validators import CompositionConfig
from .models import (
    CompositionType,
    EnhancedCompositionResult,
    FrameSize,
    Observation,
    OverlayElement,
)
from .overlays import OverlayBuilder
from .strategies import CompositionStrategy, create_strategy
from ..utils.exceptions import CompositionError
from ..utils.logger import get_logger
from ..utils.threading_utils import LatestValue, ThreadPoolManager, get_thread_manager

logger = get_logger(__name__)


class CompositionManager:
    """Owns one strategy per composition type and the user's current choice"""

    def __init__(
            self,
            config: Optional[CompositionConfig] = None,
            initial_type: CompositionType = CompositionType.RULE_OF_THIRDS,
    ):
        self.config = config or get_composition_config()
        self.strategies: Dict[CompositionType, CompositionStrategy] = {
            composition_type: create_strategy(composition_type, self.config)
            for composition_type in CompositionType
        }
        self.overlay_builder = OverlayBuilder(self.config.overlays)

        self._lock = threading.Lock()
        self._current_type = CompositionType(initial_type)
        self._enabled = True
        self._last_result: Optional[EnhancedCompositionResult] = None

        logger.info(
            "composition_manager_initialized",
            composition_type=self._current_type.value,
        )

    @property
    def current_type(self) -> CompositionType:
        return self._current_type

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def last_result(self) -> Optional[EnhancedCompositionResult]:
        with self._lock:
            return self._last_result

    @property
    def current_strategy(self) -> CompositionStrategy:
        return self.strategies[self._current_type]

    @property
    def current_strategy_name(self) -> str:
        return self.current_strategy.name

    @property
    def available_composition_types(self) -> List[CompositionType]:
        return list(CompositionType)

    def evaluate(
            self,
            observation: Observation,
            frame_size: FrameSize,
            frame_sample: Optional[np.ndarray] = None
    ) -> Optional[EnhancedCompositionResult]:
        """Evaluate with the current strategy; None while analysis is disabled"""
        if not self._enabled:
            return None

        result = self.current_strategy.evaluate(observation, frame_size, frame_sample)

        with self._lock:
            # a switch while evaluating makes this result stale
            if self._enabled and result.composition is self._current_type:
                self._last_result = result
        return result

    def switch_to(self, composition_type: Union[CompositionType, str]) -> None:
        try:
            composition_type = CompositionType(composition_type)
        except ValueError as e:
            raise CompositionError(
                f"Unknown composition type: {composition_type}",
                details={'available': [t.value for t in CompositionType]},
                original_error=e,
            ) from e

        with self._lock:
            self._current_type = composition_type
            self._last_result = None

        logger.info("composition_type_switched", composition_type=composition_type.value)

    def toggle_enabled(self) -> bool:
        with self._lock:
            self._enabled = not self._enabled
            if not self._enabled:
                self._last_result = None
            enabled = self._enabled

        logger.info("composition_analysis_toggled", enabled=enabled)
        return enabled

    def get_basic_overlays(self, frame_size: FrameSize) -> List[OverlayElement]:
        """Guides shown even without a detected subject"""
        if not self._enabled:
            return []

        if self._current_type is CompositionType.RULE_OF_THIRDS:
            return [self.overlay_builder.thirds_grid(frame_size, self.config.rule_of_thirds.thirds)]
        return [self.overlay_builder.center_crosshair(frame_size)]

    def get_all_composition_scores(
            self,
            observation: Observation,
            frame_size: FrameSize,
            frame_sample: Optional[np.ndarray] = None
    ) -> Dict[CompositionType, float]:
        return {
            composition_type: strategy.evaluate(observation, frame_size, frame_sample).score
            for composition_type, strategy in self.strategies.items()
        }

    def get_best_composition_suggestion(
            self,
            observation: Observation,
            frame_size: FrameSize,
            frame_sample: Optional[np.ndarray] = None
    ) -> CompositionType:
        """Highest scoring type; ties keep declaration order, all-zero gives rule of thirds"""
        best_type = CompositionType.RULE_OF_THIRDS
        best_score = 0.0
        for composition_type, score in self.get_all_composition_scores(
                observation, frame_size, frame_sample).items():
            if score > best_score:
                best_type, best_score = composition_type, score
        return best_type


class LiveCompositionEvaluator:
    """Scores camera frames off the event loop, one at a time.

    ``submit_frame`` drops frames while an evaluation is in flight and the
    newest completed result replaces the previous one in ``latest_result``.
    Frame throttling stays with the caller.
    """

    def __init__(
            self,
            manager: CompositionManager,
            thread_manager: Optional[ThreadPoolManager] = None,
    ):
        self.manager = manager
        self._thread_manager = thread_manager
        self.results: LatestValue[EnhancedCompositionResult] = LatestValue()

        self._in_flight: Optional[asyncio.Task] = None
        self.frames_submitted = 0
        self.frames_dropped = 0

    @property
    def thread_manager(self) -> ThreadPoolManager:
        if self._thread_manager is None:
            self._thread_manager = get_thread_manager()
        return self._thread_manager

    @property
    def is_busy(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    @property
    def latest_result(self) -> Optional[EnhancedCompositionResult]:
        return self.results.get()

    def submit_frame(
            self,
            observation: Observation,
            frame_size: FrameSize,
            frame_sample: Optional[np.ndarray] = None
    ) -> bool:
        """Start evaluating a frame; False (frame dropped) when one is still running.

        Must be called from a running event loop.
        """
        if self.is_busy:
            self.frames_dropped += 1
            return False

        self.frames_submitted += 1
        self._in_flight = asyncio.get_running_loop().create_task(
            self._evaluate(observation, frame_size, frame_sample)
        )
        return True

    async def wait_idle(self) -> Optional[EnhancedCompositionResult]:
        """Wait for the in-flight evaluation, then return the latest result"""
        if self._in_flight is not None:
            await asyncio.shield(self._in_flight)
        return self.latest_result

    async def _evaluate(
            self,
            observation: Observation,
            frame_size: FrameSize,
            frame_sample: Optional[np.ndarray]
    ) -> None:
        try:
            result = await self.thread_manager.run_composition_task(
                self.manager.evaluate, observation, frame_size, frame_sample
            )
        except asyncio.TimeoutError:
            logger.warning("live_composition_timeout")
            return

        if result is not None:
            self.results.set(result)
