import asyncio
import threading
import time
import functools
from contextlib import contextmanager
from typing import Any, Callable, Optional, TypeVar, Generic, List, Tuple
from concurrent.futures import ThreadPoolExecutor

import psutil

from config.settings import get_settings
from .logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class ReadWriteLock:
    """Many concurrent readers or a single writer.

    Waiting writers block new readers so a steady stream of lookups cannot
    starve index mutations.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self):
        self.acquire_read()
        try:
            yield self
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self):
        self.acquire_write()
        try:
            yield self
        finally:
            self.release_write()


class LatestValue(Generic[T]):
    """Single-slot cell that only ever holds the most recent value"""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._value: Optional[T] = None
        self._version = 0

    def set(self, value: T) -> int:
        """replace the held value and return its version"""
        with self._cond:
            self._value = value
            self._version += 1
            self._cond.notify_all()
            return self._version

    def get(self) -> Optional[T]:
        with self._cond:
            return self._value

    def snapshot(self) -> Tuple[int, Optional[T]]:
        with self._cond:
            return self._version, self._value

    @property
    def version(self) -> int:
        with self._cond:
            return self._version

    def wait_newer(self, version: int, timeout: Optional[float] = None) -> Optional[T]:
        """block until a value newer than ``version`` is set, or timeout"""
        with self._cond:
            self._cond.wait_for(lambda: self._version > version, timeout=timeout)
            return self._value if self._version > version else None

    def clear(self) -> None:
        with self._cond:
            self._value = None


class PerformanceMonitor:
    """Monitor performance of operations"""

    def __init__(self, max_samples: int = 100) -> None:
        self.max_samples = max_samples
        self.samples: List[float] = []
        self.lock = threading.Lock()

    def add_sample(self, duration: float) -> None:
        """add performance sample"""
        with self.lock:
            self.samples.append(duration)
            if len(self.samples) > self.max_samples:
                self.samples.pop(0)

    def get_stat(self) -> dict:
        """get performance statistics"""
        with self.lock:
            if not self.samples:
                return {'count': 0}

            avg = sum(self.samples) / len(self.samples)

            #percentiles
            sorted_samples = sorted(self.samples)
            p50 = sorted_samples[len(sorted_samples) // 2]
            p95 = sorted_samples[int(len(sorted_samples) * 0.95)]

            return {
                'count': len(self.samples),
                'average_ms': round(avg * 1000, 2),
                'min_ms': round(sorted_samples[0] * 1000, 2),
                'max_ms': round(sorted_samples[-1] * 1000, 2),
                'p50_ms': round(p50 * 1000, 2),
                'p95_ms': round(p95 * 1000, 2),
            }


class ThreadPoolManager:
    """Named worker pools for composition scoring and blur rendering"""

    def __init__(self) -> None:
        perf = get_settings().get_performance_config()
        self.timeout = perf.threading.thread_timeout

        # composition stays single-worker so at most one frame is scored at a time
        self.composition_pool = ThreadPoolExecutor(
            max_workers=perf.threading.composition_workers,
            thread_name_prefix="composition"
        )
        self.blur_pool = ThreadPoolExecutor(
            max_workers=perf.threading.blur_workers,
            thread_name_prefix="blur"
        )

        self.monitors = {
            'composition': PerformanceMonitor(perf.monitor.max_samples),
            'blur': PerformanceMonitor(perf.monitor.max_samples),
        }

        logger.info(
            "thread_pools_initialized",
            composition_workers=perf.threading.composition_workers,
            blur_workers=perf.threading.blur_workers,
        )

    async def run_composition_task(self, func: Callable, *args: Any, **kwargs: Any) -> Any:
        """run composition task"""
        return await self._run_with_monitoring('composition', self.composition_pool, func, *args, **kwargs)

    async def run_blur_task(self, func: Callable, *args: Any, **kwargs: Any) -> Any:
        """run blur task"""
        return await self._run_with_monitoring('blur', self.blur_pool, func, *args, **kwargs)

    async def _run_with_monitoring(
            self,
            pool_name: str,
            pool: ThreadPoolExecutor,
            func: Callable,
            *args: Any,
            **kwargs: Any
        ) -> Any:
        """run with performance monitoring"""

        start_time = time.perf_counter()
        func_name = getattr(func, '__name__', repr(func))

        try:
            loop = asyncio.get_running_loop()
            future = loop.run_in_executor(pool, functools.partial(func, *args, **kwargs))
            result = await asyncio.wait_for(future, self.timeout)

            duration = time.perf_counter() - start_time
            self.monitors[pool_name].add_sample(duration)

            logger.debug(
                "thread_task_completed",
                pool=pool_name,
                duration_ms=round(duration * 1000, 2),
                function=func_name,
            )
            return result
        except asyncio.TimeoutError:
            duration = time.perf_counter() - start_time
            logger.error(
                "thread_task_timeout",
                pool=pool_name,
                duration_ms=round(duration * 1000, 2),
                timeout_ms=self.timeout * 1000,
                function=func_name,
            )
            raise
        except Exception as e:
            duration = time.perf_counter() - start_time
            logger.error(
                "thread_task_error",
                pool=pool_name,
                duration_ms=round(duration * 1000, 2),
                function=func_name,
                error=str(e)
            )
            raise

    def get_performance_stats(self) -> dict:
        """get performance statistics"""
        return {
            pool_name: monitor.get_stat() for pool_name, monitor in self.monitors.items()
        }

    def shutdown(self, wait: bool = True) -> None:
        """shutdown all threads"""
        logger.info("shutdown_thread_pools")

        self.composition_pool.shutdown(wait=wait)
        self.blur_pool.shutdown(wait=wait)

        logger.info("thread_pools_shutdown_completed")


_thread_manager: Optional[ThreadPoolManager] = None


def get_thread_manager() -> ThreadPoolManager:
    """get thread pool manager"""
    global _thread_manager
    if _thread_manager is None:
        _thread_manager = ThreadPoolManager()
    return _thread_manager


def reset_thread_manager(wait: bool = True) -> None:
    """shut down and forget the shared thread pools"""
    global _thread_manager
    if _thread_manager is not None:
        _thread_manager.shutdown(wait=wait)
    _thread_manager = None


class ResourceMonitor:
    """monitor resource usage"""

    def __init__(self, memory_threshold_percent: Optional[float] = None):
        self.process = psutil.Process()
        if memory_threshold_percent is None:
            memory_threshold_percent = (
                get_settings().get_cache_config().memory_pressure.threshold_percent
            )
        self.memory_threshold_percent = memory_threshold_percent

    def check_resources(self) -> dict:
        """check resource usage"""

        memory = psutil.virtual_memory()
        process_memory = self.process.memory_info()

        return {
            'cpu_percent': psutil.cpu_percent(interval=None),
            'memory_percent': memory.percent,
            'memory_used_gb': memory.used / (1024 ** 3),
            'memory_available_gb': memory.available / (1024 ** 3),
            'process_memory_mb': process_memory.rss / (1024 ** 2)
        }

    def is_memory_pressure(self) -> bool:
        """True when system memory use is above the configured threshold"""
        stats = self.check_resources()

        if stats['memory_percent'] > self.memory_threshold_percent:
            logger.warning(
                "memory_high_critical",
                memory_percent=stats['memory_percent'],
                threshold_percent=self.memory_threshold_percent,
            )
            return True

        return False
