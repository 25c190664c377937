from .exceptions import (
    KlickError,
    CompositionError,
    FrameSampleError,
    BlurError,
    SegmentationError,
    MaskRefinementError,
    CompositingError,
    CacheError,
    SessionError,
)
from .logger import get_logger, init_logging, PerformanceTimer, log_performance
from .threading_utils import (
    ReadWriteLock,
    LatestValue,
    PerformanceMonitor,
    ThreadPoolManager,
    ResourceMonitor,
    get_thread_manager,
)

__all__ = [
    'KlickError',
    'CompositionError',
    'FrameSampleError',
    'BlurError',
    'SegmentationError',
    'MaskRefinementError',
    'CompositingError',
    'CacheError',
    'SessionError',
    'get_logger',
    'init_logging',
    'PerformanceTimer',
    'log_performance',
    'ReadWriteLock',
    'LatestValue',
    'PerformanceMonitor',
    'ThreadPoolManager',
    'ResourceMonitor',
    'get_thread_manager',
]
