from .bounded_cache import BoundedCache
from .cache_layer import BlurCacheLayer, CacheStats, result_key
from .session_manager import EditingSession, SessionManager

__all__ = [
    'BoundedCache',
    'BlurCacheLayer',
    'CacheStats',
    'result_key',
    'EditingSession',
    'SessionManager',
]
