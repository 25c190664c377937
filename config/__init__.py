from config.settings import (
    UnifiedSettings,
    get_settings,
    reset_settings,
    get_composition_config,
    get_refinement_config,
    get_blur_config,
    get_cache_config,
    get_session_config,
    get_logging_config,
    get_performance_config,
)

__all__ = [
    'UnifiedSettings',
    'get_settings',
    'reset_settings',
    'get_composition_config',
    'get_refinement_config',
    'get_blur_config',
    'get_cache_config',
    'get_session_config',
    'get_logging_config',
    'get_performance_config',
]
