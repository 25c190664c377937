import os
from typing import Dict, Any, Optional
from pathlib import Path

from config.domain_loader import DomainConfigLoader
from config.validators import (
    BlurConfig,
    CacheConfig,
    CompositionConfig,
    LoggingConfig,
    MaskRefinementConfig,
    PerformanceConfig,
    SessionConfig,
)

CONFIG_DIR_ENV = "KLICK_CONFIG_DIR"


class DictWrapper:
    """
    Wrapper that provides attribute-style access to dictionaries
    """

    def __init__(self, data: Dict[str, Any]):
        self._data = data

    def __getattr__(self, name: str) -> Any:
        if name.startswith('_'):
            return object.__getattribute__(self, name)

        if name not in self._data:
            raise AttributeError(f"Config has no attribute '{name}'")

        value = self._data[name]

        # If value is a dict, wrap it for nested access
        if isinstance(value, dict):
            return DictWrapper(value)

        return value

    def __getitem__(self, key: str) -> Any:
        """Allow dictionary-style access as well"""
        value = self._data[key]
        if isinstance(value, dict):
            return DictWrapper(value)
        return value

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Dictionary-style get with default"""
        return self._data.get(key, default)

    def keys(self):
        return self._data.keys()

    def items(self):
        return self._data.items()

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to plain dictionary"""
        return self._data


class UnifiedSettings:
    """
    Unified settings over the domain-based configuration system.

    Raw domains are reachable as attribute trees (``settings.algorithms.blur``);
    the typed accessors return validated pydantic models that the runtime
    components consume.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        """
        Initialize unified settings

        Args:
            config_dir: Path to config directory. Falls back to the
                KLICK_CONFIG_DIR environment variable, then this package.
        """
        if config_dir is None and os.environ.get(CONFIG_DIR_ENV):
            config_dir = Path(os.environ[CONFIG_DIR_ENV])

        self._loader = DomainConfigLoader(config_dir)

        self._algorithms_wrapper = DictWrapper(self._loader.get_algorithms_config())
        self._system_wrapper = DictWrapper(self._loader.get_system_config())
        self._shared_wrapper = DictWrapper(self._loader.get_shared_config())

        self._typed_cache: Dict[str, Any] = {}

    # =========================================================================
    # Domain-level accessors
    # =========================================================================

    def get_algorithms_config(self) -> Dict[str, Any]:
        """Get algorithms domain configuration"""
        return self._loader.get_algorithms_config()

    def get_system_config(self) -> Dict[str, Any]:
        """Get system domain configuration"""
        return self._loader.get_system_config()

    def get_shared_config(self) -> Dict[str, Any]:
        """Get shared configuration"""
        return self._loader.get_shared_config()

    # =========================================================================
    # Typed accessors
    # =========================================================================

    def _typed(self, key: str, model, raw: Dict[str, Any]):
        if key not in self._typed_cache:
            self._typed_cache[key] = model(**raw)
        return self._typed_cache[key]

    def get_composition_config(self) -> CompositionConfig:
        """Get validated composition configuration"""
        return self._typed("composition", CompositionConfig, self._loader.get_composition_config())

    def get_refinement_config(self) -> MaskRefinementConfig:
        """Get validated mask refinement configuration"""
        return self._typed("mask_refinement", MaskRefinementConfig, self._loader.get_refinement_config())

    def get_blur_config(self) -> BlurConfig:
        return self._typed("blur", BlurConfig, self._loader.get_blur_config())

    def get_cache_config(self) -> CacheConfig:
        return self._typed("cache", CacheConfig, self._loader.get_cache_config())

    def get_session_config(self) -> SessionConfig:
        return self._typed("session", SessionConfig, self._loader.get_session_config())

    def get_logging_config(self) -> LoggingConfig:
        return self._typed("logging", LoggingConfig, self._loader.get_logging_config())

    def get_performance_config(self) -> PerformanceConfig:
        return self._typed("performance", PerformanceConfig, self._loader.get_performance_config())

    # =========================================================================
    # Attribute access
    # =========================================================================

    @property
    def algorithms(self) -> DictWrapper:
        """settings.algorithms.composition.rule_of_thirds"""
        return self._algorithms_wrapper

    @property
    def system(self) -> DictWrapper:
        """settings.system.cache.mask_cache"""
        return self._system_wrapper

    @property
    def shared(self) -> DictWrapper:
        """settings.shared.image.max_blur_intensity"""
        return self._shared_wrapper

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(self) -> bool:
        """Validate all configurations"""
        return self._loader.validate_all_configs()


# =============================================================================
# Module-level singleton
# =============================================================================

_settings_instance: Optional[UnifiedSettings] = None


def get_settings(config_dir: Optional[Path] = None) -> UnifiedSettings:
    """
    Get or create the unified settings singleton

    Args:
        config_dir: Path to config directory (only used on first call)

    Returns:
        UnifiedSettings instance
    """
    global _settings_instance

    if _settings_instance is None:
        _settings_instance = UnifiedSettings(config_dir)

    return _settings_instance


def reset_settings():
    """Reset settings singleton (useful for testing)"""
    global _settings_instance
    _settings_instance = None


# =============================================================================
# Convenience functions
# =============================================================================

def get_algorithms_config() -> Dict[str, Any]:
    """Get algorithms configuration"""
    return get_settings().get_algorithms_config()


def get_system_config() -> Dict[str, Any]:
    """Get system configuration"""
    return get_settings().get_system_config()


def get_composition_config() -> CompositionConfig:
    return get_settings().get_composition_config()


def get_refinement_config() -> MaskRefinementConfig:
    return get_settings().get_refinement_config()


def get_blur_config() -> BlurConfig:
    return get_settings().get_blur_config()


def get_cache_config() -> CacheConfig:
    return get_settings().get_cache_config()


def get_session_config() -> SessionConfig:
    return get_settings().get_session_config()


def get_logging_config() -> LoggingConfig:
    return get_settings().get_logging_config()


def get_performance_config() -> PerformanceConfig:
    return get_settings().get_performance_config()
