import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import re


class SharedConfigLoader:
    """Loader for shared configuration files"""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize shared config loader"""
        if config_dir is None:
            config_dir = Path(__file__).parent

        self.config_dir = Path(config_dir)
        self.shared_dir = self.config_dir / "shared"

        # Validate shared directory exists
        if not self.shared_dir.exists():
            raise FileNotFoundError(
                f"Shared config directory not found: {self.shared_dir}"
            )

        self._defaults = self._load_yaml("defaults.yaml")

        # Unified shared config dictionary for reference resolution
        self._shared_config = dict(self._defaults)

    def _load_yaml(self, filename: str) -> Dict[str, Any]:
        """Load a YAML file from shared directory"""
        filepath = self.shared_dir / filename

        if not filepath.exists():
            raise FileNotFoundError(f"Shared config file not found: {filepath}")

        try:
            with open(filepath, 'r') as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {filename}: {e}")

    @property
    def defaults(self) -> Dict[str, Any]:
        """Get system defaults"""
        return self._defaults

    @property
    def all_shared(self) -> Dict[str, Any]:
        """Get all shared configs as unified dictionary"""
        return self._shared_config

    def get_max_blur_intensity(self) -> float:
        """Upper bound of the blur slider"""
        return float(self._defaults["image"]["max_blur_intensity"])

    # =========================================================================
    # Reference Resolution
    # =========================================================================

    def resolve_reference(self, reference: str) -> Any:
        """Resolve a reference like 'image.max_blur_intensity' to its value"""
        parts = reference.split('.')
        value = self._shared_config

        try:
            for part in parts:
                value = value[part]
            return value
        except (KeyError, TypeError) as e:
            raise KeyError(f"Invalid reference path: {reference}") from e

    def resolve_references_in_config(self, config: Any) -> Any:
        """Recursively resolve all ${shared.path} references in a config dictionary"""
        if isinstance(config, dict):
            return {
                key: self.resolve_references_in_config(value)
                for key, value in config.items()
            }
        elif isinstance(config, list):
            return [self.resolve_references_in_config(item) for item in config]
        elif isinstance(config, str):
            match = re.fullmatch(r'\$\{shared\.(.+)\}', config)
            if match:
                return self.resolve_reference(match.group(1))
            return config
        else:
            return config

    def validate_shared_configs(self) -> bool:
        """Validate that the shared defaults have required keys"""
        for key in ("system", "image", "frame"):
            if key not in self._defaults:
                raise ValueError(f"Missing {key} in defaults.yaml")

        if "max_blur_intensity" not in self._defaults["image"]:
            raise ValueError("Missing image.max_blur_intensity in defaults.yaml")

        return True

    def get_config_summary(self) -> str:
        """Get a summary of loaded shared configurations"""
        return f"""
Shared Configuration Summary:
============================
System:
  - Name: {self._defaults['system']['name']}
  - Version: {self._defaults['system']['version']}
  - Environment: {self._defaults['system']['environment']}

Image:
  - Max blur intensity: {self.get_max_blur_intensity()}
"""
