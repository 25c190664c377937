import yaml
from pathlib import Path
from typing import Dict, Any, Optional

from config.shared_loader import SharedConfigLoader
from config.validators import (
    validate_all_domains,
    validate_domain_consistency,
)


class DomainConfigLoader:
    """Loader for domain-specific configuration files"""

    DOMAINS = ("algorithms", "system")

    def __init__(self, config_dir: Optional[Path] = None):

        if config_dir is None:
            config_dir = Path(__file__).parent

        self.config_dir = Path(config_dir)

        # Initialize shared config loader first
        self.shared_loader = SharedConfigLoader(config_dir)

        # Load all domain configurations
        self._algorithms = self._load_domain("algorithms")
        self._system = self._load_domain("system")

        # Resolve all references to shared configs
        self._resolve_all_references()

    def _load_domain(self, domain_name: str) -> Dict[str, Any]:
        """load all YAML files in a domain directory"""
        domain_dir = self.config_dir / domain_name

        if not domain_dir.exists():
            raise FileNotFoundError(f"Domain directory not found: {domain_dir}")

        configs = {}

        # Load all .yaml files in domain directory (including subdirectories)
        for yaml_file in sorted(domain_dir.rglob("*.yaml")):
            rel_path = yaml_file.relative_to(domain_dir)

            # e.g., composition/overlays.yaml -> composition.overlays
            key_parts = list(rel_path.parts[:-1]) + [rel_path.stem]

            try:
                with open(yaml_file, 'r') as f:
                    config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {yaml_file}: {e}")

            current = configs
            for part in key_parts[:-1]:
                current = current.setdefault(part, {})
            current[key_parts[-1]] = config_data

        return configs

    def _resolve_all_references(self):
        """resolve all ${shared.path} references in domain configs"""
        self._algorithms = self.shared_loader.resolve_references_in_config(self._algorithms)
        self._system = self.shared_loader.resolve_references_in_config(self._system)

    def get_algorithms_config(self) -> Dict[str, Any]:
        """Get algorithms domain configuration"""
        return self._algorithms

    def get_system_config(self) -> Dict[str, Any]:
        """Get system domain configuration"""
        return self._system

    def get_shared_config(self) -> Dict[str, Any]:
        """Get shared configuration"""
        return self.shared_loader.all_shared

    def get_composition_config(self) -> Dict[str, Any]:
        return self._algorithms.get("composition", {})

    def get_refinement_config(self) -> Dict[str, Any]:
        return self._algorithms.get("mask_refinement", {})

    def get_blur_config(self) -> Dict[str, Any]:
        return self._algorithms.get("blur", {})

    def get_cache_config(self) -> Dict[str, Any]:
        return self._system.get("cache", {})

    def get_session_config(self) -> Dict[str, Any]:
        return self._system.get("session", {})

    def get_performance_config(self) -> Dict[str, Any]:
        """Get performance configuration from system domain"""
        return self._system.get("performance", {})

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging configuration from system domain"""
        return self._system.get("logging", {})

    def validate_all_configs(self, check_consistency: bool = True) -> bool:
        """
        Validate all loaded configurations

        Raises:
            ValueError: If a required config is missing or a value is out of range
        """
        self.shared_loader.validate_shared_configs()

        for key in ("composition", "mask_refinement", "blur"):
            if key not in self._algorithms:
                raise ValueError(f"Missing required algorithms config: {key}")

        for key in ("cache", "session", "logging", "performance"):
            if key not in self._system:
                raise ValueError(f"Missing required system config: {key}")

        try:
            alg, sys_config = validate_all_domains(self._algorithms, self._system)
            if check_consistency:
                validate_domain_consistency(alg, sys_config)
        except ValueError as e:
            raise ValueError(f"Configuration validation failed: {e}") from e

        return True

    def get_config_summary(self) -> str:
        """Get a summary of all loaded configurations"""
        return f"""
    Domain Configuration Summary:
    =============================

    Algorithms Domain:
      Configs loaded: {list(self._algorithms.keys())}

    System Domain:
      Configs loaded: {list(self._system.keys())}

    Shared Configurations:
      {self.shared_loader.get_config_summary()}
    """
