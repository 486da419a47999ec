"""
Configuration: settings for discovery and builds

Config hierarchy (highest to lowest priority):
  1. Environment variables
  2. Project config (.trellis/config.yaml)
  3. User config (~/.trellis/config.yaml)
  4. Defaults

Environment variables:
- TRELLIS_RESOURCE_NAME: Resource file name to discover (default: trellis.yaml)
- TRELLIS_SEARCH_PATH: Search paths, os.pathsep-separated (default: .)
- TRELLIS_STRICT: Raise on validation errors (default: true)
"""

import os
import yaml
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

from .core.discovery import DEFAULT_RESOURCE_NAME


@dataclass
class DiscoveryConfig:
    """Where module definitions are looked for."""
    resource_name: str = DEFAULT_RESOURCE_NAME
    search_paths: List[str] = field(default_factory=lambda: ["."])
    recursive: bool = True
    packages: List[str] = field(default_factory=list)  # Installed packages holding a resource file

    def validate(self) -> Optional[str]:
        """Validate config. Returns error message or None if valid."""
        if not self.resource_name or "/" in self.resource_name:
            return f"Invalid resource name '{self.resource_name}'. Use a bare file name like 'trellis.yaml'"
        if not self.search_paths and not self.packages:
            return "Nothing to discover: set search_paths or packages"
        return None


@dataclass
class BuildConfig:
    """Build behavior."""
    strict_validation: bool = True


@dataclass
class Config:
    """Application configuration."""
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    build: BuildConfig = field(default_factory=BuildConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "discovery": {
                "resource_name": self.discovery.resource_name,
                "search_paths": list(self.discovery.search_paths),
                "recursive": self.discovery.recursive,
                "packages": list(self.discovery.packages),
            },
            "build": {
                "strict_validation": self.build.strict_validation,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create from dictionary."""
        discovery_data = data.get("discovery") or {}
        build_data = data.get("build") or {}

        return cls(
            discovery=DiscoveryConfig(
                resource_name=discovery_data.get("resource_name", DEFAULT_RESOURCE_NAME),
                search_paths=list(discovery_data.get("search_paths", ["."])),
                recursive=_as_bool(discovery_data.get("recursive", True)),
                packages=list(discovery_data.get("packages", [])),
            ),
            build=BuildConfig(
                strict_validation=_as_bool(build_data.get("strict_validation", True)),
            ),
        )


class ConfigManager:
    """
    Manages configuration loading and persistence.

    Hierarchy:
      1. Environment
      2. Project config (.trellis/config.yaml)
      3. User config (~/.trellis/config.yaml)
      4. Defaults
    """

    USER_CONFIG_DIR = Path.home() / ".trellis"
    USER_CONFIG_FILE = USER_CONFIG_DIR / "config.yaml"
    PROJECT_CONFIG_DIR = ".trellis"
    PROJECT_CONFIG_FILE = "config.yaml"

    def __init__(self, project_dir: Optional[Path] = None):
        self.project_dir = Path(project_dir) if project_dir else Path.cwd()
        self._config: Optional[Config] = None

    @property
    def project_config_path(self) -> Path:
        return self.project_dir / self.PROJECT_CONFIG_DIR / self.PROJECT_CONFIG_FILE

    @property
    def user_config_path(self) -> Path:
        return self.USER_CONFIG_FILE

    def load(self) -> Config:
        """
        Load configuration from all sources.

        Raises:
            ValueError: If a config file is malformed
        """
        if self._config is not None:
            return self._config

        # Start with defaults
        config_data: Dict[str, Any] = {}

        # Layer 1: User config
        config_data = self._merge(config_data, self._read(self.user_config_path))

        # Layer 2: Project config (higher priority)
        config_data = self._merge(config_data, self._read(self.project_config_path))

        # Layer 3: Environment overrides
        if os.environ.get("TRELLIS_RESOURCE_NAME"):
            config_data.setdefault("discovery", {})["resource_name"] = os.environ["TRELLIS_RESOURCE_NAME"]
        if os.environ.get("TRELLIS_SEARCH_PATH"):
            paths = [p for p in os.environ["TRELLIS_SEARCH_PATH"].split(os.pathsep) if p]
            config_data.setdefault("discovery", {})["search_paths"] = paths
        if os.environ.get("TRELLIS_STRICT"):
            config_data.setdefault("build", {})["strict_validation"] = _as_bool(os.environ["TRELLIS_STRICT"])

        config = Config.from_dict(config_data)
        error = config.discovery.validate()
        if error:
            raise ValueError(error)

        self._config = config
        return self._config

    def _read(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Malformed config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Malformed config file {path}: expected a mapping")
        return data

    def save_project(self, config: Config):
        """Save configuration to project config file."""
        self.project_config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.project_config_path, 'w') as f:
            yaml.dump(config.to_dict(), f, default_flow_style=False)

        self._config = config

    def set(self, key: str, value: str) -> Optional[str]:
        """
        Set a configuration value in the project config.

        Args:
            key: Dot-separated key (e.g., "build.strict_validation")
            value: Value to set

        Returns:
            Error message or None if successful
        """
        config = self.load()

        parts = key.split(".")
        if len(parts) != 2:
            return f"Invalid key format: {key}. Use 'section.setting' (e.g., 'discovery.resource_name')"

        section, setting = parts

        if section == "discovery":
            if setting == "resource_name":
                config.discovery.resource_name = value
            elif setting == "search_paths":
                config.discovery.search_paths = [p for p in value.split(os.pathsep) if p]
            elif setting == "recursive":
                config.discovery.recursive = _as_bool(value)
            elif setting == "packages":
                config.discovery.packages = [p.strip() for p in value.split(",") if p.strip()]
            else:
                return f"Unknown discovery setting: {setting}. Valid: resource_name, search_paths, recursive, packages"
            error = config.discovery.validate()
            if error:
                return error

        elif section == "build":
            if setting == "strict_validation":
                config.build.strict_validation = _as_bool(value)
            else:
                return f"Unknown build setting: {setting}. Valid: strict_validation"
        else:
            return f"Unknown section: {section}. Valid: discovery, build"

        self.save_project(config)
        return None

    def get(self, key: str) -> Optional[Any]:
        """Get a configuration value."""
        data = self.load().to_dict()

        parts = key.split(".")
        if len(parts) != 2:
            return None

        section, setting = parts
        return data.get(section, {}).get(setting)

    def _merge(self, base: Dict, override: Dict) -> Dict:
        """Deep merge two dicts, override wins."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge(result[key], value)
            else:
                result[key] = value
        return result


def _as_bool(value: Any) -> bool:
    """Interpret YAML/env truthiness."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "on")


# Convenience function
def get_config(project_dir: Optional[Path] = None) -> Config:
    """Load configuration for a project."""
    return ConfigManager(project_dir).load()
