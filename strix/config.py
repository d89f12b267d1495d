"""
Config system - Layered configuration read by request contexts.

Sources are merged with precedence (later wins):
config files (JSON/YAML) > .env file > environment variables > overrides.
"""

from typing import Any, Dict, Optional
from pathlib import Path
import json
import os

import yaml
from dotenv import dotenv_values

from .faults import Fault, FaultDomain


_PRODUCTION_MODES = ("prod", "production")


class ConfigError(Fault):
    """Raised when configuration cannot be loaded."""
    code = "CONFIG_ERROR"
    message = "Configuration error"
    domain = FaultDomain.CONFIG


class Config:
    """
    Read-only, process-wide configuration view.

    Request contexts only need two things from it: string settings by
    key (``config``) and whether the process runs in production.
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = data or {}

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current = self._data
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def config(self, key: str) -> str:
        """
        Get a setting as a string.

        Returns an empty string for missing keys; booleans render as
        ``true``/``false`` and nested values as JSON.
        """
        value = self.get(key)
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        return str(value)

    def production(self) -> bool:
        """True when the configured mode is production."""
        flag = self.get("production")
        if isinstance(flag, bool):
            return flag
        mode = self.get("mode") or self.get("runtime.mode") or ""
        return str(mode).lower() in _PRODUCTION_MODES

    def to_dict(self) -> Dict[str, Any]:
        return self._data

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __repr__(self) -> str:
        return f"Config(keys={sorted(self._data)})"


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources with precedence:
    Overrides > Environment variables > .env file > config files
    """

    def __init__(self, env_prefix: str = "STRIX_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        paths: Optional[list] = None,
        env_prefix: str = "STRIX_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> Config:
        """
        Load configuration from multiple sources.

        Merge order (later overrides earlier):
        1. Config files (JSON or YAML), in the order given
        2. .env file (only keys with the prefix)
        3. Environment variables (prefix)
        4. Manual overrides

        Args:
            paths: Config file paths (glob patterns supported)
            env_prefix: Prefix for environment variables
            env_file: Path to .env file
            overrides: Manual overrides (highest precedence)

        Returns:
            Merged Config view

        Raises:
            ConfigError: If a config file cannot be parsed
        """
        loader = cls(env_prefix=env_prefix)

        for pattern in paths or []:
            loader._load_from_files(pattern)

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env()

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return Config(loader.config_data)

    def _load_from_files(self, pattern: str):
        """Load config from JSON or YAML files."""
        from glob import glob

        for path_str in sorted(glob(pattern)):
            path = Path(path_str)
            if path.suffix == ".json":
                self._load_json_file(path)
            elif path.suffix in (".yaml", ".yml"):
                self._load_yaml_file(path)

    def _load_json_file(self, path: Path):
        """Load config from JSON file."""
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(message=f"Cannot load config file {path}: {e}", metadata={"path": str(path)}) from e
        if data:
            self._merge_dict(self.config_data, data)

    def _load_yaml_file(self, path: Path):
        """Load config from YAML file."""
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(message=f"Cannot load config file {path}: {e}", metadata={"path": str(path)}) from e
        if data:
            self._merge_dict(self.config_data, data)

    def _load_env_file(self, path: str):
        """Load config from .env file."""
        if not Path(path).exists():
            return

        for key, value in dotenv_values(path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _load_from_env(self):
        """Load config from environment variables."""
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert STRIX_DATABASE__HOST to nested dict."""
        key = key[len(self.env_prefix):]

        # Double underscore separates nesting levels
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value
