"""Configuration loading utilities."""

import copy
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parents[1] / "configs"
DEFAULT_CONFIG_FILE = "default.yaml"


class ConfigLoader:
    """Load and manage YAML calibration configurations."""

    def __init__(self, config_dir: Optional[Union[str, Path]] = None):
        """
        Initialize config loader.

        Args:
            config_dir: Directory searched for relative config paths.
        """
        self.config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
        self._cache: Dict[str, Dict] = {}

    def load(
        self,
        config_path: Union[str, Path] = DEFAULT_CONFIG_FILE,
        use_cache: bool = True,
    ) -> Dict[str, Any]:
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to config file (absolute, relative to the
                working directory, or relative to config_dir).
            use_cache: Whether to use cached config.

        Returns:
            Configuration dictionary (a private copy).

        Raises:
            FileNotFoundError: If the file cannot be located.
        """
        config_path = Path(config_path)

        if not config_path.is_absolute() and not config_path.exists():
            config_path = self.config_dir / config_path

        cache_key = str(config_path)

        if use_cache and cache_key in self._cache:
            return copy.deepcopy(self._cache[cache_key])

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, "r") as f:
            config = yaml.safe_load(f) or {}

        config = self._process_includes(config, config_path.parent)

        if use_cache:
            self._cache[cache_key] = config

        return copy.deepcopy(config)

    def _process_includes(
        self,
        config: Dict,
        base_dir: Path,
    ) -> Dict:
        """
        Resolve ``!include <file>`` string values relative to base_dir.
        """
        if not isinstance(config, dict):
            return config

        result = {}

        for key, value in config.items():
            if isinstance(value, str) and value.startswith("!include "):
                include_path = base_dir / value[9:]
                with open(include_path, "r") as f:
                    result[key] = yaml.safe_load(f)
            elif isinstance(value, dict):
                result[key] = self._process_includes(value, base_dir)
            else:
                result[key] = value

        return result

    def merge(
        self,
        base: Dict[str, Any],
        override: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Deep merge two configurations, override wins.
        """
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self.merge(result[key], value)
            else:
                result[key] = value

        return result

    def save(
        self,
        config: Dict[str, Any],
        path: Union[str, Path],
    ) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)

    def clear_cache(self) -> None:
        self._cache.clear()


def load_config(
    config_path: Union[str, Path] = DEFAULT_CONFIG_FILE,
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Convenience function to load configuration.

    Args:
        config_path: Path to config file (defaults to the bundled
            ``perspective/configs/default.yaml``).
        overrides: Optional overrides to apply.

    Returns:
        Configuration dictionary.
    """
    loader = ConfigLoader()
    config = loader.load(config_path)

    if overrides:
        config = loader.merge(config, overrides)

    return config


def get_nested(
    config: Dict[str, Any],
    key: str,
    default: Any = None,
) -> Any:
    """
    Get nested config value using dot notation.

    Args:
        config: Configuration dictionary.
        key: Dot-separated key (e.g., 'calibration.reference_distance.axis').
        default: Default value if key not found.

    Returns:
        Config value or default.
    """
    value = config

    for k in key.split("."):
        if isinstance(value, dict) and k in value:
            value = value[k]
        else:
            return default

    return value


def set_nested(
    config: Dict[str, Any],
    key: str,
    value: Any,
) -> None:
    """Set nested config value using dot notation."""
    keys = key.split(".")
    current = config

    for k in keys[:-1]:
        if k not in current or not isinstance(current[k], dict):
            current[k] = {}
        current = current[k]

    current[keys[-1]] = value
