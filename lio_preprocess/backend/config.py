"""
Preprocessing configuration loading.

Bridges YAML configuration files (config/lio_preprocess_base.yaml plus
optional presets) and the pydantic validation model (common/param_models.py).

Usage:
    from lio_preprocess.backend.config import load_preprocess_config

    base, _ = get_default_config_paths()
    params = load_preprocess_config(base, get_preset_path("livox_avia"))
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from lio_preprocess.common.param_models import PreprocessParams

CONFIG_SECTION = "lio_preprocess"


def load_yaml_config(config_path: str | Path) -> Dict[str, Any]:
    """
    Load YAML configuration file.

    Args:
        config_path: Path to YAML file

    Returns:
        Dictionary with configuration values

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid YAML
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        return yaml.safe_load(f) or {}


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """Merge configuration dictionaries (later configs override earlier)."""
    result: Dict[str, Any] = {}
    for config in configs:
        if config:
            _deep_merge(result, config)
    return result


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Deep merge override dict into base dict (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def load_preprocess_config(
    base_path: Optional[str | Path] = None,
    preset_path: Optional[str | Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> PreprocessParams:
    """
    Load and validate preprocessing configuration.

    Args:
        base_path: Path to base configuration YAML (lio_preprocess_base.yaml)
        preset_path: Optional path to preset override YAML
        overrides: Optional dictionary of parameter overrides

    Returns:
        Validated PreprocessParams model

    Raises:
        ValidationError: If configuration is invalid
    """
    base_config: Dict[str, Any] = {}
    if base_path:
        base_config = load_yaml_config(base_path).get(CONFIG_SECTION, {}) or {}

    preset_config: Dict[str, Any] = {}
    if preset_path:
        preset_config = load_yaml_config(preset_path).get(CONFIG_SECTION, {}) or {}

    # base <- preset <- overrides
    merged = merge_configs(base_config, preset_config, overrides or {})
    return PreprocessParams(**merged)


def get_default_config_paths() -> tuple[Path, Path]:
    """
    Get default paths to configuration files relative to the repository.

    Returns:
        Tuple of (base_config_path, presets_dir_path)
    """
    repo_root = Path(__file__).parent.parent.parent
    base_config = repo_root / "config" / "lio_preprocess_base.yaml"
    presets_dir = repo_root / "config" / "presets"
    return base_config, presets_dir


def get_preset_path(preset_name: str) -> Optional[Path]:
    """Path to config/presets/<preset_name>.yaml, or None if absent."""
    _, presets_dir = get_default_config_paths()
    preset_path = presets_dir / f"{preset_name}.yaml"
    return preset_path if preset_path.exists() else None
