"""
config_loader.py
-----------------
Singleton config loader. Reads config.yaml once and caches it.
All modules access configuration through this, never hardcoded values.
"""

import os
import yaml
from typing import Any, Dict


_CONFIG_CACHE: Dict[str, Any] = {}


def load_config(config_path: str | None = None) -> Dict[str, Any]:
    """
    Load and cache the YAML configuration file.

    Args:
        config_path: Path to config.yaml. Defaults to config/ relative to this file.
            Passing a path after the cache is warm has no effect; call
            reset_config() first.

    Returns:
        Full config dictionary.
    """
    global _CONFIG_CACHE

    if _CONFIG_CACHE:
        return _CONFIG_CACHE

    if config_path is None:
        config_path = os.path.join(os.path.dirname(__file__), "config.yaml")

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r") as f:
        _CONFIG_CACHE = yaml.safe_load(f) or {}

    return _CONFIG_CACHE


def _get_block(name: str) -> Dict[str, Any]:
    config = load_config()
    if name not in config:
        raise KeyError(
            f"Missing config block '{name}'. "
            f"Available: {list(config.keys())}"
        )
    return config[name]


def get_input_config() -> Dict[str, Any]:
    """Returns the input block (direction inference)."""
    return _get_block("input")


def get_name_normalization_config() -> Dict[str, Any]:
    """Returns the name_normalization block."""
    return _get_block("name_normalization")


def get_grouping_config() -> Dict[str, Any]:
    """Returns the grouping block (both strategies)."""
    return _get_block("grouping")


def get_frequency_analysis_config() -> Dict[str, Any]:
    """Returns the frequency_analysis block."""
    return _get_block("frequency_analysis")


def get_confidence_scoring_config() -> Dict[str, Any]:
    """Returns the confidence_scoring block."""
    return _get_block("confidence_scoring")


def get_categorization_config() -> Dict[str, Any]:
    """Returns the categorization block, including the ordered rule table."""
    return _get_block("categorization")


def get_deduplication_config() -> Dict[str, Any]:
    """Returns the deduplication block."""
    return _get_block("deduplication")


def get_enrichment_config() -> Dict[str, Any]:
    """Returns the enrichment block."""
    return _get_block("enrichment")


def reset_config() -> None:
    """Clears cached config. Useful for testing."""
    global _CONFIG_CACHE
    _CONFIG_CACHE = {}
