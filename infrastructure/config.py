"""
CANOPY CONFIG - Store Behaviour Settings

Configuration is loaded once from config/canopy.toml (the [tree_store]
table) and handed to each TreeStore as a StoreConfig.

Usage:
    from infrastructure.config import load_store_config

    config = load_store_config()
    store = TreeStore(items, config=config)

Settings:
- strict: raise typed exceptions on rejected mutations instead of
  returning a rejected MutationResult
- validate_on_build: drop nodes with an unknown parent at construction
- log_mutations: record MutationEvents in the store's mutation log
- event_buffer_size: ring buffer size of the mutation log
"""
import tomllib
import warnings
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "canopy.toml"
CONFIG_SECTION = "tree_store"


@dataclass
class StoreConfig:
    """Configuration for a TreeStore."""
    strict: bool = False                # Raise instead of returning a rejection
    validate_on_build: bool = False     # Reject dangling parents at construction
    log_mutations: bool = True          # Record mutation events
    event_buffer_size: int = 10000      # Mutation log ring buffer size

    def __post_init__(self):
        if self.event_buffer_size < 1:
            raise ValueError(
                f"event_buffer_size must be positive, got {self.event_buffer_size}"
            )

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "StoreConfig":
        """
        Build a config from a mapping, ignoring unknown keys.

        Unknown keys produce a warning so typos in the TOML file are visible.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            warnings.warn(f"Ignoring unknown tree_store settings: {', '.join(unknown)}")
        return cls(**{k: v for k, v in values.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def load_toml_config(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load the raw TOML configuration.

    Returns:
        Dict with all configuration sections, or {} if the file can't be read
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    try:
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        warnings.warn(f"Failed to load config from TOML: {e}")
        return {}


def load_store_config(path: Optional[Union[str, Path]] = None) -> StoreConfig:
    """
    Load the [tree_store] section into a StoreConfig.

    Missing file or missing section falls back to defaults.
    """
    section = load_toml_config(path).get(CONFIG_SECTION, {})
    if not isinstance(section, dict):
        warnings.warn(f"[{CONFIG_SECTION}] must be a table, using defaults")
        return StoreConfig()
    return StoreConfig.from_dict(section)
