"""
CANOPY INFRASTRUCTURE - System-Level Modules

This package contains infrastructure components:
- config: StoreConfig and TOML loading
- logger: Mutation event logging
"""

from infrastructure.config import StoreConfig, load_store_config
from infrastructure.logger import (
    LoggerConfig,
    MutationEvent,
    MutationLogger,
    MutationType,
)

__all__ = [
    "StoreConfig",
    "load_store_config",
    "LoggerConfig",
    "MutationEvent",
    "MutationLogger",
    "MutationType",
]
