"""
AMM Ledger Configuration

Loads ledger.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    LedgerConfig,
    LedgerSectionConfig,
    LoggingConfig,
    load_config,
)

__all__ = [
    "LedgerConfig",
    "LedgerSectionConfig",
    "LoggingConfig",
    "load_config",
]
