"""
AMM Ledger TOML Configuration Loader

Loads every section of ledger.toml with environment variable overrides.
Each section is a dataclass with from_dict + apply_env; LedgerConfig ties
them together with from_file, validate and to_dict.

Environment variable mapping:
    [ledger] address                    → AMMLEDGER_ADDRESS
    [ledger] max_tick_spacing           → AMMLEDGER_MAX_TICK_SPACING
    [ledger] require_completed_payments → AMMLEDGER_REQUIRE_COMPLETED_PAYMENTS
    [logging] level                     → AMMLEDGER_LOG_LEVEL
    [logging] file                      → AMMLEDGER_LOG_FILE
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from eth_utils import is_address, to_checksum_address

from ..constants import AMMLEDGER_ADDRESS, MAX_TICK_SPACING
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------

@dataclass
class LedgerSectionConfig:
    """[ledger] section."""
    address: str = str(AMMLEDGER_ADDRESS)
    max_tick_spacing: int = MAX_TICK_SPACING
    require_completed_payments: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerSectionConfig":
        return cls(
            address=data.get("address", str(AMMLEDGER_ADDRESS)),
            max_tick_spacing=data.get("max_tick_spacing", MAX_TICK_SPACING),
            require_completed_payments=data.get("require_completed_payments", True),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("AMMLEDGER_ADDRESS"):
            self.address = v
        if v := os.environ.get("AMMLEDGER_MAX_TICK_SPACING"):
            self.max_tick_spacing = int(v)
        if v := os.environ.get("AMMLEDGER_REQUIRE_COMPLETED_PAYMENTS"):
            self.require_completed_payments = _parse_bool(v)


@dataclass
class LoggingConfig:
    """[logging] section."""
    level: str = "INFO"
    file: str = ""
    console_output: bool = True
    file_output: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        return cls(
            level=data.get("level", "INFO"),
            file=data.get("file", ""),
            console_output=data.get("console_output", True),
            file_output=data.get("file_output", False),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("AMMLEDGER_LOG_LEVEL"):
            self.level = v
        if v := os.environ.get("AMMLEDGER_LOG_FILE"):
            self.file = v
            self.file_output = True


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------

@dataclass
class LedgerConfig:
    """
    Complete ledger configuration.

    Loads every section of ledger.toml and applies environment variable
    overrides on top.
    """
    ledger: LedgerSectionConfig = field(default_factory=LedgerSectionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerConfig":
        return cls(
            ledger=LedgerSectionConfig.from_dict(data.get("ledger", {})),
            logging=LoggingConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "LedgerConfig":
        """
        Load configuration from a TOML file.

        Raises:
            ConfigurationError: if the file is missing or is not valid TOML.
        """
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        try:
            with open(path, "rb") as f:
                raw = tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        config = cls.from_dict(raw)
        logger.info("Loaded ledger configuration from %s", config_path)
        return config

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.ledger.apply_env()
        self.logging.apply_env()

    def validate(self) -> bool:
        """
        Validate the configuration.

        Raises:
            ConfigurationError: on the first invalid value.
        """
        if not is_address(self.ledger.address):
            raise ConfigurationError(f"Invalid ledger address: {self.ledger.address!r}")
        self.ledger.address = to_checksum_address(self.ledger.address)

        if not 1 <= self.ledger.max_tick_spacing <= MAX_TICK_SPACING:
            raise ConfigurationError(
                f"max_tick_spacing must be within [1, {MAX_TICK_SPACING}] "
                f"(got {self.ledger.max_tick_spacing})"
            )

        if self.logging.level.upper() not in _LOG_LEVELS:
            raise ConfigurationError(f"Unknown log level: {self.logging.level!r}")

        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ledger": {
                "address": self.ledger.address,
                "max_tick_spacing": self.ledger.max_tick_spacing,
                "require_completed_payments": self.ledger.require_completed_payments,
            },
            "logging": {
                "level": self.logging.level,
                "file": self.logging.file,
                "console_output": self.logging.console_output,
                "file_output": self.logging.file_output,
            },
        }


def load_config(path: Optional[str] = None) -> LedgerConfig:
    """
    Load, override and validate the ledger configuration.

    Without a path, AMMLEDGER_CONFIG is consulted; when neither names an
    existing file the defaults are used.
    """
    if path is None:
        path = os.environ.get("AMMLEDGER_CONFIG", "ledger.toml")

    if Path(path).exists():
        config = LedgerConfig.from_file(path)
    else:
        logger.debug("No config file at %s, using defaults", path)
        config = LedgerConfig()

    config.apply_env()
    config.validate()
    return config
