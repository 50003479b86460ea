"""
Test suite for ledger configuration

Covers:
  - Defaults and TOML loading
  - Environment variable overrides
  - Validation errors
"""

import pytest
from eth_utils import to_checksum_address

from ammledger.config import LedgerConfig, LoggingConfig, load_config
from ammledger.constants import AMMLEDGER_ADDRESS, MAX_TICK_SPACING
from ammledger.exceptions import ConfigurationError

ENV_VARS = (
    "AMMLEDGER_CONFIG",
    "AMMLEDGER_ADDRESS",
    "AMMLEDGER_MAX_TICK_SPACING",
    "AMMLEDGER_REQUIRE_COMPLETED_PAYMENTS",
    "AMMLEDGER_LOG_LEVEL",
    "AMMLEDGER_LOG_FILE",
)

SAMPLE_TOML = """
[ledger]
address = "0x00000000000000000000000000000000000000aa"
max_tick_spacing = 20000
require_completed_payments = false

[logging]
level = "DEBUG"
console_output = false
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "ledger.toml"
    path.write_text(SAMPLE_TOML)
    return path


# ============================================================================
#  LOADING
# ============================================================================

class TestLoading:

    def test_defaults(self):
        config = LedgerConfig()
        assert config.ledger.address == str(AMMLEDGER_ADDRESS)
        assert config.ledger.max_tick_spacing == MAX_TICK_SPACING
        assert config.ledger.require_completed_payments is True
        assert config.logging == LoggingConfig()

    def test_from_file(self, config_file):
        config = LedgerConfig.from_file(str(config_file))
        assert config.ledger.address == "0x00000000000000000000000000000000000000aa"
        assert config.ledger.max_tick_spacing == 20000
        assert config.ledger.require_completed_payments is False
        assert config.logging.level == "DEBUG"
        assert config.logging.console_output is False
        # unspecified keys keep their defaults
        assert config.logging.file_output is False

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            LedgerConfig.from_file(str(tmp_path / "absent.toml"))

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "broken.toml"
        path.write_text("[ledger\naddress = ")
        with pytest.raises(ConfigurationError, match="Invalid TOML"):
            LedgerConfig.from_file(str(path))

    def test_to_dict_round_trip(self, config_file):
        config = LedgerConfig.from_file(str(config_file))
        assert LedgerConfig.from_dict(config.to_dict()) == config

    def test_load_config_checksums_address(self, config_file):
        config = load_config(str(config_file))
        assert config.ledger.address == to_checksum_address("0x00000000000000000000000000000000000000aa")

    def test_load_config_without_file_uses_defaults(self, tmp_path):
        config = load_config(str(tmp_path / "absent.toml"))
        assert config.ledger.address.lower() == str(AMMLEDGER_ADDRESS)
        assert config.ledger.max_tick_spacing == MAX_TICK_SPACING

    def test_load_config_path_from_env(self, config_file, monkeypatch):
        monkeypatch.setenv("AMMLEDGER_CONFIG", str(config_file))
        assert load_config().ledger.max_tick_spacing == 20000


# ============================================================================
#  ENVIRONMENT OVERRIDES
# ============================================================================

class TestEnvironmentOverrides:

    def test_ledger_section(self, config_file, monkeypatch):
        monkeypatch.setenv("AMMLEDGER_ADDRESS", "0x" + "11" * 20)
        monkeypatch.setenv("AMMLEDGER_MAX_TICK_SPACING", "100")
        monkeypatch.setenv("AMMLEDGER_REQUIRE_COMPLETED_PAYMENTS", "yes")

        config = load_config(str(config_file))
        assert config.ledger.address == "0x" + "11" * 20
        assert config.ledger.max_tick_spacing == 100
        assert config.ledger.require_completed_payments is True

    def test_log_file_enables_file_output(self, monkeypatch, tmp_path):
        log_file = str(tmp_path / "ledger.log")
        monkeypatch.setenv("AMMLEDGER_LOG_FILE", log_file)
        monkeypatch.setenv("AMMLEDGER_LOG_LEVEL", "warning")

        config = LedgerConfig()
        config.apply_env()
        assert config.logging.file == log_file
        assert config.logging.file_output is True
        assert config.logging.level == "warning"
        assert config.validate()

    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("1", True), ("ON", True), ("false", False), ("0", False), ("off", False),
    ])
    def test_boolean_parsing(self, monkeypatch, raw, expected):
        monkeypatch.setenv("AMMLEDGER_REQUIRE_COMPLETED_PAYMENTS", raw)
        config = LedgerConfig()
        config.apply_env()
        assert config.ledger.require_completed_payments is expected


# ============================================================================
#  VALIDATION
# ============================================================================

class TestValidation:

    def test_bad_address(self):
        config = LedgerConfig()
        config.ledger.address = "0xnot-an-address"
        with pytest.raises(ConfigurationError, match="address"):
            config.validate()

    @pytest.mark.parametrize("spacing", [0, MAX_TICK_SPACING + 1])
    def test_tick_spacing_bounds(self, spacing):
        config = LedgerConfig()
        config.ledger.max_tick_spacing = spacing
        with pytest.raises(ConfigurationError, match="max_tick_spacing"):
            config.validate()

    def test_unknown_log_level(self):
        config = LedgerConfig()
        config.logging.level = "LOUD"
        with pytest.raises(ConfigurationError, match="log level"):
            config.validate()

    def test_env_value_validated(self, monkeypatch, tmp_path):
        monkeypatch.setenv("AMMLEDGER_ADDRESS", "nope")
        with pytest.raises(ConfigurationError):
            load_config(str(tmp_path / "absent.toml"))
