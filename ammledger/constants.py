"""
AMM Ledger Constants

This module consolidates the global constants and environment configuration
used throughout the codebase. Constants are organized by category for easy
reference and maintenance.
"""
import ast
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LEDGER_DEFAULTS = {
    'AMMLEDGER_ADDRESS':               '0x000000000000000000000000000000000000c0de',
}

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE VALUES BELOW DEFINE THE NUMERIC DOMAIN OF THE LEDGER. CHANGING THEM
# CHANGES EVERY PRICE, EVERY FEE AND EVERY ROUNDING RESULT.

# ==================================================================================
# FIXED-WIDTH CONTAINERS
# ==================================================================================
U64_MAX = 2**64 - 1
U128_MAX = 2**128 - 1
I128_MIN = -(2**127)
I128_MAX = 2**127 - 1
I256_MIN = -(2**255)
I256_MAX = 2**255 - 1


# ==================================================================================
# PRICE DOMAIN
# ==================================================================================
# price = 1.000001 ** tick; sqrt ratios are 64.128 fixed point
TICK_BASE_NUMERATOR = 1_000_001
TICK_BASE_DENOMINATOR = 1_000_000
MIN_TICK = -88_722_835
MAX_TICK = 88_722_835
MAX_TICK_SPACING = 698_605
FULL_RANGE_ONLY_TICK_SPACING = 0

# Fixed-point sqrt ratios must stay below 2**192 (a 64.128 number)
MAX_FIXED_SQRT_RATIO = 2**192

# Compact sqrt ratio: 2 window bits + 94 mantissa bits
SQRT_RATIO_MANTISSA_BITS = 94
SQRT_RATIO_WINDOW_SHIFTS = (2, 34, 66, 98)


# ==================================================================================
# FEES
# ==================================================================================
# Fees are 0.64 fixed-point fractions of the input amount
FEE_DENOMINATOR = 2**64


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
DEFAULTS = LEDGER_DEFAULTS | LOGGER_DEFAULTS
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    # Case-insensitive membership check
    if s.casefold() in {"true", "false"}:
        # ast.literal_eval expects "True"/"False"
        return ast.literal_eval(s.title())
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    # Parses only boolean-literals. Leaves other values untouched.
    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    # Wraps based on parsed value type.
    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        # Preserves the original raw string for ConfigString storage.
        namespace[key] = ConfigString(value_raw, default_val)
