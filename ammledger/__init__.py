"""
AMM Ledger Package

Core imports are lazily loaded so that importing a submodule (e.g. the math
package) does not pull in the whole exchange core.
For direct module access, import from submodules:

    from ammledger.exchange import Core, PoolKey, PoolConfig
    from ammledger.math import tick_to_sqrt_ratio, FeeTier
    from ammledger.exceptions import DebtsNotSettled
"""

__version__ = "0.1.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'Core':
        from .exchange import Core
        return Core
    elif name == 'load_config':
        from .config import load_config
        return load_config
    elif name == 'LedgerError':
        from .exceptions import LedgerError
        return LedgerError
    raise AttributeError(f"module 'ammledger' has no attribute {name!r}")

__all__ = ['Core', 'load_config', 'LedgerError']
