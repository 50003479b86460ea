"""
Shared fixtures for all tests.
"""

import logging

import pytest

from ammledger.exchange import Core

from helpers import ALICE, BOB, CAROL, EXTENSION, INITIAL_BALANCE, TOKEN0, TOKEN1, TOKEN2


@pytest.fixture
def core():
    """Fresh ledger with nothing minted."""
    return Core()


@pytest.fixture
def funded_core(core):
    """Ledger whose test actors each hold a large balance of every test token."""
    for owner in (ALICE, BOB, CAROL, EXTENSION):
        for token in (TOKEN0, TOKEN1, TOKEN2):
            core.bank.mint(token, owner, INITIAL_BALANCE)
    return core


@pytest.fixture(autouse=True)
def _quiet_root_logger():
    """Keep handler state from leaking between logger tests."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
