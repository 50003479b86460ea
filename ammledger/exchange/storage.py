"""
In-process host storage.

JournaledStorage is the persistent key/value store the ledger writes to. Each
write records the previous value in a journal so that snapshot() / revert()
can unwind everything a failed call did. TokenBank keeps token balances in the
same storage, so a reverted call also reverts its transfers.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Hashable, List, Tuple

from ..exceptions import InsufficientBalance, ValidationError
from .types import to_address

logger = logging.getLogger(__name__)

_MISSING = object()


class JournaledStorage:
    """Key/value store with nested snapshots."""

    def __init__(self) -> None:
        self._data: Dict[Hashable, Any] = {}
        self._journal: List[Tuple[Hashable, Any]] = []
        self._snapshots: List[int] = []

    def get(self, key: Hashable, default: Any = None) -> Any:
        return self._data.get(key, default)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def set(self, key: Hashable, value: Any) -> None:
        if self._snapshots:
            self._journal.append((key, self._data.get(key, _MISSING)))
        self._data[key] = value

    def delete(self, key: Hashable) -> None:
        if key not in self._data:
            return
        if self._snapshots:
            self._journal.append((key, self._data[key]))
        del self._data[key]

    @property
    def depth(self) -> int:
        return len(self._snapshots)

    def snapshot(self) -> int:
        """
        Mark the current state.

        Returns:
            Snapshot id for revert() or commit().
        """
        self._snapshots.append(len(self._journal))
        return len(self._snapshots) - 1

    def revert(self, snapshot_id: int) -> None:
        """Undo every write made since the snapshot and drop it with any newer ones."""
        self._check_snapshot(snapshot_id)
        mark = self._snapshots[snapshot_id]
        while len(self._journal) > mark:
            key, previous = self._journal.pop()
            if previous is _MISSING:
                self._data.pop(key, None)
            else:
                self._data[key] = previous
        del self._snapshots[snapshot_id:]

    def commit(self, snapshot_id: int) -> None:
        """Keep the writes made since the snapshot; the journal is dropped once no snapshot is open."""
        self._check_snapshot(snapshot_id)
        del self._snapshots[snapshot_id:]
        if not self._snapshots:
            self._journal.clear()

    def _check_snapshot(self, snapshot_id: int) -> None:
        if snapshot_id < 0 or snapshot_id >= len(self._snapshots):
            raise ValueError(f"Invalid snapshot ID: {snapshot_id}")


class TokenBank:
    """Token balances keyed by (token, owner), held in journaled storage."""

    def __init__(self, storage: JournaledStorage) -> None:
        self.storage = storage

    @staticmethod
    def _key(token: str, owner: str) -> Tuple[str, str, str]:
        return ("balance", to_address(token), to_address(owner))

    def balance_of(self, token: str, owner: str) -> int:
        return self.storage.get(self._key(token, owner), 0)

    def mint(self, token: str, owner: str, amount: int) -> None:
        if amount < 0:
            raise ValidationError(f"Cannot mint a negative amount ({amount})")
        key = self._key(token, owner)
        self.storage.set(key, self.storage.get(key, 0) + amount)

    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None:
        """
        Move tokens between owners.

        Raises:
            InsufficientBalance: the sender holds less than amount.
        """
        if amount < 0:
            raise ValidationError(f"Cannot transfer a negative amount ({amount})")
        sender_key = self._key(token, sender)
        recipient_key = self._key(token, recipient)
        balance = self.storage.get(sender_key, 0)
        if balance < amount:
            raise InsufficientBalance(
                f"{sender_key[2]} holds {balance} of {sender_key[1]}, cannot transfer {amount}"
            )
        self.storage.set(sender_key, balance - amount)
        self.storage.set(recipient_key, self.storage.get(recipient_key, 0) + amount)
        logger.debug("Transfer %s %s → %s: %d", sender_key[1], sender_key[2], recipient_key[2], amount)
