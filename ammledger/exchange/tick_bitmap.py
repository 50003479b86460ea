"""
Bitmap of initialized ticks.

Ticks are compressed by the pool's tick spacing and packed 256 to a word:
word = compressed >> 8, bit = compressed & 0xff. A sorted index of non-empty
words per pool lets the swap loop skip empty stretches with a binary search.
"""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from typing import Optional, Tuple

from ..constants import MAX_TICK, MIN_TICK
from .storage import JournaledStorage

_WORD_BITS = 256
_WORD_MASK = (1 << _WORD_BITS) - 1


def _position(tick: int, tick_spacing: int) -> Tuple[int, int]:
    compressed = tick // tick_spacing
    return compressed >> 8, compressed & 0xFF


class TickBitmap:

    def __init__(self, storage: JournaledStorage) -> None:
        self.storage = storage

    def _word(self, pool_id: str, word: int) -> int:
        return self.storage.get(("bitmap_word", pool_id, word), 0)

    def _words(self, pool_id: str) -> Tuple[int, ...]:
        return self.storage.get(("bitmap_words", pool_id), ())

    def is_initialized(self, pool_id: str, tick: int, tick_spacing: int) -> bool:
        word, bit = _position(tick, tick_spacing)
        return bool(self._word(pool_id, word) >> bit & 1)

    def set_initialized(self, pool_id: str, tick: int, tick_spacing: int, initialized: bool) -> None:
        word, bit = _position(tick, tick_spacing)
        current = self._word(pool_id, word)
        updated = current | (1 << bit) if initialized else current & ~(1 << bit) & _WORD_MASK
        if updated == current:
            return

        words = self._words(pool_id)
        if updated:
            self.storage.set(("bitmap_word", pool_id, word), updated)
            if not current:
                index = bisect_left(words, word)
                self.storage.set(("bitmap_words", pool_id), words[:index] + (word,) + words[index:])
        else:
            self.storage.delete(("bitmap_word", pool_id, word))
            index = bisect_left(words, word)
            self.storage.set(("bitmap_words", pool_id), words[:index] + words[index + 1:])

    def next_initialized_tick(self, pool_id: str, tick: int, tick_spacing: int) -> Tuple[int, bool]:
        """
        Smallest initialized tick strictly above `tick`.

        Returns (MAX_TICK, False) when there is none.
        """
        word, bit = _position(tick // tick_spacing * tick_spacing + tick_spacing, tick_spacing)
        found = self._search_up(pool_id, word, bit)
        if found is None:
            return MAX_TICK, False
        return found * tick_spacing, True

    def prev_initialized_tick(self, pool_id: str, tick: int, tick_spacing: int) -> Tuple[int, bool]:
        """
        Largest initialized tick at or below `tick`.

        Returns (MIN_TICK, False) when there is none.
        """
        word, bit = _position(tick // tick_spacing * tick_spacing, tick_spacing)
        found = self._search_down(pool_id, word, bit)
        if found is None:
            return MIN_TICK, False
        return found * tick_spacing, True

    def _search_up(self, pool_id: str, word: int, bit: int) -> Optional[int]:
        masked = self._word(pool_id, word) & (_WORD_MASK << bit) & _WORD_MASK
        if masked:
            return (word << 8) + _lowest_bit(masked)
        words = self._words(pool_id)
        index = bisect_right(words, word)
        if index == len(words):
            return None
        word = words[index]
        return (word << 8) + _lowest_bit(self._word(pool_id, word))

    def _search_down(self, pool_id: str, word: int, bit: int) -> Optional[int]:
        masked = self._word(pool_id, word) & ((1 << (bit + 1)) - 1)
        if masked:
            return (word << 8) + masked.bit_length() - 1
        words = self._words(pool_id)
        index = bisect_left(words, word)
        if index == 0:
            return None
        word = words[index - 1]
        return (word << 8) + self._word(pool_id, word).bit_length() - 1


def _lowest_bit(value: int) -> int:
    return (value & -value).bit_length() - 1
