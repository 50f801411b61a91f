"""Run-level deduplication of diffs by source location."""

from __future__ import annotations

import threading
from typing import Optional

from .models import Diff

UNKNOWN_LOCATION = "0:0:0:0"


def location_hash(diff: Diff) -> str:
    """
    Location hash of a diff: "origLine:origCol:newLine:newCol", zero-filled.
    """
    ctx = diff.context
    return "{}:{}:{}:{}".format(
        ctx.original_line or 0,
        ctx.original_column or 0,
        ctx.new_line or 0,
        ctx.new_column or 0,
    )


class DedupLedger:
    """
    Remembers the first diff seen at each source location.

    A diff at an unknown location ("0:0:0:0") is never collapsed with another,
    but the same diff object is only ever admitted once.
    """

    def __init__(self):
        self._first: dict[str, Diff] = {}
        self._admitted: set[int] = set()
        self._lock = threading.Lock()

    def admit(self, diff: Diff) -> bool:
        """Return True when the diff is new to this run and record it."""
        with self._lock:
            if id(diff) in self._admitted:
                return False
            hash_ = location_hash(diff)
            if hash_ != UNKNOWN_LOCATION:
                if hash_ in self._first:
                    return False
                self._first[hash_] = diff
            self._admitted.add(id(diff))
            return True

    def first(self, hash_: str) -> Optional[Diff]:
        with self._lock:
            return self._first.get(hash_)

    def __contains__(self, hash_: str) -> bool:
        with self._lock:
            return hash_ in self._first

    def __len__(self) -> int:
        with self._lock:
            return len(self._admitted)
