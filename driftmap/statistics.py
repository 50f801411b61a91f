"""Change statistics."""

from __future__ import annotations

from typing import Iterable

from .models import ADDITIONS, REMOVALS, ChangeKind, ChangeStatistics, Diff


def calculate_statistics(changes: Iterable[Diff]) -> ChangeStatistics:
    """
    Count additions, modifications and removals.

    Whole-object additions and removals count once each, the same as a single
    property. Pass a deduplicated change set; duplicates are counted as given.
    """
    stats = ChangeStatistics()
    for change in changes:
        if change.kind == ChangeKind.MODIFIED:
            stats.modifications += 1
        elif change.kind in ADDITIONS:
            stats.additions += 1
        elif change.kind in REMOVALS:
            stats.removals += 1
    return stats
