"""Reductions over a user's chronological token sequence.

Two deduplication semantics live here as separate functions:

* ``collapse_consecutive`` removes back-to-back repeats only, so a user who
  returns to an item later still shows that return. Paths are built on it.
* ``first_occurrences`` keeps the earliest instance of each token and treats
  the sequence as a set. Combinations and distinct-item counts use it.
"""
from __future__ import annotations

from typing import Iterable, List, Sequence


def collapse_consecutive(tokens: Iterable[str]) -> List[str]:
    """Drop tokens equal to their immediate predecessor.

    >>> collapse_consecutive(["A", "A", "B", "A", "A", "C"])
    ['A', 'B', 'A', 'C']
    """

    collapsed: List[str] = []
    for token in tokens:
        if collapsed and collapsed[-1] == token:
            continue
        collapsed.append(token)
    return collapsed


def first_occurrences(tokens: Iterable[str]) -> List[str]:
    """Keep only the first appearance of each token, in original order.

    >>> first_occurrences(["A", "A", "B", "A", "A", "C"])
    ['A', 'B', 'C']
    """

    seen = set()
    distinct: List[str] = []
    for token in tokens:
        if token in seen:
            continue
        seen.add(token)
        distinct.append(token)
    return distinct


def last_n(tokens: Sequence[str], n: int) -> List[str]:
    """Return the ``n`` tokens nearest the end of the sequence."""

    if n < 1:
        raise ValueError("n must be at least 1")
    return list(tokens[-n:])
