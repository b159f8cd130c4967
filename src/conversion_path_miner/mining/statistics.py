"""Distinct-item exposure statistics."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

import numpy as np

from .dedup import first_occurrences

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SequenceSummary:
    mean_distinct_items: Optional[float]
    median_distinct_items: Optional[float]
    population_size: int
    users_with_items: int
    users_without_items: int


def distinct_item_counts(sequences: Mapping[object, Sequence[str]]) -> np.ndarray:
    """Number of distinct tokens per user, zeros included."""

    return np.array(
        [len(first_occurrences(tokens)) for tokens in sequences.values()],
        dtype=float,
    )


def summarise_distinct_items(
    sequences: Mapping[object, Sequence[str]],
    *,
    population_size: Optional[int] = None,
    include_zero_activity_users: bool = True,
) -> SequenceSummary:
    """Mean and median distinct items per eligible user.

    ``sequences`` must hold every eligible user, with an empty sequence for
    users whose window had no events. When ``include_zero_activity_users`` is
    false those users are left out of the mean and median but still counted
    in ``users_without_items``.
    """

    counts = distinct_item_counts(sequences)
    if population_size is None:
        population_size = len(counts)

    users_with_items = int(np.count_nonzero(counts > 0))
    users_without_items = int(np.count_nonzero(counts == 0))

    considered = counts if include_zero_activity_users else counts[counts > 0]
    if population_size == 0 or considered.size == 0:
        if population_size == 0:
            logger.warning("No eligible users; distinct-item statistics are undefined")
        return SequenceSummary(
            mean_distinct_items=None,
            median_distinct_items=None,
            population_size=population_size,
            users_with_items=users_with_items,
            users_without_items=users_without_items,
        )

    return SequenceSummary(
        mean_distinct_items=float(np.mean(considered)),
        median_distinct_items=float(np.percentile(considered, 50, method="linear")),
        population_size=population_size,
        users_with_items=users_with_items,
        users_without_items=users_without_items,
    )
