"""Ranking of the items, item sets and paths seen before conversion.

Mining runs in two phases. Each user's token sequence is first reduced on its
own (``reduce_user``); this step is independent per user and can be spread
over worker processes. The reductions are then merged, counted and ranked in
a single pass per analysis type.
"""
from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, Iterable, List, Mapping, Sequence, Tuple

from ..config import MinerConfig
from .dedup import collapse_consecutive, first_occurrences, last_n

logger = logging.getLogger(__name__)

TOP_ITEM = "top_item"
COMBINATION = "combination"
FULL_SEQUENCE = "full_sequence"
ANALYSIS_TYPES = (TOP_ITEM, COMBINATION, FULL_SEQUENCE)


@dataclass(frozen=True)
class PathAnalysisRow:
    analysis_type: str
    rank: int
    item_sequence: Tuple[str, ...]
    matching_user_count: int
    pct_of_population: float
    population_size: int


@dataclass(frozen=True)
class UserReduction:
    """Everything the ranking phase needs from one user."""

    user_id: object
    distinct_items: Tuple[str, ...]
    path: Tuple[str, ...]


def percentage(count: int, population_size: int) -> float:
    """Share of the eligible population, in percent rounded to two places."""

    if population_size <= 0:
        return 0.0
    return round(count / population_size * 100, 2)


def reduce_user(entry: Tuple[object, Sequence[str]], *, path_length: int) -> UserReduction:
    user_id, tokens = entry
    return UserReduction(
        user_id=user_id,
        distinct_items=tuple(first_occurrences(tokens)),
        path=tuple(last_n(collapse_consecutive(tokens), path_length)),
    )


def reduce_users(
    sequences: Mapping[object, Sequence[str]],
    *,
    path_length: int,
    workers: int = 1,
) -> List[UserReduction]:
    """Reduce every user's sequence, in parallel when ``workers > 1``."""

    reducer = partial(reduce_user, path_length=path_length)
    entries = list(sequences.items())
    if workers <= 1 or len(entries) < workers:
        return [reducer(entry) for entry in entries]

    chunksize = max(1, len(entries) // (workers * 4))
    with ProcessPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(reducer, entries, chunksize=chunksize))


def _by_count_then_length(item: Tuple[Tuple[str, ...], int]) -> tuple:
    # Equal counts: longer patterns first, then lexicographic.
    key, count = item
    return (-count, -len(key), key)


def _ranked_rows(
    counts: Counter,
    *,
    analysis_type: str,
    population_size: int,
    top_k: int,
    sort_key: Callable[[Tuple[Tuple[str, ...], int]], tuple],
) -> List[PathAnalysisRow]:
    ordered = sorted(counts.items(), key=sort_key)[:top_k]
    return [
        PathAnalysisRow(
            analysis_type=analysis_type,
            rank=rank,
            item_sequence=key,
            matching_user_count=count,
            pct_of_population=percentage(count, population_size),
            population_size=population_size,
        )
        for rank, (key, count) in enumerate(ordered, start=1)
    ]


def rank_top_items(
    reductions: Iterable[UserReduction],
    *,
    population_size: int,
    top_k: int = 10,
) -> List[PathAnalysisRow]:
    """Rank single items by the number of distinct users who saw them."""

    reach: Counter = Counter()
    for reduction in reductions:
        for token in reduction.distinct_items:
            reach[(token,)] += 1

    def sort_key(item: Tuple[Tuple[str, ...], int]) -> tuple:
        key, count = item
        return (-percentage(count, population_size), -count, key)

    return _ranked_rows(
        reach,
        analysis_type=TOP_ITEM,
        population_size=population_size,
        top_k=top_k,
        sort_key=sort_key,
    )


def rank_combinations(
    reductions: Iterable[UserReduction],
    *,
    population_size: int,
    top_k: int = 10,
    min_size: int = 2,
) -> List[PathAnalysisRow]:
    """Rank unordered item sets; users with fewer than ``min_size`` items are skipped."""

    sets: Counter = Counter()
    for reduction in reductions:
        if len(reduction.distinct_items) < min_size:
            continue
        sets[tuple(sorted(reduction.distinct_items))] += 1

    return _ranked_rows(
        sets,
        analysis_type=COMBINATION,
        population_size=population_size,
        top_k=top_k,
        sort_key=_by_count_then_length,
    )


def rank_full_sequences(
    reductions: Iterable[UserReduction],
    *,
    population_size: int,
    top_k: int = 10,
) -> List[PathAnalysisRow]:
    """Rank exact ordered paths taken in the run-up to conversion."""

    paths: Counter = Counter()
    for reduction in reductions:
        if reduction.path:
            paths[reduction.path] += 1

    return _ranked_rows(
        paths,
        analysis_type=FULL_SEQUENCE,
        population_size=population_size,
        top_k=top_k,
        sort_key=_by_count_then_length,
    )


def mine_patterns(
    sequences: Mapping[object, Sequence[str]],
    *,
    population_size: int,
    config: MinerConfig,
) -> Dict[str, List[PathAnalysisRow]]:
    """Run all three ranking passes over per-user token sequences."""

    reductions = reduce_users(sequences, path_length=config.last_n, workers=config.workers)
    rows = {
        TOP_ITEM: rank_top_items(reductions, population_size=population_size, top_k=config.top_k),
        COMBINATION: rank_combinations(
            reductions,
            population_size=population_size,
            top_k=config.top_k,
            min_size=config.min_combination_size,
        ),
        FULL_SEQUENCE: rank_full_sequences(
            reductions, population_size=population_size, top_k=config.top_k
        ),
    }
    logger.info(
        "Mined %s top items, %s combinations and %s paths over %s users",
        len(rows[TOP_ITEM]),
        len(rows[COMBINATION]),
        len(rows[FULL_SEQUENCE]),
        population_size,
    )
    return rows
