"""Recompute entry points invoked after each ingestion cycle."""
from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, Optional, Union

import pandas as pd

from .analytics.results import ResultBatch, ResultStore, assemble_batch
from .config import MinerConfig
from .data import etl
from .data.selection import ANALYSIS_KINDS, select_user_sequences
from .data.windows import EligibleWindows, resolve_windows
from .errors import UpstreamUnavailable
from .mining.patterns import mine_patterns
from .mining.statistics import summarise_distinct_items

logger = logging.getLogger(__name__)

Source = Union[pd.DataFrame, Callable[[], pd.DataFrame]]


def _read_source(
    source: Source,
    name: str,
    normalise: Callable[[pd.DataFrame], pd.DataFrame],
) -> pd.DataFrame:
    """Materialise a snapshot from a frame or a zero-argument loader.

    The snapshot is normalised to the canonical schema, so in-memory frames may
    omit the optional event columns. A frame missing a required column raises
    ``ValueError``.
    """

    if isinstance(source, pd.DataFrame):
        frame = source
    else:
        try:
            frame = source()
        except UpstreamUnavailable:
            raise
        except Exception as exc:
            raise UpstreamUnavailable(name, str(exc)) from exc
    return normalise(frame)


def compute_batch(
    events: pd.DataFrame,
    eligible: EligibleWindows,
    entity_kind: str,
    config: MinerConfig,
) -> ResultBatch:
    """Mine one entity kind against an already resolved population."""

    population_size = eligible.population_size
    if population_size == 0:
        logger.warning("No eligible users for %s; publishing an empty batch", entity_kind)

    sequences = select_user_sequences(events, eligible, entity_kind)
    rows_by_type = mine_patterns(sequences, population_size=population_size, config=config)
    summary = summarise_distinct_items(
        sequences,
        population_size=population_size,
        include_zero_activity_users=config.include_zero_activity_users,
    )
    return assemble_batch(entity_kind, rows_by_type, summary)


def recompute(
    events: Source,
    windows: Source,
    entity_kind: str,
    *,
    config: Optional[MinerConfig] = None,
    store: Optional[ResultStore] = None,
) -> ResultBatch:
    """Rebuild and publish the result batch for one entity kind.

    Raises:
        UpstreamUnavailable: A source could not be read. Nothing is published.
        ValueError: A source frame lacks a required column.
    """

    config = (config or MinerConfig()).validate()
    if entity_kind not in ANALYSIS_KINDS:
        raise ValueError(f"Unknown entity kind {entity_kind!r}; expected one of {ANALYSIS_KINDS}")

    events_df = _read_source(events, "event", etl.from_dataframe)
    eligible = resolve_windows(_read_source(windows, "window", etl.windows_from_dataframe))
    batch = compute_batch(events_df, eligible, entity_kind, config)
    if store is not None:
        store.publish(batch)
    return batch


def recompute_all(
    events: Source,
    windows: Source,
    *,
    entity_kinds: Iterable[str] = ANALYSIS_KINDS,
    config: Optional[MinerConfig] = None,
    store: Optional[ResultStore] = None,
) -> Dict[str, ResultBatch]:
    """Rebuild every requested entity kind from one snapshot of the sources.

    All batches are computed before any is published, so a failure part way
    leaves every kind on its previous batch.
    """

    config = (config or MinerConfig()).validate()
    entity_kinds = list(entity_kinds)
    unknown = [kind for kind in entity_kinds if kind not in ANALYSIS_KINDS]
    if unknown:
        raise ValueError(f"Unknown entity kinds {unknown}; expected values from {ANALYSIS_KINDS}")

    events_df = _read_source(events, "event", etl.from_dataframe)
    eligible = resolve_windows(_read_source(windows, "window", etl.windows_from_dataframe))
    batches = {kind: compute_batch(events_df, eligible, kind, config) for kind in entity_kinds}

    if store is not None:
        for batch in batches.values():
            store.publish(batch)
    return batches
