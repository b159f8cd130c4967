"""Per-user selection of pre-conversion events."""
from __future__ import annotations

import logging
from typing import Dict, List

import pandas as pd

from .etl import ENTITY_KINDS
from .tokens import canonicalize_events
from .windows import EligibleWindows

logger = logging.getLogger(__name__)

UNIFIED = "unified"
ANALYSIS_KINDS = ENTITY_KINDS + (UNIFIED,)


def _kinds_for(entity_kind: str) -> tuple:
    if entity_kind == UNIFIED:
        return ENTITY_KINDS
    if entity_kind in ENTITY_KINDS:
        return (entity_kind,)
    raise ValueError(f"Unknown entity kind {entity_kind!r}; expected one of {ANALYSIS_KINDS}")


def select_window_events(
    events: pd.DataFrame,
    eligible: EligibleWindows,
    entity_kind: str,
) -> pd.DataFrame:
    """Return canonicalized events inside each eligible user's window.

    The window is half-open: ``window_start_time <= event_time < conversion_time``.
    Rows come back ordered by user, then time, then token.
    """

    kinds = _kinds_for(entity_kind)
    scoped = events.loc[events["entity_kind"].isin(kinds)]
    joined = scoped.merge(eligible.windows, on="user_id", how="inner")
    in_window = (joined["event_time"] >= joined["window_start_time"]) & (
        joined["event_time"] < joined["conversion_time"]
    )
    selected = canonicalize_events(joined.loc[in_window], qualified=entity_kind == UNIFIED)
    logger.debug(
        "Selected %s of %s %s events inside conversion windows",
        len(selected),
        len(scoped),
        entity_kind,
    )
    return selected.sort_values(
        ["user_id", "event_time", "token"], kind="mergesort"
    ).reset_index(drop=True)


def select_user_sequences(
    events: pd.DataFrame,
    eligible: EligibleWindows,
    entity_kind: str,
) -> Dict[object, List[str]]:
    """Build one chronological token sequence per eligible user.

    Every eligible user is present in the result; users without selected
    events map to an empty list.
    """

    selected = select_window_events(events, eligible, entity_kind)
    sequences: Dict[object, List[str]] = {user_id: [] for user_id in eligible.user_ids}
    for user_id, group in selected.groupby("user_id", sort=False):
        sequences[user_id] = group["token"].tolist()
    return sequences
