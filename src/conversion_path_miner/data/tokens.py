"""Canonical token construction for interaction events."""
from __future__ import annotations

import logging
from typing import Optional

import pandas as pd

from .etl import CREATOR, PORTFOLIO, TAP

logger = logging.getLogger(__name__)

# Suffix used for taps that carry no category.
TAP_MARKER = "C"

KIND_LABELS = {
    PORTFOLIO: "Portfolio",
    CREATOR: "Creator",
}


def _is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def build_token(
    entity_kind: str,
    entity_key: object,
    interaction_subtype: str,
    tap_category: object = None,
    *,
    qualified: bool = False,
) -> Optional[str]:
    """Return the display token for one interaction, or ``None`` if it has no key.

    Views render as the bare key. Taps append ``(<category>)`` when a category
    is known and ``(C)`` otherwise, so a tap and a view of the same entity stay
    distinct items. ``qualified`` prefixes the entity kind label, which keeps
    portfolios and creators apart when both share one timeline.
    """

    if _is_blank(entity_key):
        return None

    token = str(entity_key).strip()
    if interaction_subtype == TAP:
        suffix = TAP_MARKER if _is_blank(tap_category) else str(tap_category).strip()
        token = f"{token}({suffix})"

    if qualified:
        label = KIND_LABELS.get(entity_kind, str(entity_kind).title())
        token = f"{label}: {token}"
    return token


def canonicalize_events(events: pd.DataFrame, *, qualified: bool = False) -> pd.DataFrame:
    """Attach a ``token`` column to canonical events and drop keyless rows."""

    if events.empty:
        return events.assign(token=pd.Series(dtype=object))

    tokens = [
        build_token(kind, key, subtype, category, qualified=qualified)
        for kind, key, subtype, category in zip(
            events["entity_kind"],
            events["entity_key"],
            events["interaction_subtype"],
            events["tap_category"],
        )
    ]
    events = events.assign(token=tokens)
    malformed = events["token"].isna()
    if malformed.any():
        logger.debug("Dropping %s events without an entity key", int(malformed.sum()))
    return events.loc[~malformed].reset_index(drop=True)
