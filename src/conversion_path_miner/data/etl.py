"""ETL utilities for the pre-conversion path miner.

This module exposes composable helpers for loading interaction events and
conversion windows from CSV exports or in-memory dataframes and normalising
them into a canonical schema. Read failures are surfaced as
``UpstreamUnavailable`` so the caller can abandon the run without publishing.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd

from ..errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

PORTFOLIO = "portfolio"
CREATOR = "creator"
ENTITY_KINDS = (PORTFOLIO, CREATOR)

VIEW = "view"
TAP = "tap"
INTERACTION_SUBTYPES = (VIEW, TAP)

EVENT_COLUMNS = [
    "user_id",
    "entity_kind",
    "entity_key",
    "interaction_subtype",
    "tap_category",
    "event_time",
]

WINDOW_COLUMNS = [
    "user_id",
    "window_start_time",
    "conversion_time",
]

# Source event names and the (entity_kind, interaction_subtype) they describe.
RAW_EVENT_NAMES: Dict[str, Tuple[str, str]] = {
    "Viewed Portfolio Details": (PORTFOLIO, VIEW),
    "Tapped Portfolio Tile": (PORTFOLIO, TAP),
    "Tapped Portfolio Card": (PORTFOLIO, TAP),
    "Viewed Creator Profile": (CREATOR, VIEW),
    "Viewed Creator Card": (CREATOR, TAP),
    "Tapped Creator Card": (CREATOR, TAP),
}


@dataclass
class EventSchema:
    """Metadata describing the expected column names of an event dataset."""

    user_id: str = "user_id"
    entity_kind: str = "entity_kind"
    entity_key: str = "entity_key"
    interaction_subtype: str = "interaction_subtype"
    tap_category: str = "tap_category"
    event_time: str = "event_time"

    def to_list(self) -> List[str]:
        return [
            self.user_id,
            self.entity_kind,
            self.entity_key,
            self.interaction_subtype,
            self.tap_category,
            self.event_time,
        ]

    def renames(self) -> Dict[str, str]:
        return dict(zip(self.to_list(), EVENT_COLUMNS))


@dataclass
class WindowSchema:
    """Metadata describing the expected column names of a window dataset."""

    user_id: str = "user_id"
    window_start_time: str = "window_start_time"
    conversion_time: str = "conversion_time"

    def to_list(self) -> List[str]:
        return [self.user_id, self.window_start_time, self.conversion_time]

    def renames(self) -> Dict[str, str]:
        return dict(zip(self.to_list(), WINDOW_COLUMNS))


def _read_csv(path: Path | str, source: str) -> pd.DataFrame:
    try:
        return pd.read_csv(path)
    except (OSError, pd.errors.EmptyDataError, pd.errors.ParserError) as exc:
        raise UpstreamUnavailable(source, str(exc)) from exc


def _normalise_events(df: pd.DataFrame, schema: EventSchema) -> pd.DataFrame:
    """Rename, type and order an event frame whose columns are validated."""

    df = df.rename(columns=schema.renames())
    df = df[EVENT_COLUMNS].copy()
    df["event_time"] = pd.to_datetime(df["event_time"], utc=True)
    df["entity_kind"] = df["entity_kind"].astype(str).str.strip().str.lower()
    df["interaction_subtype"] = (
        df["interaction_subtype"].fillna(VIEW).astype(str).str.strip().str.lower()
    )
    df["tap_category"] = pd.Series(
        [None if pd.isna(value) else value for value in df["tap_category"]],
        index=df.index,
        dtype=object,
    )
    return df.sort_values(["user_id", "event_time"], kind="mergesort").reset_index(drop=True)


def _normalise_windows(df: pd.DataFrame, schema: WindowSchema) -> pd.DataFrame:
    df = df.rename(columns=schema.renames())
    df = df[WINDOW_COLUMNS].copy()
    df["window_start_time"] = pd.to_datetime(df["window_start_time"], utc=True)
    df["conversion_time"] = pd.to_datetime(df["conversion_time"], utc=True)
    return df.reset_index(drop=True)


def load_event_log_csv(
    path: Path | str,
    *,
    schema: Optional[EventSchema] = None,
) -> pd.DataFrame:
    """Load an interaction event export from a CSV file.

    Args:
        path: Path to the CSV file.
        schema: Optional override for the expected column names. The file is
            required to contain the columns referenced in the schema.

    Returns:
        A pandas ``DataFrame`` following the canonical event schema.

    Raises:
        UpstreamUnavailable: The file cannot be read or lacks required columns.
    """

    schema = schema or EventSchema()
    df = _read_csv(path, "event")

    missing = set(schema.to_list()) - set(df.columns)
    if missing:
        raise UpstreamUnavailable("event", f"CSV is missing required columns: {sorted(missing)}")

    df = _normalise_events(df, schema)
    logger.info("Loaded %s events from %s", len(df), path)
    return df


def load_windows_csv(
    path: Path | str,
    *,
    schema: Optional[WindowSchema] = None,
) -> pd.DataFrame:
    """Load a conversion window export from a CSV file."""

    schema = schema or WindowSchema()
    df = _read_csv(path, "window")

    missing = set(schema.to_list()) - set(df.columns)
    if missing:
        raise UpstreamUnavailable("window", f"CSV is missing required columns: {sorted(missing)}")

    df = _normalise_windows(df, schema)
    logger.info("Loaded %s conversion windows from %s", len(df), path)
    return df


def from_dataframe(df: pd.DataFrame, schema: Optional[EventSchema] = None) -> pd.DataFrame:
    """Normalise an in-memory event dataframe to the canonical schema."""

    schema = schema or EventSchema()
    columns = set(df.columns)
    # tap_category is optional for in-memory frames that only carry views.
    if schema.tap_category not in columns:
        df = df.assign(**{schema.tap_category: None})
        columns.add(schema.tap_category)
    if schema.interaction_subtype not in columns:
        df = df.assign(**{schema.interaction_subtype: VIEW})
        columns.add(schema.interaction_subtype)

    missing = set(schema.to_list()) - columns
    if missing:
        raise ValueError(f"DataFrame is missing required columns: {missing}")
    return _normalise_events(df, schema)


def windows_from_dataframe(df: pd.DataFrame, schema: Optional[WindowSchema] = None) -> pd.DataFrame:
    """Normalise an in-memory window dataframe to the canonical schema."""

    schema = schema or WindowSchema()
    missing = set(schema.to_list()) - set(df.columns)
    if missing:
        raise ValueError(f"DataFrame is missing required columns: {missing}")
    return _normalise_windows(df, schema)


def from_raw_events(
    df: pd.DataFrame,
    *,
    user_column: str = "user_id",
    event_name_column: str = "event_name",
    time_column: str = "event_time",
    event_names: Optional[Dict[str, Tuple[str, str]]] = None,
) -> pd.DataFrame:
    """Map a raw analytics export onto the canonical event schema.

    Each row's ``event_name`` decides its entity kind and interaction subtype.
    Portfolio rows take their key from ``portfolio_ticker`` and creator rows
    from ``creator_username``; ``category_name`` becomes the tap category.
    Rows with event names outside ``event_names`` are dropped.
    """

    event_names = event_names or RAW_EVENT_NAMES
    missing = {user_column, event_name_column, time_column} - set(df.columns)
    if missing:
        raise ValueError(f"DataFrame is missing required columns: {missing}")

    known = df[event_name_column].isin(list(event_names))
    dropped = int((~known).sum())
    if dropped:
        logger.debug("Dropping %s events with unrecognised names", dropped)
    df = df.loc[known]

    mapped = df[event_name_column].map(event_names)
    kinds = mapped.map(lambda pair: pair[0])
    subtypes = mapped.map(lambda pair: pair[1])

    empty = pd.Series([None] * len(df), index=df.index, dtype=object)
    tickers = df["portfolio_ticker"] if "portfolio_ticker" in df.columns else empty
    usernames = df["creator_username"] if "creator_username" in df.columns else empty
    categories = df["category_name"] if "category_name" in df.columns else empty

    canonical = pd.DataFrame(
        {
            "user_id": df[user_column],
            "entity_kind": kinds,
            "entity_key": tickers.where(kinds == PORTFOLIO, usernames),
            "interaction_subtype": subtypes,
            "tap_category": categories.where(subtypes == TAP, None),
            "event_time": df[time_column],
        }
    )
    return _normalise_events(canonical, EventSchema())
