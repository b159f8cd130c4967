import pandas as pd
import pytest

from conversion_path_miner.data import etl
from conversion_path_miner.data.selection import select_user_sequences
from conversion_path_miner.data.windows import resolve_windows


def test_resolve_windows_excludes_incomplete_users(windows):
    eligible = resolve_windows(windows)
    assert eligible.user_ids == ["A", "B", "C"]
    assert eligible.population_size == 3


def test_resolve_windows_keeps_first_row_per_user():
    windows = pd.DataFrame(
        {
            "user_id": ["A", "A"],
            "window_start_time": pd.to_datetime(["2025-01-01", "2025-02-01"], utc=True),
            "conversion_time": pd.to_datetime(["2025-01-02", "2025-02-02"], utc=True),
        }
    )
    eligible = resolve_windows(windows)
    assert eligible.population_size == 1
    assert eligible.windows.loc[0, "window_start_time"] == pd.Timestamp("2025-01-01", tz="UTC")


def test_select_user_sequences_respects_half_open_window(events, windows):
    sequences = select_user_sequences(events, resolve_windows(windows), "portfolio")
    assert sequences == {"A": ["X", "X", "Y"], "B": ["X"], "C": []}


def test_select_user_sequences_per_entity_kind(events, windows):
    sequences = select_user_sequences(events, resolve_windows(windows), "creator")
    assert sequences == {"A": ["@jane"], "B": [], "C": []}


def test_unified_selection_interleaves_kinds(events, windows):
    sequences = select_user_sequences(events, resolve_windows(windows), "unified")
    assert sequences["A"] == ["Portfolio: X", "Portfolio: X", "Creator: @jane", "Portfolio: Y"]


def test_unknown_entity_kind_is_rejected(events, windows):
    with pytest.raises(ValueError):
        select_user_sequences(events, resolve_windows(windows), "stock")


def test_event_at_window_start_is_selected():
    windows = pd.DataFrame(
        {
            "user_id": ["A"],
            "window_start_time": pd.to_datetime(["2025-01-01T00:00:00Z"], utc=True),
            "conversion_time": pd.to_datetime(["2025-01-02T00:00:00Z"], utc=True),
        }
    )
    events = etl.from_dataframe(
        pd.DataFrame(
            {
                "user_id": ["A", "A", "A"],
                "entity_kind": ["portfolio"] * 3,
                "entity_key": ["START", "MID", "END"],
                "event_time": [
                    "2025-01-01T00:00:00Z",
                    "2025-01-01T12:00:00Z",
                    "2025-01-02T00:00:00Z",
                ],
            }
        )
    )

    sequences = select_user_sequences(events, resolve_windows(windows), "portfolio")

    assert sequences == {"A": ["START", "MID"]}


def test_resolve_windows_keeps_first_row_in_source_order():
    windows = pd.DataFrame(
        {
            "user_id": ["B", "A", "B"],
            "window_start_time": pd.to_datetime(["2025-03-01", "2025-01-01", "2025-02-01"], utc=True),
            "conversion_time": pd.to_datetime(["2025-03-02", "2025-01-02", "2025-02-02"], utc=True),
        }
    )
    eligible = resolve_windows(windows)
    assert eligible.user_ids == ["A", "B"]
    assert eligible.windows.loc[1, "window_start_time"] == pd.Timestamp("2025-03-01", tz="UTC")
