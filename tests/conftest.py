from __future__ import annotations

import pandas as pd
import pytest

from conversion_path_miner.data import etl


@pytest.fixture
def windows() -> pd.DataFrame:
    raw = pd.DataFrame(
        {
            "user_id": ["A", "B", "C", "D"],
            "window_start_time": ["2025-01-01T00:00:00Z", "2025-01-01T00:00:00Z", "2025-01-01T00:00:00Z", None],
            "conversion_time": ["2025-01-02T00:00:00Z", "2025-01-02T00:00:00Z", "2025-01-02T00:00:00Z", "2025-01-02T00:00:00Z"],
        }
    )
    return etl.windows_from_dataframe(raw)


@pytest.fixture
def events() -> pd.DataFrame:
    """A saw X then Y, B saw X, C saw nothing inside the window, D is ineligible."""

    raw = pd.DataFrame(
        [
            ("A", "portfolio", "X", "view", None, "2025-01-01T01:00:00Z"),
            ("A", "portfolio", "X", "view", None, "2025-01-01T01:05:00Z"),
            ("A", "portfolio", "Y", "view", None, "2025-01-01T02:00:00Z"),
            ("A", "creator", "@jane", "view", None, "2025-01-01T01:30:00Z"),
            ("B", "portfolio", "X", "view", None, "2025-01-01T03:00:00Z"),
            ("B", "portfolio", "Z", "view", None, "2025-01-02T00:00:00Z"),
            ("C", "portfolio", "Y", "view", None, "2024-12-31T23:59:59Z"),
            ("C", "portfolio", None, "view", None, "2025-01-01T05:00:00Z"),
            ("D", "portfolio", "X", "view", None, "2025-01-01T05:00:00Z"),
        ],
        columns=["user_id", "entity_kind", "entity_key", "interaction_subtype", "tap_category", "event_time"],
    )
    return etl.from_dataframe(raw)
