"""Conversion window resolution."""
from __future__ import annotations

import logging
from dataclasses import dataclass

import pandas as pd

logger = logging.getLogger(__name__)


@dataclass
class EligibleWindows:
    """Users with a complete conversion window.

    ``population_size`` is the denominator every percentage in a run uses.
    """

    windows: pd.DataFrame

    @property
    def population_size(self) -> int:
        return len(self.windows)

    @property
    def user_ids(self) -> list:
        return self.windows["user_id"].tolist()


def resolve_windows(windows: pd.DataFrame) -> EligibleWindows:
    """Keep users that have both a window start and a conversion time.

    Users missing either bound are left out silently; they reflect an
    unfinished upstream funnel rather than a failure. A user listed more than
    once keeps their first row in source order.
    """

    complete = windows["window_start_time"].notna() & windows["conversion_time"].notna()
    skipped = int((~complete).sum())
    if skipped:
        logger.debug("Excluding %s users without a complete conversion window", skipped)

    eligible = (
        windows.loc[complete, ["user_id", "window_start_time", "conversion_time"]]
        .drop_duplicates(subset="user_id", keep="first")
        .sort_values("user_id", kind="mergesort")
        .reset_index(drop=True)
    )
    logger.info("Resolved %s eligible users from %s windows", len(eligible), len(windows))
    return EligibleWindows(windows=eligible)
