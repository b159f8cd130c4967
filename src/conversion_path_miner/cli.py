"""Command line interface for recomputing pre-conversion path results."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import pandas as pd

from . import pipeline
from .analytics import visualization
from .analytics.results import DirectoryResultStore
from .config import MinerConfig
from .data import etl
from .data.selection import ANALYSIS_KINDS
from .errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Pre-conversion path miner")
    parser.add_argument("--events", type=Path, required=True, help="Path to the interaction event CSV file")
    parser.add_argument("--windows", type=Path, required=True, help="Path to the conversion window CSV file")
    parser.add_argument(
        "--raw-events",
        action="store_true",
        help="Treat the event file as a raw export keyed by event_name",
    )
    parser.add_argument(
        "--entity-kind",
        choices=list(ANALYSIS_KINDS) + ["all"],
        default="all",
        help="Entity kind to analyse",
    )
    parser.add_argument("--top-k", type=int, default=10, help="Rows kept per analysis type")
    parser.add_argument("--last-n", type=int, default=5, help="Path length nearest conversion")
    parser.add_argument(
        "--exclude-zero-activity",
        action="store_true",
        help="Leave users without window events out of mean and median",
    )
    parser.add_argument("--workers", type=int, default=1, help="Processes for per-user reduction")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("results"),
        help="Directory where result batches are published",
    )
    parser.add_argument("--charts", action="store_true", help="Also write HTML charts per batch")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser.parse_args(argv)


def _load_events(args: argparse.Namespace) -> pd.DataFrame:
    if not args.raw_events:
        return etl.load_event_log_csv(args.events)
    try:
        raw = pd.read_csv(args.events)
    except (OSError, pd.errors.EmptyDataError, pd.errors.ParserError) as exc:
        raise UpstreamUnavailable("event", str(exc)) from exc
    return etl.from_raw_events(raw)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = MinerConfig(
        top_k=args.top_k,
        last_n=args.last_n,
        include_zero_activity_users=not args.exclude_zero_activity,
        workers=args.workers,
    )
    kinds = list(ANALYSIS_KINDS) if args.entity_kind == "all" else [args.entity_kind]
    store = DirectoryResultStore(args.output)

    try:
        batches = pipeline.recompute_all(
            lambda: _load_events(args),
            lambda: etl.load_windows_csv(args.windows),
            entity_kinds=kinds,
            config=config,
            store=store,
        )
    except UpstreamUnavailable as exc:
        logger.error("Recompute aborted, previous results left in place: %s", exc)
        return 1

    for kind, batch in batches.items():
        directory = store.batch_directory(batch)
        if args.charts:
            visualization.top_items_bar(batch.rows).write_html(args.output / f"{kind}-top_items.html")
            visualization.sankey_from_rows(batch.rows).write_html(args.output / f"{kind}-paths.html")
        print(f"{kind}: {len(batch.rows)} rows over {batch.summary.population_size} users saved to {directory}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
