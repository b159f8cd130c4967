"""Result batches and the stores that publish them.

A ``ResultBatch`` holds every ranked row and the summary for one entity kind.
Stores only ever swap whole batches, so a reader sees either the previous run
or the new one and never a mix of the two.
"""
from __future__ import annotations

import json
import logging
import os
import shutil
import threading
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

import pandas as pd

from ..mining.patterns import ANALYSIS_TYPES, PathAnalysisRow
from ..mining.statistics import SequenceSummary

logger = logging.getLogger(__name__)

ROW_COLUMNS = [
    "entity_kind",
    "analysis_type",
    "rank",
    "item_sequence",
    "matching_user_count",
    "pct_of_population",
    "population_size",
]

SUMMARY_COLUMNS = [
    "entity_kind",
    "mean_distinct_items",
    "median_distinct_items",
    "population_size",
    "users_with_items",
    "users_without_items",
]

ROWS_FILENAME = "path_analysis.csv"
SUMMARY_FILENAME = "sequence_summary.csv"
METADATA_FILENAME = "batch.json"


def _new_version(computed_at: datetime) -> str:
    return f"{computed_at.strftime('%Y%m%dT%H%M%S%fZ')}-{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True)
class ResultBatch:
    """One complete, immutable generation of results for an entity kind."""

    entity_kind: str
    rows: Tuple[PathAnalysisRow, ...]
    summary: SequenceSummary
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    version: str = ""

    def __post_init__(self) -> None:
        if not self.version:
            object.__setattr__(self, "version", _new_version(self.computed_at))

    @property
    def is_empty(self) -> bool:
        return self.summary.population_size == 0

    def rows_for(self, analysis_type: str) -> List[PathAnalysisRow]:
        return [row for row in self.rows if row.analysis_type == analysis_type]

    def rows_frame(self) -> pd.DataFrame:
        records = [
            {
                "entity_kind": self.entity_kind,
                "analysis_type": row.analysis_type,
                "rank": row.rank,
                "item_sequence": list(row.item_sequence),
                "matching_user_count": row.matching_user_count,
                "pct_of_population": row.pct_of_population,
                "population_size": row.population_size,
            }
            for row in self.rows
        ]
        return pd.DataFrame(records, columns=ROW_COLUMNS)

    def summary_frame(self) -> pd.DataFrame:
        record = {"entity_kind": self.entity_kind, **asdict(self.summary)}
        return pd.DataFrame([record], columns=SUMMARY_COLUMNS)


def assemble_batch(
    entity_kind: str,
    rows_by_type: Mapping[str, List[PathAnalysisRow]],
    summary: SequenceSummary,
    *,
    computed_at: Optional[datetime] = None,
) -> ResultBatch:
    """Merge the ranking passes and summary into one batch.

    Rows are ordered by analysis type (top items, combinations, full
    sequences) and then by rank.
    """

    rows: List[PathAnalysisRow] = []
    for analysis_type in ANALYSIS_TYPES:
        rows.extend(sorted(rows_by_type.get(analysis_type, []), key=lambda row: row.rank))

    computed_at = computed_at or datetime.now(timezone.utc)
    return ResultBatch(
        entity_kind=entity_kind,
        rows=tuple(rows),
        summary=summary,
        computed_at=computed_at,
    )


class ResultStore:
    """In-memory holder of the current batch per entity kind."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._batches: Dict[str, ResultBatch] = {}

    def publish(self, batch: ResultBatch) -> None:
        with self._lock:
            previous = self._batches.get(batch.entity_kind)
            self._batches[batch.entity_kind] = batch
        logger.info(
            "Published %s batch %s (replacing %s)",
            batch.entity_kind,
            batch.version,
            previous.version if previous else "nothing",
        )

    def current(self, entity_kind: str) -> Optional[ResultBatch]:
        with self._lock:
            return self._batches.get(entity_kind)


class DirectoryResultStore(ResultStore):
    """File-backed store that writes each batch to its own versioned directory.

    Visibility moves to a new batch when the ``CURRENT-<entity_kind>`` pointer
    file is replaced, which ``os.replace`` does atomically.
    """

    def __init__(self, root: Path | str, *, keep_versions: int = 2) -> None:
        super().__init__()
        self.root = Path(root)
        self.keep_versions = max(1, keep_versions)
        self.root.mkdir(parents=True, exist_ok=True)

    def _pointer(self, entity_kind: str) -> Path:
        return self.root / f"CURRENT-{entity_kind}"

    def batch_directory(self, batch: ResultBatch) -> Path:
        return self.root / f"{batch.entity_kind}-{batch.version}"

    def publish(self, batch: ResultBatch) -> None:
        target = self.batch_directory(batch)
        staging = self.root / f".{target.name}.tmp"
        staging.mkdir(parents=True, exist_ok=False)

        try:
            self._write_batch(batch, staging)
            os.replace(staging, target)
        except Exception:
            shutil.rmtree(staging, ignore_errors=True)
            logger.error("Failed to write %s batch %s", batch.entity_kind, batch.version)
            raise

        pointer = self._pointer(batch.entity_kind)
        pointer_tmp = pointer.with_name(f".{pointer.name}.tmp")
        pointer_tmp.write_text(target.name)
        os.replace(pointer_tmp, pointer)

        super().publish(batch)
        logger.info("Wrote %s batch to %s", batch.entity_kind, target)
        self._prune(batch.entity_kind, keep=target)

    def _write_batch(self, batch: ResultBatch, directory: Path) -> None:
        rows = batch.rows_frame()
        rows["item_sequence"] = rows["item_sequence"].apply(json.dumps)
        rows.to_csv(directory / ROWS_FILENAME, index=False)
        batch.summary_frame().to_csv(directory / SUMMARY_FILENAME, index=False)
        (directory / METADATA_FILENAME).write_text(
            json.dumps(
                {
                    "entity_kind": batch.entity_kind,
                    "version": batch.version,
                    "computed_at": batch.computed_at.isoformat(),
                }
            )
        )

    def current_directory(self, entity_kind: str) -> Optional[Path]:
        pointer = self._pointer(entity_kind)
        if not pointer.exists():
            return None
        return self.root / pointer.read_text().strip()

    def current(self, entity_kind: str) -> Optional[ResultBatch]:
        batch = super().current(entity_kind)
        if batch is not None:
            return batch
        directory = self.current_directory(entity_kind)
        if directory is None:
            return None
        return read_batch(directory)

    def _prune(self, entity_kind: str, *, keep: Path) -> None:
        versions = sorted(
            path
            for path in self.root.glob(f"{entity_kind}-*")
            if path.is_dir() and path != keep
        )
        # The published directory always survives; older ones fill the remaining slots.
        for stale in versions[: max(0, len(versions) - (self.keep_versions - 1))]:
            shutil.rmtree(stale, ignore_errors=True)
            logger.debug("Removed stale batch directory %s", stale)


def _optional_float(value: object) -> Optional[float]:
    return None if pd.isna(value) else float(value)


def read_batch(directory: Path | str) -> ResultBatch:
    """Load a batch previously written by ``DirectoryResultStore``."""

    directory = Path(directory)
    metadata = json.loads((directory / METADATA_FILENAME).read_text())
    rows_df = pd.read_csv(directory / ROWS_FILENAME)
    summary_record = pd.read_csv(directory / SUMMARY_FILENAME).iloc[0]

    rows = tuple(
        PathAnalysisRow(
            analysis_type=record.analysis_type,
            rank=int(record.rank),
            item_sequence=tuple(json.loads(record.item_sequence)),
            matching_user_count=int(record.matching_user_count),
            pct_of_population=float(record.pct_of_population),
            population_size=int(record.population_size),
        )
        for record in rows_df.itertuples(index=False)
    )
    summary = SequenceSummary(
        mean_distinct_items=_optional_float(summary_record["mean_distinct_items"]),
        median_distinct_items=_optional_float(summary_record["median_distinct_items"]),
        population_size=int(summary_record["population_size"]),
        users_with_items=int(summary_record["users_with_items"]),
        users_without_items=int(summary_record["users_without_items"]),
    )
    return ResultBatch(
        entity_kind=metadata["entity_kind"],
        rows=rows,
        summary=summary,
        computed_at=datetime.fromisoformat(metadata["computed_at"]),
        version=metadata["version"],
    )
