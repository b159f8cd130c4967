from datetime import datetime, timezone

import pandas as pd
import pytest

from conversion_path_miner.analytics.results import (
    DirectoryResultStore,
    ResultStore,
    assemble_batch,
    read_batch,
)
from conversion_path_miner.mining.patterns import COMBINATION, FULL_SEQUENCE, TOP_ITEM, PathAnalysisRow
from conversion_path_miner.mining.statistics import SequenceSummary


def _row(analysis_type, rank, items, count, population=3):
    return PathAnalysisRow(
        analysis_type=analysis_type,
        rank=rank,
        item_sequence=tuple(items),
        matching_user_count=count,
        pct_of_population=round(count / population * 100, 2),
        population_size=population,
    )


@pytest.fixture
def batch():
    rows = {
        FULL_SEQUENCE: [_row(FULL_SEQUENCE, 1, ["X", "Y"], 1)],
        TOP_ITEM: [_row(TOP_ITEM, 2, ["Y"], 1), _row(TOP_ITEM, 1, ["X"], 2)],
        COMBINATION: [_row(COMBINATION, 1, ["X", "Y"], 1)],
    }
    summary = SequenceSummary(1.0, 1.0, 3, 2, 1)
    return assemble_batch(
        "portfolio", rows, summary, computed_at=datetime(2025, 1, 2, tzinfo=timezone.utc)
    )


def test_assemble_orders_by_type_then_rank(batch):
    assert [(row.analysis_type, row.rank) for row in batch.rows] == [
        (TOP_ITEM, 1),
        (TOP_ITEM, 2),
        (COMBINATION, 1),
        (FULL_SEQUENCE, 1),
    ]
    assert batch.version.startswith("20250102T000000")
    assert not batch.is_empty


def test_rows_frame_is_tidy(batch):
    frame = batch.rows_frame()
    assert frame["entity_kind"].unique().tolist() == ["portfolio"]
    assert frame.loc[0, "item_sequence"] == ["X"]
    assert batch.summary_frame().loc[0, "users_without_items"] == 1


def test_in_memory_store_swaps_whole_batches(batch):
    store = ResultStore()
    assert store.current("portfolio") is None
    store.publish(batch)
    newer = assemble_batch("portfolio", {}, SequenceSummary(None, None, 0, 0, 0))
    store.publish(newer)
    assert store.current("portfolio") is newer
    assert store.current("portfolio").rows == ()


def test_directory_store_round_trip(tmp_path, batch):
    store = DirectoryResultStore(tmp_path)
    store.publish(batch)

    directory = store.current_directory("portfolio")
    assert directory == store.batch_directory(batch)
    assert (tmp_path / "CURRENT-portfolio").read_text() == directory.name

    loaded = read_batch(directory)
    assert loaded.rows == batch.rows
    assert loaded.summary == batch.summary
    assert loaded.version == batch.version


def test_directory_store_reads_pointer_from_fresh_instance(tmp_path, batch):
    DirectoryResultStore(tmp_path).publish(batch)
    reader = DirectoryResultStore(tmp_path)
    assert reader.current("portfolio").version == batch.version
    assert reader.current("creator") is None


def test_directory_store_prunes_old_versions(tmp_path, batch):
    store = DirectoryResultStore(tmp_path, keep_versions=2)
    for _ in range(4):
        store.publish(assemble_batch("portfolio", {}, batch.summary))
    assert len([path for path in tmp_path.glob("portfolio-*") if path.is_dir()]) == 2
    assert store.current_directory("portfolio").exists()


def test_null_summary_survives_round_trip(tmp_path):
    empty = assemble_batch("creator", {}, SequenceSummary(None, None, 0, 0, 0))
    store = DirectoryResultStore(tmp_path)
    store.publish(empty)
    loaded = read_batch(store.current_directory("creator"))
    assert loaded.summary.mean_distinct_items is None
    assert loaded.rows == ()
    assert loaded.is_empty


def test_failed_write_removes_staging_directory(tmp_path, batch, monkeypatch):
    store = DirectoryResultStore(tmp_path)

    def failing_to_csv(self, *args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(pd.DataFrame, "to_csv", failing_to_csv)

    with pytest.raises(OSError):
        store.publish(batch)

    assert list(tmp_path.glob(".*.tmp")) == []
    assert list(tmp_path.glob("portfolio-*")) == []
    assert store.current_directory("portfolio") is None
    assert store.current("portfolio") is None
