import pandas as pd

from conversion_path_miner import cli
from conversion_path_miner.analytics.results import DirectoryResultStore


def _write_inputs(tmp_path):
    events_path = tmp_path / "events.csv"
    windows_path = tmp_path / "windows.csv"
    pd.DataFrame(
        {
            "user_id": ["A", "A", "B"],
            "event_name": ["Viewed Portfolio Details", "Tapped Portfolio Tile", "Viewed Portfolio Details"],
            "portfolio_ticker": ["X", "Y", "X"],
            "creator_username": [None, None, None],
            "category_name": [None, "Top Performing", None],
            "event_time": ["2025-01-01T01:00:00Z", "2025-01-01T02:00:00Z", "2025-01-01T03:00:00Z"],
        }
    ).to_csv(events_path, index=False)
    pd.DataFrame(
        {
            "user_id": ["A", "B", "C"],
            "window_start_time": ["2025-01-01T00:00:00Z"] * 3,
            "conversion_time": ["2025-01-02T00:00:00Z"] * 3,
        }
    ).to_csv(windows_path, index=False)
    return events_path, windows_path


def test_cli_publishes_batches(tmp_path, capsys):
    events_path, windows_path = _write_inputs(tmp_path)
    output = tmp_path / "results"

    status = cli.main(
        [
            "--events", str(events_path),
            "--windows", str(windows_path),
            "--raw-events",
            "--entity-kind", "portfolio",
            "--output", str(output),
            "--charts",
        ]
    )

    assert status == 0
    batch = DirectoryResultStore(output).current("portfolio")
    assert batch.rows_for("combination")[0].item_sequence == ("X", "Y(Top Performing)")
    assert (output / "portfolio-paths.html").exists()
    assert "portfolio: " in capsys.readouterr().out


def test_cli_reports_missing_source(tmp_path):
    _, windows_path = _write_inputs(tmp_path)
    status = cli.main(
        ["--events", str(tmp_path / "absent.csv"), "--windows", str(windows_path), "--output", str(tmp_path / "out")]
    )
    assert status == 1
    assert not list((tmp_path / "out").glob("CURRENT-*"))
