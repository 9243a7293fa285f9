"""Tests for the kotoba CLI."""

import json
import re
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from kotoba.application.sync_service import SyncResult
from kotoba.interface.cli import app

runner = CliRunner()


def strip_ansi(text):
    ansi_escape = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")
    return ansi_escape.sub("", text)


@pytest.fixture
def data_dir(mock_home, tmp_path):
    d = tmp_path / "data"
    d.mkdir()
    return d


def invoke(data_dir, *args):
    return runner.invoke(app, ["--data-dir", str(data_dir), *args])


def _stored(data_dir):
    return json.loads((data_dir / "j-learning-history.json").read_text(encoding="utf-8"))


def test_help_lists_commands():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    output = strip_ansi(result.stdout)
    for command in ("record", "review", "due", "master", "sync", "export"):
        assert command in output


def test_record_creates_item(data_dir):
    result = invoke(
        data_dir, "record", "vocab-neko", "--text", "猫", "--meaning", "cat", "--jlpt", "N5"
    )
    assert result.exit_code == 0, result.output
    assert "seen 1 time(s)" in result.stdout

    stored = _stored(data_dir)["history"]["vocab-neko"]
    assert stored["text"] == "猫"
    assert stored["jlpt"] == "N5"
    assert stored["interval"] == 0


def test_record_then_review(data_dir):
    invoke(data_dir, "record", "vocab-neko")
    result = invoke(data_dir, "review", "vocab-neko", "4")

    assert result.exit_code == 0, result.output
    assert "interval 1d" in result.stdout
    stored = _stored(data_dir)["history"]["vocab-neko"]
    assert stored["repetitions"] == 1


def test_review_unknown_item(data_dir):
    result = invoke(data_dir, "review", "missing", "5")
    assert result.exit_code == 0
    assert "Unknown item" in result.stdout


def test_review_rejects_out_of_range_quality(data_dir):
    invoke(data_dir, "record", "vocab-neko")
    result = invoke(data_dir, "review", "vocab-neko", "9")
    assert result.exit_code == 2


def test_due_lists_new_items(data_dir):
    invoke(data_dir, "record", "vocab-neko", "--text", "猫")
    invoke(data_dir, "record", "vocab-inu", "--text", "犬")

    result = invoke(data_dir, "due", "--json")
    assert result.exit_code == 0, result.output
    ids = {entry["itemId"] for entry in json.loads(result.stdout)}
    assert ids == {"vocab-neko", "vocab-inu"}


def test_due_empty(data_dir):
    result = invoke(data_dir, "due")
    assert result.exit_code == 0
    assert "Nothing due" in result.stdout


def test_due_rejects_negative_limit(data_dir):
    invoke(data_dir, "record", "vocab-neko")
    result = invoke(data_dir, "due", "--limit", "-1")
    assert result.exit_code == 2


def test_due_limit_zero_shows_nothing(data_dir):
    invoke(data_dir, "record", "vocab-neko")
    result = invoke(data_dir, "due", "--limit", "0", "--json")
    assert result.exit_code == 0
    assert json.loads(result.stdout) == []


def test_master_toggles_and_hides_from_due(data_dir):
    invoke(data_dir, "record", "vocab-neko")

    result = invoke(data_dir, "master", "vocab-neko")
    assert result.exit_code == 0
    assert "vocab-neko: mastered" in result.stdout
    assert json.loads(invoke(data_dir, "due", "--json").stdout) == []

    result = invoke(data_dir, "master", "vocab-neko")
    assert "vocab-neko: learning" in result.stdout


def test_status(data_dir):
    invoke(data_dir, "record", "vocab-neko", "--jlpt", "N5")
    invoke(data_dir, "record", "grammar-desu", "--type", "grammar")

    result = invoke(data_dir, "status")
    assert result.exit_code == 0
    assert "Items: 2" in result.stdout
    assert "Due now: 2" in result.stdout
    assert "N5: 1" in result.stdout


def test_export_csv_to_file(data_dir, tmp_path):
    invoke(data_dir, "record", "vocab-neko", "--text", "猫", "--meaning", "cat")
    out = tmp_path / "export.csv"

    result = invoke(data_dir, "export", "--format", "csv", "--output", str(out))
    assert result.exit_code == 0, result.output
    lines = out.read_text(encoding="utf-8").splitlines()
    assert lines[0].startswith("Type,Japanese")
    assert "猫" in lines[1]


def test_export_anki_to_stdout(data_dir):
    invoke(data_dir, "record", "vocab-neko", "--text", "猫", "--meaning", "cat")
    result = invoke(data_dir, "export", "--format", "anki")
    assert result.exit_code == 0
    assert "猫;cat <br><small></small>" in result.stdout


def test_corrupt_history_exits(data_dir):
    (data_dir / "j-learning-history.json").write_text("{oops", encoding="utf-8")
    result = invoke(data_dir, "due")
    assert result.exit_code == 1


@patch("kotoba.main.execute_sync", new_callable=AsyncMock)
@patch("kotoba.interface.cli.resolve_config")
def test_sync_passes_overrides(mock_resolve_config, mock_sync):
    mock_resolve_config.return_value = MagicMock()
    mock_sync.return_value = SyncResult(status="ok", pulled=3, adopted=1, pushed=2)

    result = runner.invoke(
        app, ["sync", "--user", "u1", "--backend", "memory", "--remote-url", "http://x"]
    )

    assert result.exit_code == 0, result.output
    assert "Sync ok: pulled=3 adopted=1 pushed=2" in strip_ansi(result.stdout)
    call_args = mock_resolve_config.call_args[0][0]
    assert call_args["user_id"] == "u1"
    assert call_args["backend"] == "memory"
    assert call_args["remote_url"] == "http://x"
    mock_sync.assert_awaited_once()


@patch("kotoba.main.execute_sync", new_callable=AsyncMock)
@patch("kotoba.interface.cli.resolve_config")
def test_sync_pull_failure_exits_nonzero(mock_resolve_config, mock_sync):
    mock_resolve_config.return_value = MagicMock()
    mock_sync.return_value = SyncResult(status="pull_failed", error="offline")

    result = runner.invoke(app, ["sync", "--user", "u1"])
    assert result.exit_code == 1


@patch("kotoba.main.execute_sync", new_callable=AsyncMock)
@patch("kotoba.interface.cli.resolve_config")
def test_sync_push_failure_is_not_fatal(mock_resolve_config, mock_sync):
    mock_resolve_config.return_value = MagicMock()
    mock_sync.return_value = SyncResult(status="push_failed", pulled=1, error="offline")

    result = runner.invoke(app, ["sync", "--user", "u1"])
    assert result.exit_code == 0
    assert "push_failed" in strip_ansi(result.stdout)


def test_sync_without_user_fails(data_dir):
    result = invoke(data_dir, "sync", "--backend", "memory")
    assert result.exit_code == 1
    assert "No user id" in result.output


def test_sync_memory_backend_pushes_local_items(data_dir):
    invoke(data_dir, "record", "vocab-neko")
    result = invoke(data_dir, "sync", "--user", "u1", "--backend", "memory")
    assert result.exit_code == 0, result.output
    assert "pushed=1" in strip_ansi(result.stdout)


def test_sync_rest_backend_without_url_fails(data_dir):
    result = invoke(data_dir, "sync", "--user", "u1")
    assert result.exit_code == 1
    assert "No remote configured" in result.output


def test_verbose_flag_is_forwarded(data_dir):
    with patch("kotoba.interface.cli.resolve_config") as mock_resolve_config:
        mock_resolve_config.return_value = MagicMock(model_dump=lambda: {})
        runner.invoke(app, ["-v", "-v", "config", "show"])
    assert mock_resolve_config.call_args[0][0]["verbose"] == 2


def test_config_show_masks_api_key(mock_home, monkeypatch):
    monkeypatch.setenv("KOTOBA_REMOTE_API_KEY", "secret")
    result = runner.invoke(app, ["config", "show"])
    assert result.exit_code == 0
    shown = json.loads(result.stdout)
    assert shown["remote_api_key"] == "***"
    assert shown["storage_key"] == "j-learning-history"
