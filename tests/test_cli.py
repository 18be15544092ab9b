# tests/test_cli.py
import os
import time
from pathlib import Path

import pytest
from click.testing import CliRunner

from vcr_cassette import cli as cli_module
from vcr_cassette.cli import cli, format_body

TOKEN = "Bearer abcdef1234567890abcdef1234567890"


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    # Loggers cache their output stream; keep them off CliRunner's temporary streams.
    monkeypatch.setattr(cli_module, "setup_logging", lambda **kwargs: None)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def invoke(runner: CliRunner, *args: str, input: str | None = None):
    return runner.invoke(cli, list(args), input=input)


# --- rename ---


def test_rename_single(runner, cassettes_dir: Path, write_cassette, entry_factory):
    write_cassette("a.jsonl", [entry_factory("k")])
    result = invoke(runner, "rename", "a.jsonl", "b.jsonl", "--dir", str(cassettes_dir))
    assert result.exit_code == 0, result.output
    assert "✓ Renamed:" in result.output
    assert (cassettes_dir / "b.jsonl").exists()


def test_rename_single_dry_run(runner, cassettes_dir: Path, write_cassette, entry_factory):
    write_cassette("a.jsonl", [entry_factory("k")])
    result = invoke(
        runner, "rename", "a.jsonl", "b.jsonl", "--dir", str(cassettes_dir), "--dry-run"
    )
    assert result.exit_code == 0
    assert "DRY RUN - Would rename:" in result.output
    assert (cassettes_dir / "a.jsonl").exists()


def test_rename_existing_destination_fails(runner, cassettes_dir, write_cassette, entry_factory):
    write_cassette("a.jsonl", [entry_factory("a")])
    write_cassette("b.jsonl", [entry_factory("b")])
    result = invoke(runner, "rename", "a.jsonl", "b.jsonl", "--dir", str(cassettes_dir))
    assert result.exit_code == 1
    assert "destination already exists" in result.output
    assert (cassettes_dir / "a.jsonl").exists()


def test_rename_without_arguments_is_usage_error(runner, cassettes_dir: Path):
    result = invoke(runner, "rename", "--dir", str(cassettes_dir))
    assert result.exit_code == 2


def test_rename_missing_directory(runner, tmp_path: Path):
    result = invoke(runner, "rename", "a.jsonl", "b.jsonl", "--dir", str(tmp_path / "nope"))
    assert result.exit_code == 1
    assert "Directory not found" in result.output


def test_rename_prefix_dry_run(runner, cassettes_dir: Path, write_cassette, entry_factory):
    write_cassette("Old/a.jsonl", [entry_factory("k")])
    result = invoke(
        runner,
        "rename", "--from", "Old/", "--to", "New/", "--dir", str(cassettes_dir), "--dry-run",
    )
    assert result.exit_code == 0
    assert "Found 1 cassette(s) to rename" in result.output
    assert "DRY RUN - No changes made" in result.output
    assert (cassettes_dir / "Old" / "a.jsonl").exists()


def test_rename_prefix_confirmed(runner, cassettes_dir: Path, write_cassette, entry_factory):
    write_cassette("Old/a.jsonl", [entry_factory("k")])
    result = invoke(
        runner, "rename", "--from", "Old/", "--to", "New/", "--dir", str(cassettes_dir),
        input="y\n",
    )
    assert result.exit_code == 0, result.output
    assert "✓ Renamed 1 cassette(s)!" in result.output
    assert (cassettes_dir / "New" / "a.jsonl").exists()


def test_rename_prefix_declined(runner, cassettes_dir: Path, write_cassette, entry_factory):
    write_cassette("Old/a.jsonl", [entry_factory("k")])
    result = invoke(
        runner, "rename", "--from", "Old/", "--to", "New/", "--dir", str(cassettes_dir),
        input="n\n",
    )
    assert result.exit_code == 0
    assert "Rename cancelled." in result.output
    assert (cassettes_dir / "Old" / "a.jsonl").exists()


def test_rename_prefix_no_matches(runner, cassettes_dir: Path):
    result = invoke(runner, "rename", "--from", "X/", "--to", "Y/", "--dir", str(cassettes_dir))
    assert result.exit_code == 0
    assert "No cassettes found with prefix: X/" in result.output


def test_rename_migrate_up_to_date(runner, cassettes_dir: Path, write_cassette, entry_factory):
    write_cassette("a.jsonl", [entry_factory("k")])
    result = invoke(runner, "rename", "--migrate", "--dir", str(cassettes_dir))
    assert result.exit_code == 0
    assert "✓ All cassettes are up to date!" in result.output


# --- audit ---


def test_audit_clean(runner, cassettes_dir: Path, write_cassette, entry_factory):
    write_cassette("a.jsonl", [entry_factory("k")])
    result = invoke(runner, "audit", "--dir", str(cassettes_dir))
    assert result.exit_code == 0, result.output
    assert "✓ No issues found!" in result.output


def test_audit_no_cassettes(runner, cassettes_dir: Path):
    result = invoke(runner, "audit", "--dir", str(cassettes_dir))
    assert result.exit_code == 0
    assert "No cassettes found." in result.output


def test_audit_reports_secrets(runner, cassettes_dir: Path, write_cassette, entry_factory):
    write_cassette("leaky.jsonl", [entry_factory("k", req_headers={"authorization": TOKEN})])
    result = invoke(runner, "audit", "--secrets-only", "--dir", str(cassettes_dir))
    assert result.exit_code == 1
    assert "Potential Secrets Found (1)" in result.output
    assert "Location: req.headers.authorization" in result.output
    assert "leaky.jsonl:1" in result.output


def test_audit_stale_days(runner, cassettes_dir: Path, write_cassette, entry_factory):
    path = write_cassette("old.jsonl", [entry_factory("k", req_headers={"authorization": TOKEN})])
    old = time.time() - 100 * 86400
    os.utime(path, (old, old))
    result = invoke(runner, "audit", "--stale-days", "30", "--dir", str(cassettes_dir))
    assert result.exit_code == 1
    assert "Stale Cassettes (1)" in result.output
    assert "Potential Secrets" not in result.output


def test_audit_missing_directory(runner, tmp_path: Path):
    result = invoke(runner, "audit", "--dir", str(tmp_path / "nope"))
    assert result.exit_code == 1


# --- prune ---


def test_prune_exclusive_flags(runner, cassettes_dir: Path):
    result = invoke(
        runner, "prune", "--duplicates-only", "--empty-only", "--dir", str(cassettes_dir)
    )
    assert result.exit_code == 2


def test_prune_nothing(runner, cassettes_dir: Path, write_cassette, entry_factory):
    write_cassette("a.jsonl", [entry_factory("k")])
    result = invoke(runner, "prune", "--dir", str(cassettes_dir))
    assert result.exit_code == 0
    assert "✓ Nothing to prune!" in result.output


def test_prune_dry_run(runner, cassettes_dir: Path, write_cassette):
    empty = write_cassette("empty.jsonl", [])
    result = invoke(runner, "prune", "--dry-run", "--dir", str(cassettes_dir))
    assert result.exit_code == 0
    assert "DRY RUN - No changes will be made" in result.output
    assert "Reason: empty" in result.output
    assert empty.exists()


def test_prune_force(runner, cassettes_dir: Path, write_cassette, entry_factory, store):
    empty = write_cassette("empty.jsonl", [])
    dup = write_cassette("dup.jsonl", [entry_factory(key) for key in "ABA"])
    result = invoke(runner, "prune", "--force", "--dir", str(cassettes_dir))
    assert result.exit_code == 0, result.output
    assert "✓ Prune completed!" in result.output
    assert not empty.exists()
    assert [e.key for e in store.load(dup)] == ["B", "A"]


def test_prune_declined(runner, cassettes_dir: Path, write_cassette):
    empty = write_cassette("empty.jsonl", [])
    result = invoke(runner, "prune", "--dir", str(cassettes_dir), input="n\n")
    assert result.exit_code == 0
    assert "Delete 1 cassette file(s)" in result.output
    assert "Prune cancelled." in result.output
    assert empty.exists()


def test_prune_empty_only(runner, cassettes_dir: Path, write_cassette, entry_factory):
    write_cassette("dup.jsonl", [entry_factory(key) for key in "AA"])
    result = invoke(runner, "prune", "--empty-only", "--dir", str(cassettes_dir))
    assert "✓ Nothing to prune!" in result.output


# --- show ---


@pytest.fixture
def show_cassette_path(write_cassette, entry_factory) -> Path:
    return write_cassette(
        "show.jsonl",
        [
            entry_factory("k1", method="GET", url="https://api.example.com/users"),
            entry_factory("k2", method="POST", url="https://api.example.com/orders"),
        ],
    )


def test_show_renders_entries(runner, cassettes_dir: Path, show_cassette_path: Path):
    result = invoke(runner, "show", "show.jsonl", "--dir", str(cassettes_dir))
    assert result.exit_code == 0, result.output
    assert f"Cassette: {show_cassette_path}" in result.output
    assert "Entries: 2/2" in result.output
    assert "═══ Entry 1 ═══" in result.output
    assert "│ Method: POST" in result.output
    assert "│ Status: 200" in result.output


def test_show_filters(runner, cassettes_dir: Path, show_cassette_path: Path):
    result = invoke(
        runner, "show", str(show_cassette_path), "--method", "post", "--response-only"
    )
    assert result.exit_code == 0
    assert "Entries: 1/2" in result.output
    assert "┌─ Request" not in result.output


def test_show_no_matches(runner, cassettes_dir: Path, show_cassette_path: Path):
    result = invoke(runner, "show", str(show_cassette_path), "--grep", "missing")
    assert "No entries match the filters." in result.output


def test_show_raw(runner, cassettes_dir: Path, show_cassette_path: Path):
    result = invoke(runner, "show", str(show_cassette_path), "--raw")
    assert '"key":"k1"' in result.output


def test_show_empty_cassette(runner, cassettes_dir: Path, write_cassette):
    path = write_cassette("empty.jsonl", [])
    result = invoke(runner, "show", str(path))
    assert result.exit_code == 0
    assert "Cassette is empty" in result.output


def test_show_missing_cassette(runner, cassettes_dir: Path):
    result = invoke(runner, "show", "missing.jsonl", "--dir", str(cassettes_dir))
    assert result.exit_code == 1
    assert "Cassette not found" in result.output


# --- body formatting ---


def test_format_body_truncates():
    text = format_body(b"x" * 600, {"content-type": "text/plain"}, False, False)
    assert text == "x" * 497 + "..."


def test_format_body_no_truncate():
    assert format_body(b"x" * 600, {}, False, True) == "x" * 600


def test_format_body_pretty_prints_json():
    text = format_body(b'{"a":1}', {"Content-Type": "application/json"}, True, False)
    assert text == '{\n  "a": 1\n}'


def test_format_body_invalid_json_falls_back():
    assert format_body(b"{nope", {"content-type": "application/json"}, True, False) == "{nope"
