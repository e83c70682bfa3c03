from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

import statement_ingest.cli as cli_mod

runner = CliRunner()

ALICE_CSV = "Date,Description,Amount\n2024-03-01,Transfer to Bob,-500\n2024-03-01,Coffee,4.50\n"
BOB_CSV = "Date,Description,Amount\n01/03/2024,Transfer from Alice,500.00\n"


@pytest.fixture(autouse=True)
def _quiet_cli(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    # Keep logging handlers off the runner's short-lived streams and make the
    # .env lookup hit an empty directory.
    monkeypatch.setattr(cli_mod, "configure_logging", lambda *a, **kw: None)
    monkeypatch.chdir(tmp_path)


def _write(tmp_path: Path, name: str, text: str) -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_import_writes_canonical_json(tmp_path: Path) -> None:
    alice = _write(tmp_path, "alice.csv", ALICE_CSV)
    bob = _write(tmp_path, "bob.csv", BOB_CSV)
    out = tmp_path / "out.json"

    result = runner.invoke(
        cli_mod.app,
        ["import", f"{alice}:alice", f"{bob}:bob", "--output", str(out), "--no-ai"],
    )

    assert result.exit_code == 0, result.output
    records = json.loads(out.read_text(encoding="utf-8"))
    assert [r["owner"] for r in records] == ["alice", "alice", "bob"]
    assert [r["type"] for r in records] == ["Transfer", "Expense", "Transfer"]
    assert set(records[0]) == {
        "id",
        "owner",
        "type",
        "date",
        "time",
        "category",
        "subCategory",
        "notes",
        "amount",
        "project",
    }
    assert "1 transfer pairs" in result.output


def test_import_exits_nonzero_when_every_file_fails(tmp_path: Path) -> None:
    broken = _write(tmp_path, "broken.csv", "only a header\n")
    result = runner.invoke(
        cli_mod.app, ["import", f"{broken}:alice", f"{tmp_path / 'missing.csv'}:bob"]
    )
    assert result.exit_code == 1


def test_import_rejects_file_without_owner(tmp_path: Path) -> None:
    alice = _write(tmp_path, "alice.csv", ALICE_CSV)
    result = runner.invoke(cli_mod.app, ["import", str(alice)])
    assert result.exit_code == 1


def test_partial_failure_still_succeeds(tmp_path: Path) -> None:
    alice = _write(tmp_path, "alice.csv", ALICE_CSV)
    broken = _write(tmp_path, "broken.csv", "only a header\n")
    out = tmp_path / "out.json"
    result = runner.invoke(
        cli_mod.app, ["import", f"{alice}:alice", f"{broken}:bob", "-o", str(out)]
    )
    assert result.exit_code == 0, result.output
    assert len(json.loads(out.read_text(encoding="utf-8"))) == 2


def test_learned_rule_applies_to_later_imports(tmp_path: Path, cache_root: Path) -> None:
    result = runner.invoke(cli_mod.app, ["learn-rule", "Coffee", "Treats"])
    assert result.exit_code == 0, result.output
    assert (cache_root / "category_rules.json").exists()

    alice = _write(tmp_path, "alice.csv", ALICE_CSV)
    out = tmp_path / "out.json"
    result = runner.invoke(cli_mod.app, ["import", f"{alice}:alice", "-o", str(out)])
    assert result.exit_code == 0, result.output
    categories = [r["category"] for r in json.loads(out.read_text(encoding="utf-8"))]
    assert "Treats" in categories


def test_learn_rule_rejects_blank_keyword() -> None:
    result = runner.invoke(cli_mod.app, ["learn-rule", "  ", "Treats"])
    assert result.exit_code == 1


def test_show_mapping_reports_rules_then_cache(tmp_path: Path) -> None:
    alice = _write(tmp_path, "alice.csv", ALICE_CSV)

    before = runner.invoke(cli_mod.app, ["show-mapping", str(alice)])
    assert before.exit_code == 0, before.output
    shown = json.loads(before.stdout)
    assert shown["source"] == "rules"
    assert shown["signature"] == "amount|date|description"
    assert shown["mapping"]["dateColumn"] == "Date"

    runner.invoke(cli_mod.app, ["import", f"{alice}:alice", "-o", str(tmp_path / "o.json")])

    after = runner.invoke(cli_mod.app, ["show-mapping", str(alice)])
    assert json.loads(after.stdout)["source"] == "cache"


def test_show_mapping_on_missing_file(tmp_path: Path) -> None:
    result = runner.invoke(cli_mod.app, ["show-mapping", str(tmp_path / "nope.csv")])
    assert result.exit_code == 1
