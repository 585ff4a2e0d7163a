import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from budget_assistant.cli import app
from budget_assistant.db.client import session_scope
from budget_assistant.persistence import load_snapshot

runner = CliRunner()


@pytest.fixture
def statement(tmp_path: Path) -> Path:
    payload = {
        "transactions": [
            {"merchant": "Shell", "amount": 40, "category": "gas", "date": "2024-05-01", "tags": ["work"]},
            {"merchant": "Kroger", "total": "12.99", "category": "supermarket", "date": "2024-05-02"},
            {"merchant": "Broken", "amount": "n/a"},
        ]
    }
    path = tmp_path / "statement.json"
    path.write_text("```json\n" + json.dumps(payload) + "\n```", encoding="utf-8")
    return path


def test_parse_command():
    result = runner.invoke(app, ["parse", "$60 at Olive Garden for dinner"])
    assert result.exit_code == 0, result.output
    assert "amount\t60.00" in result.output
    assert "notes\tdinner" in result.output
    assert "category\tDining" in result.output


def test_classify_command():
    result = runner.invoke(app, ["classify", "Whole Foods"])
    assert result.exit_code == 0
    assert result.output.strip() == "Groceries"

    result = runner.invoke(app, ["classify", "Acme Corp"])
    assert result.output.strip() == "Other"


def test_recommend_command():
    result = runner.invoke(app, ["recommend", "dining", "100"])
    assert result.exit_code == 0
    assert result.output.strip() == "Savor Max\t4x\t400.00"

    result = runner.invoke(app, ["recommend", "Dining", "10", "--all"])
    assert result.exit_code == 0
    assert len(result.output.strip().splitlines()) == 5


@pytest.mark.parametrize("args", [["recommend", "Pets", "10"], ["recommend", "Dining", "abc"]])
def test_recommend_errors(args):
    result = runner.invoke(app, args)
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_normalize_command(statement):
    result = runner.invoke(app, ["normalize", str(statement)])
    assert result.exit_code == 0
    # The trailing empty tags column is lost to strip().
    lines = result.output.strip().splitlines()
    assert lines == [
        "Shell\t40.00\tGas\t2024-05-01\twork",
        "Kroger\t12.99\tGroceries\t2024-05-02",
    ]


def test_normalize_receipt(tmp_path):
    path = tmp_path / "receipt.json"
    path.write_text('{"merchant": "Cafe Luna", "total": "8.75", "category": "coffee"}', encoding="utf-8")
    result = runner.invoke(app, ["normalize", str(path), "--receipt"])
    assert result.exit_code == 0
    assert result.output.startswith("Cafe Luna\t8.75\tDining")


def test_normalize_missing_file(tmp_path):
    result = runner.invoke(app, ["normalize", str(tmp_path / "nope.json")])
    assert result.exit_code == 1
    assert "Error: File not found" in result.output


def test_write_commands_require_database():
    result = runner.invoke(app, ["remember", "Joe's", "Dining"])
    assert result.exit_code == 1
    assert "DATABASE_URL" in result.output


def test_import_then_reimport_flags_duplicates(db_url, statement):
    result = runner.invoke(app, ["import", str(statement), "--database-url", db_url])
    assert result.exit_code == 0, result.output
    assert "Imported 2 purchase(s); 0 duplicate(s) added, 0 ignored." in result.output

    with session_scope(database_url=db_url) as session:
        snap = load_snapshot(session)
    assert sorted(p.merchant for p in snap.purchases) == ["Kroger", "Shell"]
    assert snap.memory.lookup("shell") == "Gas"

    result = runner.invoke(app, ["import", str(statement), "--database-url", db_url, "--ignore-all"])
    assert result.exit_code == 0, result.output
    assert "Imported 0 purchase(s); 0 duplicate(s) added, 2 ignored." in result.output


def test_import_asks_about_each_duplicate(db_url, statement):
    runner.invoke(app, ["import", str(statement), "--database-url", db_url])
    result = runner.invoke(app, ["import", str(statement), "--database-url", db_url], input="y\nn\n")
    assert result.exit_code == 0, result.output
    assert "1 duplicate(s) added, 1 ignored." in result.output

    with session_scope(database_url=db_url) as session:
        assert len(load_snapshot(session).purchases) == 3


def test_import_rejects_conflicting_flags(db_url, statement):
    result = runner.invoke(
        app, ["import", str(statement), "--database-url", db_url, "--accept-all", "--ignore-all"]
    )
    assert result.exit_code == 1


def test_import_skips_sub_cent_lines(db_url, tmp_path):
    path = tmp_path / "fees.json"
    path.write_text(
        json.dumps([{"merchant": "Kroger", "amount": 20}, {"merchant": "Fee", "amount": "0.004"}]),
        encoding="utf-8",
    )
    result = runner.invoke(app, ["import", str(path), "--database-url", db_url])
    assert result.exit_code == 0, result.output
    assert "Imported 1 purchase(s)" in result.output

    with session_scope(database_url=db_url) as session:
        (stored,) = load_snapshot(session).purchases
    assert stored.merchant == "Kroger"


def test_remember_then_classify(db_url, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", db_url)
    assert runner.invoke(app, ["init-db"]).exit_code == 0

    result = runner.invoke(app, ["remember", "Whole Foods", "dining"])
    assert result.exit_code == 0
    assert result.output.strip() == "Whole Foods\tDining"

    result = runner.invoke(app, ["classify", "whole foods"])
    assert result.output.strip() == "Dining"

    result = runner.invoke(app, ["remember", "Whole Foods", "Pets"])
    assert result.exit_code == 1


def test_add_tag_and_category(db_url, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", db_url)
    result = runner.invoke(app, ["add-tag", "WORK"])
    assert result.output.strip() == "work"
    result = runner.invoke(app, ["add-tag", "Road Trip"])
    assert result.output.strip() == "Road Trip"

    result = runner.invoke(app, ["add-category", "Pets", "35"])
    assert result.output.strip() == "Pets\tcreated"
    result = runner.invoke(app, ["add-category", "pets"])
    assert result.output.strip() == "Pets\texists"
    result = runner.invoke(app, ["add-category", "Bad$Name"])
    assert result.exit_code == 1

    with session_scope(database_url=db_url) as session:
        snap = load_snapshot(session)
    assert "Road Trip" in snap.tags.names
    assert "Pets" in snap.catalog


def test_budget_history_and_envelope(db_url, statement, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", db_url)
    runner.invoke(app, ["import", str(statement)])

    result = runner.invoke(app, ["budget", "--since", "2024-05-01", "--until", "2024-05-31"])
    assert result.exit_code == 0, result.output
    lines = result.output.strip().splitlines()
    assert "Groceries\t12.99\t400.00\t387.01" in lines
    assert "Gas\t40.00\t150.00\t110.00" in lines
    assert "Dining\t0.00\t250.00\t250.00" in lines
    assert lines[-1] == "Overall\t52.99\t2000.00\t1947.01"

    result = runner.invoke(app, ["set-budget", "50"])
    assert result.output.strip() == "Overall\t50.00"
    result = runner.invoke(app, ["budget", "--range", "all"])
    assert result.output.strip().splitlines()[-1] == "Overall\t52.99\t50.00\t-2.99\tover"

    result = runner.invoke(app, ["history", "gas", "--range", "all"])
    assert result.output.strip() == "2024-05-01\t40.00"
    result = runner.invoke(app, ["history", "Gas", "--range", "all", "--remaining"])
    assert result.output.strip() == "2024-05-01\t110.00"
    result = runner.invoke(app, ["history", "--range", "all"])
    assert result.output.strip().splitlines() == ["2024-05-01\t40.00", "2024-05-02\t52.99"]


@pytest.mark.parametrize(
    "args",
    [
        ["budget", "--range", "fortnight"],
        ["budget", "--since", "May 1"],
        ["budget", "--since", "2024-05-02", "--until", "2024-05-01"],
        ["history", "Pets"],
        ["set-budget", "-5"],
        ["set-budget", "lots"],
    ],
)
def test_budget_command_errors(db_url, monkeypatch, args):
    monkeypatch.setenv("DATABASE_URL", db_url)
    result = runner.invoke(app, args)
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_delete_purchase_by_id(db_url, statement, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", db_url)
    runner.invoke(app, ["import", str(statement)])

    listed = runner.invoke(app, ["purchases"]).output.strip().splitlines()
    assert [line.split("\t")[2:] for line in listed] == [
        ["Shell", "40.00", "Gas"],
        ["Kroger", "12.99", "Groceries"],
    ]
    shell_id = listed[0].split("\t")[0]

    result = runner.invoke(app, ["delete", shell_id])
    assert result.exit_code == 0, result.output
    assert result.output.strip() == f"Deleted {shell_id}."
    assert runner.invoke(app, ["delete", shell_id]).exit_code == 1
    assert runner.invoke(app, ["delete", "not-an-id"]).exit_code == 1

    with session_scope(database_url=db_url) as session:
        assert [p.merchant for p in load_snapshot(session).purchases] == ["Kroger"]


def test_clear_asks_unless_yes(db_url, statement, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", db_url)
    runner.invoke(app, ["import", str(statement)])

    result = runner.invoke(app, ["clear"], input="n\n")
    assert result.exit_code == 0
    assert "Nothing cleared." in result.output

    result = runner.invoke(app, ["clear", "--yes"])
    assert result.exit_code == 0, result.output
    assert result.output.strip() == "Cleared 2 purchase(s)."
    with session_scope(database_url=db_url) as session:
        assert load_snapshot(session).purchases == []
