import pytest

import cli
import ledger


def test_parse_log_fixed():
    args = cli.parse_args(["log", "Rent", "1200", "--category", "housing", "--fixed"])
    assert args.command == "log"
    assert args.item == "Rent"
    assert args.amount == "1200"
    assert args.category == "housing"
    assert args.fixed is True


def test_parse_requires_subcommand():
    with pytest.raises(SystemExit):
        cli.parse_args([])


def test_run_report_and_log(db):
    reply = cli.run(cli.parse_args(["log", "Tea", "3", "--category", "drinks"]), db)
    assert reply.startswith("✅ Logged: Tea ($3.00)")

    period = ledger.list_periods(db)[0]
    reply = cli.run(cli.parse_args(["report", "-n", "5", "--period", period]), db)
    assert "Tea - $3.00" in reply


def test_run_fixed_log_and_resync_without_budget(db):
    cli.run(cli.parse_args(["log", "Rent", "900", "--fixed"]), db)
    assert ledger.recent_transactions(db, 1, ledger.list_periods(db)[0])[0].type == "Fixed"
    assert cli.run(cli.parse_args(["resync"]), db) == "⚠️ No active budget config found."
    assert cli.run(cli.parse_args(["show"]), db) == "⚠️ No active budget found."
