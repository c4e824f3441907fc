from datetime import datetime

import pytest

import commands
import ledger
from errors import StorageError


@pytest.fixture
def budget_db(db, march_now):
    commands.set_budget(db, "March", "01-03-2024", "10-03-2024", "300", now=march_now)
    return db


def test_set_budget_reply(db, march_now):
    reply = commands.set_budget(db, "March", "01-03-2024", "10-03-2024", "300", now=march_now)

    assert "Budget Set: March" in reply
    assert "Duration: 10 days" in reply
    assert "Initial Ceiling:* $30.00" in reply


def test_set_budget_reports_validation_problem(db, march_now):
    reply = commands.set_budget(db, "March", "05-03-2024", "01-03-2024", "300", now=march_now)
    assert reply == "❌ Start date must be before End date."

    reply = commands.set_budget(db, "March", "01-03-2024", "10-03-2024", "three hundred", now=march_now)
    assert reply.startswith("❌ Amount must be a number")


def test_show_status_without_budget(db, march_now):
    assert commands.show_status(db, now=march_now) == "⚠️ No active budget found."


def test_show_status_dashboard(budget_db):
    commands.log_transaction(budget_db, "Lunch", 20, now=datetime(2024, 3, 1, 12))
    commands.log_transaction(budget_db, "Dinner", 45, now=datetime(2024, 3, 2, 19))

    reply = commands.show_status(budget_db, now=datetime(2024, 3, 3, 9))
    assert "Limit:  $28.12" in reply or "Limit:  $28.13" in reply
    assert "Piggy Bank:* $10.00" in reply
    assert "Remaining:    $235.00" in reply
    assert "Days Left:    8" in reply


def test_log_variable_transaction_shows_status(budget_db, march_now):
    reply = commands.log_transaction(budget_db, "Coffee", "4.5", "drinks", now=march_now)

    assert reply.startswith("✅ Logged: Coffee ($4.50)")
    assert "Limit:   $30.00" in reply
    assert "Spent:   $4.50" in reply
    assert "Left:    $25.50" in reply


def test_log_overspend_flags_warning(budget_db, march_now):
    reply = commands.log_transaction(budget_db, "Concert", 80, "fun", now=march_now)
    assert "🚨 *Status:*" in reply
    assert "Left:    $-50.00" in reply


def test_log_fixed_transaction(budget_db, march_now):
    reply = commands.log_transaction(budget_db, "Rent", 100, None, "Fixed", now=march_now)
    assert reply.endswith("📉 *Fixed Cost Added*")


def test_log_without_budget_only_confirms(db, march_now):
    assert commands.log_transaction(db, "Snack", 3, now=march_now) == "✅ Logged: Snack ($3.00)"


def test_log_rejects_bad_amount(db, march_now):
    reply = commands.log_transaction(db, "Snack", "cheap", now=march_now)
    assert reply.startswith("⚠️")
    assert "Format: Item Amount Category [fixed]" in reply


def test_log_reports_storage_failure(db, march_now, monkeypatch):
    def boom(*args, **kwargs):
        raise StorageError("record transaction failed")

    monkeypatch.setattr(ledger, "record_transaction", boom)
    assert commands.log_transaction(db, "Snack", 3, now=march_now) == "❌ Error saving data."


def test_resync_and_clear(budget_db, march_now):
    commands.log_transaction(budget_db, "Lunch", 12, now=march_now)
    commands.log_transaction(budget_db, "Gym", 40, None, "fixed", now=march_now)

    reply = commands.resync(budget_db)
    assert "Fixed: $40.00" in reply
    assert "Variable: $12.00" in reply

    assert commands.clear_budget(budget_db) == "🗑️ *Budgets Cleared.*"
    assert commands.resync(budget_db) == "⚠️ No active budget config found."


def test_recent_transactions_report(db, march_now):
    assert commands.recent_transactions(db, period="2024-03") == "⚠️ No transactions found."

    commands.log_transaction(db, "Lunch", 12, now=march_now)
    commands.log_transaction(db, "Rent", 500, None, "Fixed", now=march_now)

    reply = commands.recent_transactions(db, 10, "2024-03")
    assert reply.splitlines()[0] == "📜 *Last 2 Transactions:*"
    assert "03-03-2024: Lunch - $12.00" in reply
    assert "03-03-2024: Rent - $500.00 📌" in reply


def test_help_text_lists_commands():
    text = commands.help_text()
    for cmd in ("/budget", "/show", "/resync", "/clearbudget", "/report"):
        assert cmd in text


def test_recent_transactions_bad_period(db):
    assert commands.recent_transactions(db, 5, "March").startswith("⚠️ Invalid period: March")
