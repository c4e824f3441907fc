"""Chat-command handlers: each takes parsed arguments and returns reply text."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

import ledger
from budget_engine import BudgetSnapshot, total_duration_days
from database import FIXED
from errors import NotFoundError, StorageError, ValidationError
from settings import LIMIT_POLICY, local_now

logger = logging.getLogger(__name__)


def help_text() -> str:
    return (
        "💰 *Piggy Bank Ready*\n\n"
        "/budget Name DD-MM-YYYY DD-MM-YYYY Amount\n"
        "/show - Full Dashboard\n"
        "/resync - Fix totals\n"
        "/clearbudget - Remove the active budget\n"
        "/report - Last 10 txns\n"
        "Item Amount [Category] [fixed] - Log a transaction"
    )


def _status_lines(snapshot: BudgetSnapshot) -> str:
    emoji = "🚨" if snapshot.is_warning else "✅"
    return (
        f"{emoji} *Status:*\n"
        f"Limit:   ${snapshot.daily_limit:,.2f}\n"
        f"Spent:   ${snapshot.spent_today:,.2f}\n"
        f"Left:    ${snapshot.left_today:,.2f}"
    )


def set_budget(db: Session, name: str, start, end, amount, now: Optional[datetime] = None) -> str:
    now = now or local_now()
    try:
        budget = ledger.set_budget(db, name, start, end, amount, today=now.date())
    except ValidationError as exc:
        return f"❌ {exc}"
    except StorageError:
        return "❌ System Error."

    days = total_duration_days(budget.start_date, budget.end_date)
    daily = budget.principal / days
    return (
        f"✅ *Budget Set: {budget.name}*\n"
        f"💰 Principal: ${budget.principal:,.2f}\n"
        f"📅 Duration: {days} days\n"
        f"🛡️ *Initial Ceiling:* ${daily:,.2f}"
    )


def clear_budget(db: Session) -> str:
    try:
        ledger.clear_budget(db)
    except StorageError:
        return "❌ Failed."
    return "🗑️ *Budgets Cleared.*"


def resync(db: Session) -> str:
    try:
        budget = ledger.resync(db)
    except NotFoundError:
        return "⚠️ No active budget config found."
    except StorageError:
        return "❌ Resync failed."
    return (
        "🔄 *Resync Complete*\n"
        f"Fixed: ${budget.fixed_spent:,.2f}\n"
        f"Variable: ${budget.variable_spent:,.2f}"
    )


def show_status(db: Session, now: Optional[datetime] = None, policy: str = LIMIT_POLICY) -> str:
    try:
        snapshot = ledger.load_snapshot(db, now=now, policy=policy)
    except StorageError:
        return "❌ Error fetching status."
    if snapshot is None:
        return "⚠️ No active budget found."

    emoji = "🚨" if snapshot.is_warning else "✅"
    return (
        "📊 *Budget Dashboard*\n\n"
        "📅 *Today's Status:*\n"
        f"• Limit:  ${snapshot.daily_limit:,.2f}\n"
        f"• Spent:  ${snapshot.spent_today:,.2f}\n"
        f"• Left:   *{emoji} ${snapshot.left_today:,.2f}*\n\n"
        f"🐷 *Piggy Bank:* ${snapshot.safety_buffer:,.2f}\n\n"
        "📉 *Overall Progress:*\n"
        f"• Total Budget: ${snapshot.principal:,.2f}\n"
        f"• Remaining:    ${snapshot.remaining_total:,.2f}\n"
        f"• Days Left:    {snapshot.days_left}"
    )


def recent_transactions(db: Session, n: int = 10, period: Optional[str] = None) -> str:
    try:
        rows = ledger.recent_transactions(db, n, period)
    except ValidationError as exc:
        return f"⚠️ {exc}"
    except StorageError:
        return "❌ Error generating report."
    if not rows:
        return "⚠️ No transactions found."

    lines = [f"📜 *Last {len(rows)} Transactions:*", ""]
    for t in rows:
        pin = " 📌" if t.type == FIXED else ""
        lines.append(f"{t.date.strftime(ledger.DATE_FORMAT)}: {t.item} - ${t.amount:,.2f}{pin}")
    return "\n".join(lines)


def log_transaction(
    db: Session,
    item: str,
    amount,
    category: Optional[str] = None,
    txn_type: Optional[str] = None,
    now: Optional[datetime] = None,
    policy: str = LIMIT_POLICY,
) -> str:
    """Record a transaction and reply with today's status for Variable spend."""
    now = now or local_now()
    try:
        txn = ledger.record_transaction(db, item, amount, category, txn_type, on=now.date())
    except ValidationError as exc:
        return f"⚠️ {exc} Format: Item Amount Category [fixed]"
    except StorageError:
        return "❌ Error saving data."

    reply = f"✅ Logged: {txn.item} (${txn.amount:,.2f})"
    try:
        snapshot = ledger.load_snapshot(db, now=now, policy=policy)
    except StorageError:
        logger.exception("Budget calc error after logging %s", txn.item)
        return reply

    if snapshot is None:
        return reply
    if txn.type == FIXED:
        return reply + "\n\n📉 *Fixed Cost Added*"
    return reply + "\n\n" + _status_lines(snapshot)
