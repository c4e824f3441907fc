"""
ledger.py
---------
Store operations for the active budget and its transaction ledger.

Every write runs inside a single database transaction under a process-wide
lock, so a reader never sees a transaction appended without the matching
budget aggregate (or the reverse).  Store access is retried a bounded number
of times before surfacing ``StorageError``.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from datetime import date, datetime
from typing import Callable, List, Optional, Tuple, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from budget_engine import BudgetSnapshot, ledger_frame, simulate_budget
from database import (
    DEFAULT_CATEGORY,
    FIXED,
    TRANSACTION_TYPES,
    VARIABLE,
    BudgetPeriod,
    Transaction,
)
from errors import NotFoundError, StorageError, ValidationError
from settings import LIMIT_POLICY, STORAGE_BACKOFF_SECONDS, STORAGE_RETRIES, local_now

logger = logging.getLogger(__name__)

DATE_FORMAT = "%d-%m-%Y"

T = TypeVar("T")

_write_lock = threading.RLock()


# --- Helpers ---

def period_key(day: date) -> str:
    """Month bucket a transaction belongs to, e.g. '2024-03'."""
    return day.strftime("%Y-%m")


def parse_period(value: str) -> str:
    try:
        return period_key(datetime.strptime(str(value).strip(), "%Y-%m"))
    except ValueError:
        raise ValidationError(f"Invalid period: {value} (expected YYYY-MM)") from None


def parse_day(value, label: str = "Date") -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), DATE_FORMAT).date()
    except ValueError:
        raise ValidationError(f"Invalid {label}: {value} (expected DD-MM-YYYY)") from None


def parse_amount(value, allow_zero: bool = False) -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Amount must be a number, got {value!r}.") from None

    if not math.isfinite(amount):
        raise ValidationError(f"Amount must be a finite number, got {value!r}.")
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError(f"Amount must be positive, got {value!r}.")
    return amount


def normalize_category(raw: Optional[str]) -> str:
    """'food COURT' -> 'Food court'; blank -> 'Other'."""
    raw = (raw or "").strip()
    if not raw:
        return DEFAULT_CATEGORY
    return raw[0].upper() + raw[1:].lower()


def normalize_type(raw: Optional[str]) -> str:
    if raw is None or not str(raw).strip():
        return VARIABLE
    for txn_type in TRANSACTION_TYPES:
        if str(raw).strip().lower() == txn_type.lower():
            return txn_type
    raise ValidationError(f"Type must be one of {', '.join(TRANSACTION_TYPES)}, got {raw!r}.")


def ledger_totals(rows) -> Tuple[float, float]:
    """(fixed, variable) sums of a ledger."""
    df = ledger_frame(rows)
    if df.empty:
        return 0.0, 0.0
    fixed = df.loc[df["Type"] == FIXED, "Amount"].sum()
    variable = df.loc[df["Type"] != FIXED, "Amount"].sum()
    return float(fixed), float(variable)


def with_retry(
    db: Session,
    operation: Callable[[], T],
    action: str = "store access",
    retries: int = STORAGE_RETRIES,
    backoff: float = STORAGE_BACKOFF_SECONDS,
) -> T:
    """Run ``operation``, retrying store failures ``retries`` times with linear backoff."""
    attempt = 0
    while True:
        try:
            return operation()
        except SQLAlchemyError as exc:
            db.rollback()
            if attempt >= retries:
                logger.error("%s failed after %d attempt(s): %s", action, attempt + 1, exc)
                raise StorageError(f"{action} failed") from exc
            attempt += 1
            delay = backoff * attempt
            logger.warning("%s failed (%s), retrying in %.1fs", action, exc, delay)
            time.sleep(delay)


# --- Budget ---

def get_active_budget(db: Session) -> Optional[BudgetPeriod]:
    return db.query(BudgetPeriod).order_by(BudgetPeriod.id.desc()).first()


def _active_for_update(db: Session) -> Optional[BudgetPeriod]:
    return db.query(BudgetPeriod).order_by(BudgetPeriod.id.desc()).with_for_update().first()


def set_budget(db: Session, name: str, start, end, amount, today: Optional[date] = None) -> BudgetPeriod:
    """
    Replace the active budget with a new one.

    Both dates must fall in the current calendar month and ``start`` may not
    come after ``end``.  The old row is deleted and the new one inserted in
    the same commit.
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("Budget name is required.")
    start_date = parse_day(start, "Start Date")
    end_date = parse_day(end, "End Date")
    principal = parse_amount(amount, allow_zero=True)

    today = today or local_now().date()
    for label, day in (("Start Date", start_date), ("End Date", end_date)):
        if (day.year, day.month) != (today.year, today.month):
            raise ValidationError(f"Invalid {label}: {day.strftime(DATE_FORMAT)} is not in the current month.")
    if start_date > end_date:
        raise ValidationError("Start date must be before End date.")

    def _replace():
        db.query(BudgetPeriod).delete()
        budget = BudgetPeriod(
            name=name,
            start_date=start_date,
            end_date=end_date,
            principal=principal,
            fixed_spent=0.0,
            variable_spent=0.0,
            status="Active",
        )
        db.add(budget)
        db.commit()
        db.refresh(budget)
        return budget

    with _write_lock:
        budget = with_retry(db, _replace, "set budget")
    logger.info("Budget set: %r", budget)
    return budget


def clear_budget(db: Session) -> int:
    def _clear():
        count = db.query(BudgetPeriod).delete()
        db.commit()
        return count

    with _write_lock:
        count = with_retry(db, _clear, "clear budget")
    logger.info("Cleared %d budget row(s)", count)
    return count


def ledger_for(db: Session, budget: BudgetPeriod) -> List[Transaction]:
    """Transactions in the month bucket the budget was set in."""
    return list_transactions(db, period_key(budget.start_date))


def resync(db: Session) -> BudgetPeriod:
    """Recompute the budget's fixed/variable aggregates from its ledger."""

    def _resync():
        budget = _active_for_update(db)
        if budget is None:
            raise NotFoundError("No active budget config found.")
        fixed, variable = ledger_totals(ledger_for(db, budget))
        budget.fixed_spent = fixed
        budget.variable_spent = variable
        db.commit()
        db.refresh(budget)
        return budget

    with _write_lock:
        budget = with_retry(db, _resync, "resync")
    logger.info("Resynced budget %s: fixed=%.2f variable=%.2f", budget.name, budget.fixed_spent, budget.variable_spent)
    return budget


# --- Transactions ---

def record_transaction(
    db: Session,
    item: str,
    amount,
    category: Optional[str] = None,
    txn_type: Optional[str] = None,
    on: Optional[date] = None,
) -> Transaction:
    """Append a transaction and bump the matching budget aggregate atomically."""
    item = (item or "").strip()
    if not item:
        raise ValidationError("Item is required.")
    amount = parse_amount(amount)
    category = normalize_category(category)
    txn_type = normalize_type(txn_type)
    day = parse_day(on) if on is not None else local_now().date()

    def _write():
        txn = Transaction(
            date=day,
            item=item,
            amount=amount,
            category=category,
            type=txn_type,
            period=period_key(day),
        )
        db.add(txn)

        budget = _active_for_update(db)
        if budget is not None and period_key(budget.start_date) == txn.period:
            # Increment in SQL so writers in other processes are not overwritten
            column = BudgetPeriod.fixed_spent if txn_type == FIXED else BudgetPeriod.variable_spent
            db.query(BudgetPeriod).filter(BudgetPeriod.id == budget.id).update(
                {column: func.coalesce(column, 0.0) + amount},
                synchronize_session=False,
            )

        db.commit()
        db.refresh(txn)
        return txn

    with _write_lock:
        txn = with_retry(db, _write, "record transaction")
    logger.info("Logged %s %.2f (%s, %s) on %s", txn.item, txn.amount, txn.category, txn.type, txn.date)
    return txn


def list_transactions(db: Session, period: Optional[str] = None) -> List[Transaction]:
    """Rows of one month bucket; ``period`` must already be a 'YYYY-MM' key."""
    period = period or period_key(local_now().date())
    return (
        db.query(Transaction)
        .filter(Transaction.period == period)
        .order_by(Transaction.date, Transaction.id)
        .all()
    )


def recent_transactions(db: Session, n: int = 10, period: Optional[str] = None) -> List[Transaction]:
    if n <= 0:
        return []
    period = parse_period(period) if period else None
    rows = with_retry(db, lambda: list_transactions(db, period), "load transactions")
    return rows[-n:]


def list_periods(db: Session) -> List[str]:
    rows = with_retry(db, lambda: db.query(Transaction.period).distinct().all(), "list periods")
    return sorted((r[0] for r in rows), reverse=True)


# --- Status ---

def load_snapshot(
    db: Session,
    now: Optional[datetime] = None,
    tz=None,
    policy: str = LIMIT_POLICY,
) -> Optional[BudgetSnapshot]:
    """Simulate the active budget; ``None`` when no budget is set."""

    def _read():
        budget = get_active_budget(db)
        if budget is None:
            return None
        return simulate_budget(budget, ledger_for(db, budget), now=now, tz=tz, policy=policy)

    return with_retry(db, _read, "load budget status")
