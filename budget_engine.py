"""
budget_engine.py
----------------
Adaptive daily spending limit ("Piggy Bank") for the active budget.

The simulator is a pure function of the budget and its ledger: every call
replays the period from its first day up to yesterday, so there is no
running state to persist or drift.  Underspending on a past day credits the
piggy bank and leaves the ceiling alone; overspending lowers the ceiling for
every remaining day of the period.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from database import FIXED, VARIABLE
from settings import local_now, reference_tz

ONE_DAY = timedelta(days=1)
END_OF_DAY = time(23, 59, 59, 999000)


class LimitPolicy(str, Enum):
    CARRY_FORWARD = "carry_forward"
    # Earlier policy: never exceed the base ceiling, spread what is left
    CLAMP = "clamp"


@dataclass(frozen=True)
class DayState:
    date: date
    spent: float
    limit: float            # ceiling in force on that day
    piggy_bank: float       # buffer after the day closed
    days_remaining: int


@dataclass
class BudgetSnapshot:
    name: str
    principal: float
    fixed_spent: float
    variable_spent: float
    days_left: int
    total_duration_days: int
    disposable_total: float
    base_daily_limit: float
    daily_limit: float
    safety_buffer: float
    spent_today: float
    left_today: float
    is_warning: bool
    history: List[DayState] = field(default_factory=list)

    @property
    def remaining_total(self) -> float:
        return self.principal - self.fixed_spent - self.variable_spent

    def to_status(self) -> dict:
        """Shape consumed by the dashboard's status card."""
        return {
            "active": True,
            "name": self.name,
            "principal": self.principal,
            "fixedSpent": self.fixed_spent,
            "varSpent": self.variable_spent,
            "daysLeft": self.days_left,
            "limits": {
                "daily": self.daily_limit,
                "base": self.base_daily_limit,
                "spentToday": self.spent_today,
                "leftToday": self.left_today,
                "safetyBuffer": self.safety_buffer,
                "isWarning": self.is_warning,
            },
        }

    def history_records(self) -> List[dict]:
        return [{**asdict(d), "date": d.date.isoformat()} for d in self.history]


def ledger_frame(ledger: Iterable) -> pd.DataFrame:
    """Turn transaction rows into a DataFrame with Date, Amount and Type columns."""
    rows = [
        {"Date": t.date, "Amount": t.amount, "Type": t.type}
        for t in ledger
    ]
    if not rows:
        return pd.DataFrame(columns=["Date", "Amount", "Type"])

    df = pd.DataFrame(rows)
    df["Amount"] = pd.to_numeric(df["Amount"], errors="coerce").fillna(0.0)
    # Rows written before types existed count as discretionary
    df["Type"] = df["Type"].fillna(VARIABLE).replace("", VARIABLE)
    return df


def daily_variable_spend(ledger: Iterable) -> Dict[date, float]:
    """Sum of Variable spend per calendar day."""
    df = ledger_frame(ledger)
    if df.empty:
        return {}
    variable = df[df["Type"] != FIXED]
    return {d: float(v) for d, v in variable.groupby("Date")["Amount"].sum().items()}


def _as_reference(now: datetime, tz: timezone) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=tz)
    return now.astimezone(tz)


def days_left(end_date: date, now: datetime, tz: timezone) -> int:
    end_of_final_day = datetime.combine(end_date, END_OF_DAY, tzinfo=tz)
    return max(1, math.ceil((end_of_final_day - _as_reference(now, tz)) / ONE_DAY))


def total_duration_days(start_date: date, end_date: date) -> int:
    return max(1, (end_date - start_date).days + 1)


def _walk_carry_forward(
    start: date,
    last_day: date,
    base: float,
    total_days: int,
    daily: Dict[date, float],
) -> Tuple[List[DayState], float, float]:
    current_limit = base
    piggy_bank = 0.0
    remaining = total_days
    history = []

    day = start
    while day <= last_day:
        spent = daily.get(day, 0.0)
        remaining -= 1
        limit_that_day = current_limit

        if spent < current_limit:
            piggy_bank += current_limit - spent
        elif spent > current_limit:
            current_limit -= (spent - current_limit) / max(remaining, 1)

        history.append(DayState(day, spent, limit_that_day, piggy_bank, remaining))
        day += ONE_DAY

    return history, current_limit, piggy_bank


def _walk_clamp(
    start: date,
    last_day: date,
    base: float,
    total_days: int,
    daily: Dict[date, float],
) -> Tuple[List[DayState], float]:
    piggy_bank = 0.0
    remaining = total_days
    history = []

    day = start
    while day <= last_day:
        spent = daily.get(day, 0.0)
        remaining -= 1
        if spent < base:
            piggy_bank += base - spent
        history.append(DayState(day, spent, base, piggy_bank, remaining))
        day += ONE_DAY

    return history, piggy_bank


def simulate_budget(
    period,
    ledger: Iterable,
    now: Optional[datetime] = None,
    tz: Optional[timezone] = None,
    policy: LimitPolicy | str = LimitPolicy.CARRY_FORWARD,
) -> Optional[BudgetSnapshot]:
    """
    Replay the budget period day by day and report today's limits.

    Returns ``None`` when there is no active budget.  Only Variable
    transactions count toward daily spend; Fixed ones reduce the disposable
    total through ``period.fixed_spent``.
    """
    if period is None:
        return None

    tz = tz or reference_tz()
    now = _as_reference(now or local_now(tz), tz)
    policy = LimitPolicy(policy)
    today = now.date()

    principal = float(period.principal or 0.0)
    fixed_spent = float(period.fixed_spent or 0.0)
    variable_spent = float(period.variable_spent or 0.0)

    total_days = total_duration_days(period.start_date, period.end_date)
    left = days_left(period.end_date, now, tz)
    disposable_total = principal - fixed_spent
    base = disposable_total / total_days

    daily = daily_variable_spend(ledger)
    spent_today = daily.get(today, 0.0)
    last_day = min(today - ONE_DAY, period.end_date)

    if policy is LimitPolicy.CLAMP:
        history, piggy_bank = _walk_clamp(period.start_date, last_day, base, total_days, daily)
        raw_limit = (disposable_total - variable_spent) / left
        daily_limit = max(0.0, min(base, raw_limit))
    else:
        history, current_limit, piggy_bank = _walk_carry_forward(
            period.start_date, last_day, base, total_days, daily
        )
        daily_limit = max(0.0, current_limit)

    left_today = daily_limit - spent_today
    return BudgetSnapshot(
        name=period.name,
        principal=principal,
        fixed_spent=fixed_spent,
        variable_spent=variable_spent,
        days_left=left,
        total_duration_days=total_days,
        disposable_total=disposable_total,
        base_daily_limit=base,
        daily_limit=daily_limit,
        safety_buffer=piggy_bank,
        spent_today=spent_today,
        left_today=left_today,
        is_warning=left_today < 0,
        history=history,
    )
