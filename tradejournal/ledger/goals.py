"""Weekly Goal Tracker — pacing of one account against its week's goal.

Nothing here is persisted. Progress is recomputed from the trade list each
time, joined to plans on the week-start key (the Monday of the trade's week).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable

from tradejournal.ledger.formatting import week_history_keys, week_start_key
from tradejournal.shell.contract import Trade, WeeklyPlan

GOAL_REACHED = "Goal Reached"
IN_PROGRESS = "In Progress"

TRADING_DAYS = 5  # Mon-Fri


def find_plan(plans: Iterable[WeeklyPlan], account_id: str, week_start: str) -> WeeklyPlan | None:
    for p in plans:
        if p.account_id == account_id and p.week_start == week_start:
            return p
    return None


def default_plan(account_id: str, week_start: str) -> WeeklyPlan:
    """Zero-goal plan used when nothing was saved for the week. Has no id."""
    return WeeklyPlan(account_id=account_id, week_start=week_start)


def week_trades(trades: Iterable[Trade], account_id: str, week_start: str) -> list[Trade]:
    return [
        t for t in trades
        if t.account_id == account_id and week_start_key(t.date) == week_start
    ]


def progress_pct(realized_usd: float, goal_usd: float) -> float:
    return realized_usd / goal_usd * 100 if goal_usd > 0 else 0.0


def is_goal_reached(realized_usd: float, goal_usd: float) -> bool:
    """Plain numeric compare; a zero goal is never "reached"."""
    return goal_usd > 0 and realized_usd >= goal_usd


def days_left(today: date) -> int:
    """Business days after today in the week. Saturday and Sunday both give 0."""
    weekday = today.isoweekday()  # Mon=1 .. Sun=7
    return max(0, TRADING_DAYS - (TRADING_DAYS if weekday == 7 else weekday))


@dataclass
class WeekProgress:
    account_id: str
    week_start: str
    has_plan: bool
    goal_usd: float
    goal_points: float
    realized_usd: float
    realized_points: float
    trade_count: int
    progress_pct: float
    remaining_usd: float
    days_left: int
    # Signed: negative once the goal is beaten. Callers treat <= 0 as "nothing more needed".
    daily_needed: float
    goal_reached: bool

    @property
    def status(self) -> str:
        return GOAL_REACHED if self.goal_reached else IN_PROGRESS

    def to_dict(self) -> dict:
        return {
            "account_id": self.account_id,
            "week_start": self.week_start,
            "has_plan": self.has_plan,
            "goal_usd": self.goal_usd,
            "goal_points": self.goal_points,
            "realized_usd": self.realized_usd,
            "realized_points": self.realized_points,
            "trade_count": self.trade_count,
            "progress_pct": self.progress_pct,
            "remaining_usd": self.remaining_usd,
            "days_left": self.days_left,
            "daily_needed": self.daily_needed,
            "goal_reached": self.goal_reached,
            "status": self.status,
        }


def week_progress(
    plans: Iterable[WeeklyPlan],
    trades: Iterable[Trade],
    account_id: str,
    today: date,
) -> WeekProgress:
    """Realized totals and pacing for the account's current week."""
    week_start = week_start_key(today)
    saved = find_plan(plans, account_id, week_start)
    plan = saved or default_plan(account_id, week_start)

    own = week_trades(trades, account_id, week_start)
    realized = sum(t.profit_usd for t in own)
    remaining = plan.goal_usd - realized
    left = days_left(today)

    return WeekProgress(
        account_id=account_id,
        week_start=week_start,
        has_plan=saved is not None,
        goal_usd=plan.goal_usd,
        goal_points=plan.goal_points,
        realized_usd=realized,
        realized_points=sum(t.points for t in own),
        trade_count=len(own),
        progress_pct=progress_pct(realized, plan.goal_usd),
        remaining_usd=remaining,
        days_left=left,
        daily_needed=remaining / left if left > 0 else 0.0,
        goal_reached=is_goal_reached(realized, plan.goal_usd),
    )


@dataclass
class WeekHistoryEntry:
    week_start: str
    realized_usd: float
    trade_count: int
    goal_usd: float | None          # None: no plan was saved for that week
    achieved_pct: float | None


def week_history(
    plans: Iterable[WeeklyPlan],
    trades: Iterable[Trade],
    account_id: str,
    today: date,
    count: int = 4,
) -> list[WeekHistoryEntry]:
    """Realized vs. planned for the last `count` weeks, current week first."""
    plans = list(plans)
    trades = list(trades)
    out = []
    for week_start in week_history_keys(today, count):
        plan = find_plan(plans, account_id, week_start)
        own = week_trades(trades, account_id, week_start)
        realized = sum(t.profit_usd for t in own)
        out.append(WeekHistoryEntry(
            week_start=week_start,
            realized_usd=realized,
            trade_count=len(own),
            goal_usd=plan.goal_usd if plan else None,
            achieved_pct=progress_pct(realized, plan.goal_usd) if plan else None,
        ))
    return out
