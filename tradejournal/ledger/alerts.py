"""Trade alerts — checks run after a trade is recorded.

Which alerts fire is governed by the journal's notification settings.
Alerts are returned to the caller and logged; nothing is sent anywhere.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from tradejournal.ledger.formatting import format_currency, to_date, week_start_key
from tradejournal.ledger.goals import find_plan, is_goal_reached, week_trades
from tradejournal.shell.contract import JournalState, Trade

GOAL_REACHED = "goal_reached"
LOSS_STREAK = "loss_streak"
MAX_TRADES_EXCEEDED = "max_trades_exceeded"


@dataclass(frozen=True)
class Alert:
    kind: str
    account_id: str
    message: str

    def to_dict(self) -> dict:
        return {"kind": self.kind, "account_id": self.account_id, "message": self.message}


def consecutive_losses(trades: Iterable[Trade], account_id: str) -> int:
    """Current losing streak of the account, most recent trade backwards."""
    own = [t for t in trades if t.account_id == account_id]
    own.sort(key=lambda t: t.date, reverse=True)
    streak = 0
    for t in own:
        if t.profit_usd < 0:
            streak += 1
        else:
            break
    return streak


def trades_on_day(trades: Iterable[Trade], account_id: str, day: str) -> int:
    return sum(
        1 for t in trades
        if t.account_id == account_id and to_date(t.date).isoformat() == day
    )


def evaluate_alerts(state: JournalState, trade: Trade) -> list[Alert]:
    """Alerts triggered by `trade`, which must already be part of `state`."""
    prefs = state.settings.notifications
    account_id = trade.account_id
    week_start = week_start_key(trade.date)
    plan = find_plan(state.weekly_plans, account_id, week_start)
    alerts = []

    if prefs.goal_reached and plan is not None:
        realized = sum(t.profit_usd for t in week_trades(state.trades, account_id, week_start))
        # Only the trade that crosses the line alerts
        if (is_goal_reached(realized, plan.goal_usd)
                and not is_goal_reached(realized - trade.profit_usd, plan.goal_usd)):
            alerts.append(Alert(
                GOAL_REACHED, account_id,
                f"Weekly goal of {format_currency(plan.goal_usd)} reached "
                f"({format_currency(realized)} this week)",
            ))

    if prefs.loss_streak > 0 and trade.profit_usd < 0:
        streak = consecutive_losses(state.trades, account_id)
        if streak >= prefs.loss_streak:
            alerts.append(Alert(
                LOSS_STREAK, account_id,
                f"{streak} losing trades in a row",
            ))

    if prefs.max_trades_exceeded and plan is not None:
        day = to_date(trade.date).isoformat()
        count = trades_on_day(state.trades, account_id, day)
        if count > plan.max_trades_per_day:
            alerts.append(Alert(
                MAX_TRADES_EXCEEDED, account_id,
                f"{count} trades on {day}, plan allows {plan.max_trades_per_day}",
            ))

    return alerts
