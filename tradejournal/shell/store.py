"""State Store — the only sanctioned way to change the journal.

Two layers:
- pure mutation functions: take a JournalState, return a new one;
- JournalStore: owns the current state and the account selection, applies
  mutations, and persists the full snapshot after each successful one as a
  fire-and-forget task. A failed write is logged, never raised.
"""

from __future__ import annotations

import asyncio
import re
import uuid
from dataclasses import replace
from datetime import date
from typing import Awaitable, Callable

import structlog

from tradejournal.ledger.alerts import Alert, evaluate_alerts
from tradejournal.ledger.engine import compute_trade_profit, filter_by_account
from tradejournal.ledger.formatting import to_date, week_start_key
from tradejournal.shell.contract import (
    ALL_ACCOUNTS, DATE_FORMATS, Account, JournalSettings, JournalState, NewTrade,
    Trade, UnknownAccountError, WeeklyPlan,
)

log = structlog.get_logger()

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def new_id() -> str:
    return uuid.uuid4().hex[:12]


# --- Validation (at the mutation boundary, not on bulk import) ---

def validate_account(account: Account) -> None:
    errors = []
    if not account.name.strip():
        errors.append("name must not be empty")
    if not (0 <= account.split_percent <= 100):
        errors.append(f"splitPercent must be 0-100, got {account.split_percent}")
    if account.size < 0:
        errors.append(f"size must be >= 0, got {account.size}")
    if account.start_date:
        try:
            date.fromisoformat(account.start_date)
        except ValueError:
            errors.append(f"startDate must be YYYY-MM-DD, got '{account.start_date}'")
    if errors:
        raise ValueError("; ".join(errors))


def validate_new_trade(trade: NewTrade) -> None:
    errors = []
    try:
        to_date(trade.date)
    except ValueError:
        errors.append(f"date must be an ISO timestamp, got '{trade.date}'")
    if trade.value_per_point <= 0:
        errors.append(f"valuePerPoint must be > 0, got {trade.value_per_point}")
    if trade.lots < 0:
        errors.append(f"lots must be >= 0, got {trade.lots}")
    if errors:
        raise ValueError("; ".join(errors))


def validate_plan(plan: WeeklyPlan) -> None:
    errors = []
    try:
        if week_start_key(plan.week_start) != plan.week_start:
            errors.append(f"weekStart must be a Monday, got '{plan.week_start}'")
    except ValueError:
        errors.append(f"weekStart must be YYYY-MM-DD, got '{plan.week_start}'")
    if plan.goal_usd < 0:
        errors.append(f"goalUSD must be >= 0, got {plan.goal_usd}")
    if plan.max_trades_per_day < 0:
        errors.append(f"maxTradesPerDay must be >= 0, got {plan.max_trades_per_day}")
    for name, value in (("startTime", plan.start_time), ("endTime", plan.end_time)):
        if not _TIME_RE.match(value):
            errors.append(f"{name} must be HH:MM, got '{value}'")
    if errors:
        raise ValueError("; ".join(errors))


def validate_settings(settings: JournalSettings) -> None:
    errors = []
    if settings.usd_to_brl_rate <= 0:
        errors.append(f"usdToBrlRate must be > 0, got {settings.usd_to_brl_rate}")
    if settings.date_format not in DATE_FORMATS:
        errors.append(f"dateFormat must be one of {DATE_FORMATS}, got '{settings.date_format}'")
    if settings.notifications.loss_streak < 0:
        errors.append(f"lossStreak must be >= 0, got {settings.notifications.loss_streak}")
    if errors:
        raise ValueError("; ".join(errors))


# --- Pure mutations ---

def add_account(state: JournalState, account: Account) -> tuple[JournalState, Account]:
    validate_account(account)
    created = replace(account, id=new_id())
    return replace(state, accounts=state.accounts + (created,)), created


def update_account(state: JournalState, account: Account) -> JournalState:
    """Full replace by id. An unknown id leaves the state as it was."""
    validate_account(account)
    return replace(state, accounts=tuple(
        account if a.id == account.id else a for a in state.accounts
    ))


def cascade_delete_account(state: JournalState, account_id: str) -> JournalState:
    """Remove the account with every trade and weekly plan that references it."""
    return replace(
        state,
        accounts=tuple(a for a in state.accounts if a.id != account_id),
        trades=tuple(t for t in state.trades if t.account_id != account_id),
        weekly_plans=tuple(p for p in state.weekly_plans if p.account_id != account_id),
    )


def add_trade(state: JournalState, new_trade: NewTrade) -> tuple[JournalState, Trade]:
    """Record a trade, newest first. Profit is fixed here and never recomputed."""
    validate_new_trade(new_trade)
    if state.account(new_trade.account_id) is None:
        raise UnknownAccountError(new_trade.account_id)
    trade = Trade(
        id=new_id(),
        account_id=new_trade.account_id,
        date=new_trade.date,
        asset=new_trade.asset,
        type=new_trade.type,
        points=new_trade.points,
        value_per_point=new_trade.value_per_point,
        lots=new_trade.lots,
        profit_usd=compute_trade_profit(new_trade.points, new_trade.value_per_point),
        notes=new_trade.notes,
    )
    return replace(state, trades=(trade,) + state.trades), trade


def delete_trade(state: JournalState, trade_id: str) -> JournalState:
    return replace(state, trades=tuple(t for t in state.trades if t.id != trade_id))


def upsert_weekly_plan(state: JournalState, plan: WeeklyPlan) -> tuple[JournalState, WeeklyPlan]:
    """Insert or overwrite the plan for (account, week). Overwrites keep the existing id."""
    validate_plan(plan)
    if state.account(plan.account_id) is None:
        raise UnknownAccountError(plan.account_id)
    for existing in state.weekly_plans:
        if existing.account_id == plan.account_id and existing.week_start == plan.week_start:
            saved = replace(plan, id=existing.id)
            plans = tuple(saved if p.id == existing.id else p for p in state.weekly_plans)
            return replace(state, weekly_plans=plans), saved
    saved = replace(plan, id=new_id())
    return replace(state, weekly_plans=(saved,) + state.weekly_plans), saved


def update_settings(state: JournalState, settings: JournalSettings) -> JournalState:
    validate_settings(settings)
    return replace(state, settings=settings)


def reset_state(defaults: JournalSettings) -> JournalState:
    return JournalState(settings=defaults)


# --- Controller ---

class JournalStore:
    """Holds the journal state and persists it after every change.

    `persist` receives the full state; it is scheduled on the running loop and
    not awaited by the mutation. `flush()` waits for outstanding writes.
    """

    def __init__(
        self,
        state: JournalState | None = None,
        persist: Callable[[JournalState], Awaitable[None]] | None = None,
        default_settings: JournalSettings | None = None,
    ) -> None:
        self._default_settings = default_settings or JournalSettings()
        self._state = state or JournalState(settings=self._default_settings)
        self._persist = persist
        self._selected_account_id = ALL_ACCOUNTS
        self._pending: set[asyncio.Task] = set()
        self._write_lock = asyncio.Lock()

    @property
    def state(self) -> JournalState:
        return self._state

    @property
    def selected_account_id(self) -> str:
        return self._selected_account_id

    def select_account(self, account_id: str) -> None:
        if account_id != ALL_ACCOUNTS and self._state.account(account_id) is None:
            raise UnknownAccountError(account_id)
        self._selected_account_id = account_id

    def visible_trades(self) -> list[Trade]:
        """Trades of the selected account, or all of them."""
        return filter_by_account(self._state.trades, self._selected_account_id)

    # --- Mutations ---

    def add_account(self, account: Account) -> Account:
        state, created = add_account(self._state, account)
        self._commit(state, "store.account_added", account_id=created.id, name=created.name)
        return created

    def update_account(self, account: Account) -> Account | None:
        if self._state.account(account.id) is None:
            log.warning("store.account_not_found", account_id=account.id)
            return None
        self._commit(update_account(self._state, account), "store.account_updated", account_id=account.id)
        return account

    def delete_account(self, account_id: str, confirmed: bool = False) -> bool:
        """Cascade-delete an account. Needs confirmation; returns whether it was applied."""
        if not confirmed:
            log.info("store.delete_declined", account_id=account_id)
            return False
        if self._state.account(account_id) is None:
            log.warning("store.account_not_found", account_id=account_id)
            return False
        before = self._state
        state = cascade_delete_account(before, account_id)
        if self._selected_account_id == account_id:
            self._selected_account_id = ALL_ACCOUNTS
        self._commit(
            state, "store.account_deleted", account_id=account_id,
            trades_removed=len(before.trades) - len(state.trades),
            plans_removed=len(before.weekly_plans) - len(state.weekly_plans),
        )
        return True

    def add_trade(self, new_trade: NewTrade) -> tuple[Trade, list[Alert]]:
        state, trade = add_trade(self._state, new_trade)
        self._commit(state, "store.trade_added", trade_id=trade.id,
                     account_id=trade.account_id, profit_usd=trade.profit_usd)
        alerts = evaluate_alerts(state, trade)
        for alert in alerts:
            log.warning("alert.triggered", kind=alert.kind,
                        account_id=alert.account_id, message=alert.message)
        return trade, alerts

    def delete_trade(self, trade_id: str) -> bool:
        if not any(t.id == trade_id for t in self._state.trades):
            return False
        self._commit(delete_trade(self._state, trade_id), "store.trade_deleted", trade_id=trade_id)
        return True

    def upsert_weekly_plan(self, plan: WeeklyPlan) -> WeeklyPlan:
        state, saved = upsert_weekly_plan(self._state, plan)
        self._commit(state, "store.plan_saved", plan_id=saved.id,
                     account_id=saved.account_id, week_start=saved.week_start)
        return saved

    def update_settings(self, settings: JournalSettings) -> None:
        self._commit(update_settings(self._state, settings), "store.settings_updated",
                     usd_to_brl_rate=settings.usd_to_brl_rate)

    def replace_all(self, incoming: JournalState, confirmed: bool = False) -> bool:
        """Wholesale replace (import). No merge and no cross-reference checks."""
        if not confirmed:
            log.info("store.replace_declined")
            return False
        if (self._selected_account_id != ALL_ACCOUNTS
                and incoming.account(self._selected_account_id) is None):
            self._selected_account_id = ALL_ACCOUNTS
        self._commit(incoming, "store.state_replaced", accounts=len(incoming.accounts),
                     trades=len(incoming.trades), plans=len(incoming.weekly_plans))
        return True

    def reset(self, confirmed: bool = False) -> bool:
        if not confirmed:
            log.info("store.reset_declined")
            return False
        self._selected_account_id = ALL_ACCOUNTS
        self._commit(reset_state(self._default_settings), "store.reset")
        return True

    # --- Persistence ---

    def _commit(self, state: JournalState, event: str, **fields) -> None:
        self._state = state
        log.info(event, **fields)
        self._schedule_persist(state)

    def _schedule_persist(self, state: JournalState) -> None:
        if self._persist is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.warning("store.persist_skipped", reason="no running event loop")
            return
        task = loop.create_task(self._write(state))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, state: JournalState) -> None:
        # Lock is FIFO, so writes land in mutation order
        async with self._write_lock:
            try:
                await self._persist(state)
            except Exception as e:
                log.error("store.persist_failed", error=str(e), error_type=type(e).__name__)

    async def flush(self) -> None:
        """Wait for every scheduled write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
