"""Ledger Engine — derives financial figures from raw trades.

Every function here is pure: trades and accounts go in, numbers come out,
nothing is mutated. Each figure must be verifiable by hand from the trade list.

The firm's split is applied to each trade on its own, using that trade's
account. Summing gross first and splitting once is wrong as soon as trades
from accounts with different splits (or wins and losses) are mixed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping

from tradejournal.ledger.formatting import (
    days_in_month, first_weekday_of_month, month_key, to_date, week_start_key,
)
from tradejournal.shell.contract import ALL_ACCOUNTS, Account, JournalState, Trade

UNKNOWN_ACCOUNT = "Unknown account"


# --- Per-trade rules ---

def compute_trade_profit(points: float, value_per_point: float) -> float:
    """Gross result of a trade. The sign comes from `points`, never from the trade type."""
    return points * value_per_point


def net_of_split(gross: float, split_percent: float) -> float:
    """What the trader keeps. The firm shares profits only; losses pass through whole."""
    if gross > 0:
        return gross * (1 - split_percent / 100)
    return gross


def split_for(account_id: str, accounts: Mapping[str, Account]) -> float:
    """Split percent of the trade's account; 0 when the account no longer exists."""
    acc = accounts.get(account_id)
    return acc.split_percent if acc else 0.0


def trade_net(trade: Trade, accounts: Mapping[str, Account]) -> float:
    return net_of_split(trade.profit_usd, split_for(trade.account_id, accounts))


def convert(amount_usd: float, rate: float) -> float:
    """USD -> secondary currency at the current rate (no historical rates)."""
    return amount_usd * rate


def win_rate(trades: Iterable[Trade]) -> float:
    """Percent of trades with positive profit. 0 for an empty subset."""
    trades = list(trades)
    if not trades:
        return 0.0
    wins = sum(1 for t in trades if t.profit_usd > 0)
    return wins / len(trades) * 100


# --- Aggregation ---

@dataclass
class PeriodTotals:
    gross_usd: float = 0.0
    net_usd: float = 0.0
    count: int = 0

    @property
    def split_usd(self) -> float:
        """Amount kept by the firm."""
        return self.gross_usd - self.net_usd

    def to_dict(self) -> dict:
        return {
            "gross_usd": self.gross_usd,
            "net_usd": self.net_usd,
            "split_usd": self.split_usd,
            "count": self.count,
        }


def day_key(trade: Trade) -> str:
    return to_date(trade.date).isoformat()


def week_key(trade: Trade) -> str:
    return week_start_key(trade.date)


def trade_month_key(trade: Trade) -> str:
    return month_key(trade.date)


def account_key(trade: Trade) -> str:
    return trade.account_id


def aggregate_by_period(
    trades: Iterable[Trade],
    key_fn: Callable[[Trade], str],
    accounts: Mapping[str, Account],
) -> dict[str, PeriodTotals]:
    """Group trades by `key_fn` and total gross, net (split per trade) and count."""
    out: dict[str, PeriodTotals] = {}
    for t in trades:
        totals = out.setdefault(key_fn(t), PeriodTotals())
        totals.gross_usd += t.profit_usd
        totals.net_usd += trade_net(t, accounts)
        totals.count += 1
    return out


def totals(trades: Iterable[Trade], accounts: Mapping[str, Account]) -> PeriodTotals:
    return aggregate_by_period(trades, lambda _t: "", accounts).get("", PeriodTotals())


# --- Views ---

def filter_by_account(trades: Iterable[Trade], account_id: str) -> list[Trade]:
    if account_id == ALL_ACCOUNTS:
        return list(trades)
    return [t for t in trades if t.account_id == account_id]


def month_trades(trades: Iterable[Trade], year: int, month: int) -> list[Trade]:
    out = []
    for t in trades:
        d = to_date(t.date)
        if d.year == year and d.month == month:
            out.append(t)
    return out


def recent_trades(trades: Iterable[Trade], limit: int = 10) -> list[Trade]:
    """Newest first; the store already keeps trades in that order."""
    return list(trades)[:limit]


@dataclass
class LedgerSummary:
    gross_usd: float
    split_usd: float
    net_usd: float
    net_secondary: float
    trade_count: int
    win_rate: float


def summarize(trades: Iterable[Trade], accounts: Mapping[str, Account], rate: float) -> LedgerSummary:
    trades = list(trades)
    t = totals(trades, accounts)
    return LedgerSummary(
        gross_usd=t.gross_usd,
        split_usd=t.split_usd,
        net_usd=t.net_usd,
        net_secondary=convert(t.net_usd, rate),
        trade_count=t.count,
        win_rate=win_rate(trades),
    )


@dataclass
class CalendarDay:
    day: int
    gross_usd: float | None = None    # None: no trades that day


@dataclass
class CalendarWeek:
    days: list[CalendarDay | None] = field(default_factory=list)   # 7 cells, Sunday first
    total_usd: float | None = None


def calendar_month(trades: Iterable[Trade], year: int, month: int) -> list[CalendarWeek]:
    """Sunday-first month grid with each day's gross result and a total per week row."""
    by_day: dict[int, float] = {}
    for t in month_trades(trades, year, month):
        d = to_date(t.date).day
        by_day[d] = by_day.get(d, 0.0) + t.profit_usd

    cells: list[CalendarDay | None] = [None] * first_weekday_of_month(year, month)
    cells += [CalendarDay(day=d, gross_usd=by_day.get(d)) for d in range(1, days_in_month(year, month) + 1)]
    cells += [None] * (-len(cells) % 7)

    weeks = []
    for i in range(0, len(cells), 7):
        row = cells[i:i + 7]
        traded = [c.gross_usd for c in row if c is not None and c.gross_usd is not None]
        weeks.append(CalendarWeek(days=row, total_usd=sum(traded) if traded else None))
    return weeks


@dataclass
class AccountBreakdown:
    account_id: str
    name: str
    gross_usd: float


def account_breakdown(trades: Iterable[Trade], accounts: Mapping[str, Account]) -> list[AccountBreakdown]:
    """Gross per account, best first. Trades of deleted accounts show as unknown."""
    grouped = aggregate_by_period(trades, account_key, accounts)
    rows = [
        AccountBreakdown(
            account_id=acc_id,
            name=accounts[acc_id].name if acc_id in accounts else UNKNOWN_ACCOUNT,
            gross_usd=t.gross_usd,
        )
        for acc_id, t in grouped.items()
    ]
    rows.sort(key=lambda r: r.gross_usd, reverse=True)
    return rows


@dataclass
class AccountPerformance:
    account_id: str
    name: str
    prop_firm: str
    size: float
    split_percent: float
    status: str
    trade_count: int
    gross_usd: float
    net_usd: float
    net_secondary: float
    win_rate: float


def account_performance(trades: Iterable[Trade], account: Account, rate: float) -> AccountPerformance:
    own = filter_by_account(trades, account.id)
    t = totals(own, {account.id: account})
    return AccountPerformance(
        account_id=account.id,
        name=account.name,
        prop_firm=account.prop_firm,
        size=account.size,
        split_percent=account.split_percent,
        status=account.status.value,
        trade_count=t.count,
        gross_usd=t.gross_usd,
        net_usd=t.net_usd,
        net_secondary=convert(t.net_usd, rate),
        win_rate=win_rate(own),
    )


@dataclass
class PortfolioSummary:
    active_accounts: int
    gross_usd: float
    net_usd: float
    net_secondary: float
    accounts: list[AccountPerformance]


def portfolio_summary(state: JournalState) -> PortfolioSummary:
    """All-accounts consolidation plus one performance row per account."""
    rate = state.settings.usd_to_brl_rate
    t = totals(state.trades, state.accounts_by_id)
    return PortfolioSummary(
        active_accounts=sum(1 for a in state.accounts if a.is_active),
        gross_usd=t.gross_usd,
        net_usd=t.net_usd,
        net_secondary=convert(t.net_usd, rate),
        accounts=[account_performance(state.trades, acc, rate) for acc in state.accounts],
    )
