"""Trade reports — tabular views of the journal for export and review.

Figures come from the ledger's per-trade rules; pandas only arranges them.
"""

from __future__ import annotations

import pandas as pd

from tradejournal.ledger.engine import UNKNOWN_ACCOUNT, convert, trade_net
from tradejournal.ledger.formatting import month_key, to_date
from tradejournal.shell.contract import JournalState

TRADE_COLUMNS = [
    "id", "account_id", "account", "date", "day", "month", "asset", "type",
    "points", "value_per_point", "lots", "profit_usd", "net_usd",
    "profit_brl", "net_brl", "notes",
]

MONTHLY_COLUMNS = [
    "month", "account_id", "account", "trades", "wins",
    "gross_usd", "net_usd", "net_brl", "win_rate",
]


def trades_frame(state: JournalState) -> pd.DataFrame:
    """One row per trade, newest first, with net and secondary-currency columns."""
    if not state.trades:
        return pd.DataFrame(columns=TRADE_COLUMNS)

    accounts = state.accounts_by_id
    rate = state.settings.usd_to_brl_rate
    rows = []
    for t in state.trades:
        acc = accounts.get(t.account_id)
        net = trade_net(t, accounts)
        rows.append({
            "id": t.id,
            "account_id": t.account_id,
            "account": acc.name if acc else UNKNOWN_ACCOUNT,
            "date": t.date,
            "day": to_date(t.date).isoformat(),
            "month": month_key(t.date),
            "asset": t.asset,
            "type": t.type.value,
            "points": t.points,
            "value_per_point": t.value_per_point,
            "lots": t.lots,
            "profit_usd": t.profit_usd,
            "net_usd": net,
            "profit_brl": convert(t.profit_usd, rate),
            "net_brl": convert(net, rate),
            "notes": t.notes or "",
        })
    return pd.DataFrame(rows, columns=TRADE_COLUMNS)


def monthly_breakdown(state: JournalState) -> pd.DataFrame:
    """Totals per (month, account id), most recent month first. Names are labels only."""
    df = trades_frame(state)
    if df.empty:
        return pd.DataFrame(columns=MONTHLY_COLUMNS)

    df["win"] = df["profit_usd"] > 0
    grouped = (
        df.groupby(["month", "account_id"], as_index=False)
        .agg(
            account=("account", "first"),
            trades=("profit_usd", "size"),
            wins=("win", "sum"),
            gross_usd=("profit_usd", "sum"),
            net_usd=("net_usd", "sum"),
            net_brl=("net_brl", "sum"),
        )
    )
    grouped["wins"] = grouped["wins"].astype(int)
    grouped["win_rate"] = grouped["wins"] / grouped["trades"] * 100
    grouped = grouped.sort_values(["month", "gross_usd"], ascending=[False, False])
    return grouped[MONTHLY_COLUMNS].reset_index(drop=True)


def trades_csv(state: JournalState) -> str:
    df = trades_frame(state).round({
        "profit_usd": 2, "net_usd": 2, "profit_brl": 2, "net_brl": 2,
    })
    return df.to_csv(index=False)
