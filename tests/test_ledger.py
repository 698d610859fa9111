"""Ledger tests: per-trade profit and split, aggregation, calendar, formatting."""

from datetime import date

import pytest


def _account(acc_id, split, name=None, status=None):
    from tradejournal.shell.contract import Account, AccountStatus
    return Account(
        id=acc_id, name=name or acc_id, prop_firm="FTMO", size=100000,
        split_percent=split, start_date="2025-01-01",
        status=status or AccountStatus.ACTIVE,
    )


def _trade(trade_id, acc_id, when, profit, points=None):
    from tradejournal.shell.contract import Trade, TradeType
    return Trade(
        id=trade_id, account_id=acc_id, date=when, asset="EURUSD", type=TradeType.BUY,
        points=profit if points is None else points, value_per_point=1.0, lots=1.0,
        profit_usd=profit,
    )


# --- Per-trade rules ---

def test_trade_profit_sign_comes_from_points():
    from tradejournal.ledger.engine import compute_trade_profit
    assert compute_trade_profit(50, 10) == 500
    assert compute_trade_profit(-30, 10) == -300
    assert compute_trade_profit(0, 10) == 0


def test_split_applies_to_gains_only():
    from tradejournal.ledger.engine import net_of_split
    assert net_of_split(500, 20) == pytest.approx(400)
    assert net_of_split(-300, 20) == -300
    assert net_of_split(0, 20) == 0
    assert net_of_split(500, 0) == 500
    assert net_of_split(500, 100) == 0


def test_trade_net_of_deleted_account_uses_zero_split():
    from tradejournal.ledger.engine import trade_net
    t = _trade("t1", "gone", "2025-03-10T10:00", 500)
    assert trade_net(t, {}) == 500


def test_net_is_split_per_trade_not_on_the_sum():
    from tradejournal.ledger.engine import totals
    accounts = {"a": _account("a", 20)}
    trades = [
        _trade("t1", "a", "2025-03-10T10:00", 500),
        _trade("t2", "a", "2025-03-10T11:00", -300),
    ]
    t = totals(trades, accounts)
    assert t.gross_usd == 200
    # 400 - 300, not (500 - 300) * 0.8
    assert t.net_usd == pytest.approx(100)
    assert t.split_usd == pytest.approx(100)
    assert t.count == 2


def test_mixed_splits_across_accounts():
    from tradejournal.ledger.engine import totals
    accounts = {"a": _account("a", 20), "b": _account("b", 10)}
    trades = [
        _trade("t1", "a", "2025-03-10T10:00", 100),
        _trade("t2", "b", "2025-03-10T11:00", 100),
    ]
    assert totals(trades, accounts).net_usd == pytest.approx(170)


def test_convert_uses_current_rate():
    from tradejournal.ledger.engine import convert
    assert convert(100, 5.5) == pytest.approx(550)


def test_win_rate():
    from tradejournal.ledger.engine import win_rate
    assert win_rate([]) == 0
    trades = [
        _trade("t1", "a", "2025-03-10T10:00", 100),
        _trade("t2", "a", "2025-03-10T11:00", -50),
        _trade("t3", "a", "2025-03-10T12:00", 0),
        _trade("t4", "a", "2025-03-10T13:00", 10),
    ]
    # Breakeven is not a win
    assert win_rate(trades) == 50


# --- Aggregation ---

def test_aggregate_by_day_week_and_account():
    from tradejournal.ledger.engine import account_key, aggregate_by_period, day_key, week_key
    accounts = {"a": _account("a", 20), "b": _account("b", 0)}
    trades = [
        _trade("t1", "a", "2025-03-10T10:00", 100),
        _trade("t2", "b", "2025-03-10T15:00", -40),
        _trade("t3", "a", "2025-03-16T09:00", 60),   # Sunday -> week of the 10th
        _trade("t4", "a", "2025-03-17T09:00", 10),
    ]

    by_day = aggregate_by_period(trades, day_key, accounts)
    assert by_day["2025-03-10"].gross_usd == 60
    assert by_day["2025-03-10"].count == 2
    assert by_day["2025-03-10"].net_usd == pytest.approx(40)

    by_week = aggregate_by_period(trades, week_key, accounts)
    assert set(by_week) == {"2025-03-10", "2025-03-17"}
    assert by_week["2025-03-10"].count == 3

    by_account = aggregate_by_period(trades, account_key, accounts)
    assert by_account["a"].gross_usd == 170
    assert by_account["b"].net_usd == -40


def test_filter_by_account_all():
    from tradejournal.ledger.engine import filter_by_account
    trades = [_trade("t1", "a", "2025-03-10T10:00", 1), _trade("t2", "b", "2025-03-10T10:00", 2)]
    assert len(filter_by_account(trades, "all")) == 2
    assert [t.id for t in filter_by_account(trades, "b")] == ["t2"]
    assert filter_by_account(trades, "zzz") == []


def test_summarize_month():
    from tradejournal.ledger.engine import month_trades, summarize
    accounts = {"a": _account("a", 20)}
    trades = [
        _trade("t1", "a", "2025-03-10T10:00", 500),
        _trade("t2", "a", "2025-03-11T10:00", -300),
        _trade("t3", "a", "2025-02-27T10:00", 1000),
    ]
    s = summarize(month_trades(trades, 2025, 3), accounts, 5.0)
    assert s.trade_count == 2
    assert s.gross_usd == 200
    assert s.net_usd == pytest.approx(100)
    assert s.net_secondary == pytest.approx(500)
    assert s.win_rate == 50


def test_summarize_empty():
    from tradejournal.ledger.engine import summarize
    s = summarize([], {}, 5.5)
    assert s.trade_count == 0
    assert s.gross_usd == 0
    assert s.win_rate == 0


def test_calendar_month_grid():
    from tradejournal.ledger.engine import calendar_month
    trades = [
        _trade("t1", "a", "2025-03-03T10:00", 100),
        _trade("t2", "a", "2025-03-03T12:00", -30),
        _trade("t3", "a", "2025-03-05T10:00", 20),
        _trade("t4", "a", "2025-04-01T10:00", 999),
    ]
    weeks = calendar_month(trades, 2025, 3)

    # March 2025 starts on a Saturday: 6 blanks + 31 days -> 6 rows
    assert len(weeks) == 6
    assert all(len(w.days) == 7 for w in weeks)
    assert weeks[0].days[:6] == [None] * 6
    assert weeks[0].days[6].day == 1
    assert weeks[0].total_usd is None

    # Row 2 holds Sun 2 .. Sat 8
    row = weeks[1]
    assert row.days[1].day == 3
    assert row.days[1].gross_usd == 70
    assert row.days[2].gross_usd is None
    assert row.days[3].gross_usd == 20
    assert row.total_usd == 90


def test_account_breakdown_sorted_with_unknown():
    from tradejournal.ledger.engine import UNKNOWN_ACCOUNT, account_breakdown
    accounts = {"a": _account("a", 20, name="Alpha"), "b": _account("b", 0, name="Beta")}
    trades = [
        _trade("t1", "a", "2025-03-10T10:00", 100),
        _trade("t2", "b", "2025-03-10T10:00", 300),
        _trade("t3", "gone", "2025-03-10T10:00", -50),
    ]
    rows = account_breakdown(trades, accounts)
    assert [r.name for r in rows] == ["Beta", "Alpha", UNKNOWN_ACCOUNT]
    assert rows[0].gross_usd == 300


def test_portfolio_summary():
    from tradejournal.ledger.engine import portfolio_summary
    from tradejournal.shell.contract import AccountStatus, JournalSettings, JournalState
    state = JournalState(
        accounts=(_account("a", 20), _account("b", 0, status=AccountStatus.INACTIVE)),
        trades=(
            _trade("t1", "a", "2025-03-10T10:00", 500),
            _trade("t2", "b", "2025-03-10T10:00", 100),
        ),
        settings=JournalSettings(usd_to_brl_rate=5.0),
    )
    p = portfolio_summary(state)
    assert p.active_accounts == 1
    assert p.gross_usd == 600
    assert p.net_usd == pytest.approx(500)
    assert p.net_secondary == pytest.approx(2500)
    assert [a.account_id for a in p.accounts] == ["a", "b"]
    assert p.accounts[0].net_usd == pytest.approx(400)
    assert p.accounts[0].win_rate == 100
    assert p.accounts[1].status == "Inactive"


# --- Formatting ---

def test_format_currency_usd():
    from tradejournal.ledger.formatting import format_currency
    assert format_currency(1234.5) == "$1,234.50"
    assert format_currency(-300) == "-$300.00"
    assert format_currency(0) == "$0.00"
    assert format_currency(-0.004) == "$0.00"


def test_format_currency_brl():
    from tradejournal.ledger.formatting import format_currency
    assert format_currency(1234.56, "BRL") == "R$\xa01.234,56"
    assert format_currency(-2200, "BRL") == "-R$\xa02.200,00"


def test_format_date():
    from tradejournal.ledger.formatting import format_date
    assert format_date("2025-03-10T14:30", "DD/MM/YYYY") == "10/03/2025"
    assert format_date("2025-03-10T14:30", "MM/DD/YYYY") == "03/10/2025"


def test_week_start_key():
    from tradejournal.ledger.formatting import week_start_key
    assert week_start_key("2025-03-10T08:00") == "2025-03-10"   # Monday
    assert week_start_key("2025-03-14T08:00") == "2025-03-10"   # Friday
    assert week_start_key(date(2025, 3, 16)) == "2025-03-10"    # Sunday -> previous Monday
    assert week_start_key("2025-03-01") == "2025-02-24"         # crosses month


def test_week_history_keys():
    from tradejournal.ledger.formatting import week_history_keys
    assert week_history_keys(date(2025, 3, 12), 3) == ["2025-03-10", "2025-03-03", "2025-02-24"]
