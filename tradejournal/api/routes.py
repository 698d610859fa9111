"""REST API endpoint handlers — journal reads and mutations."""

from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import structlog
from aiohttp import web

from tradejournal.api import VERSION, ctx_key
from tradejournal.ledger.engine import (
    account_breakdown, calendar_month, filter_by_account, month_trades,
    portfolio_summary, recent_trades, summarize,
)
from tradejournal.ledger.formatting import format_currency, format_date
from tradejournal.ledger.goals import week_history, week_progress
from tradejournal.shell.contract import (
    ALL_ACCOUNTS, Account, ImportFileError, JournalSettings, NewTrade,
    Trade, UnknownAccountError, WeeklyPlan,
)
from tradejournal.shell.snapshot import backup_filename, dump_document, parse_import
from tradejournal.statistics.reports import monthly_breakdown, trades_csv

log = structlog.get_logger()


def _safe_int(value: str, default: int) -> int:
    """Parse int from query param, returning default on failure."""
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def _envelope(data) -> dict:
    return {
        "data": data,
        "meta": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": VERSION,
        },
    }


def _error_envelope(code: str, message: str) -> dict:
    return {
        "error": {"code": code, "message": message},
        "meta": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": VERSION,
        },
    }


def _error(code: str, message: str, status: int) -> web.Response:
    return web.json_response(_error_envelope(code, message), status=status)


def _confirmed(request: web.Request) -> bool:
    return request.query.get("confirm", "").lower() in ("1", "true", "yes")


def _today(config) -> date:
    return datetime.now(ZoneInfo(config.timezone)).date()


async def _json_body(request: web.Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        raise ValueError("request body must be valid JSON") from None
    if not isinstance(body, dict):
        raise ValueError("request body must be a JSON object")
    return body


def _trade_view(trade: Trade, settings: JournalSettings) -> dict:
    out = trade.to_dict()
    out["displayDate"] = format_date(trade.date, settings.date_format)
    out["displayProfit"] = format_currency(trade.profit_usd)
    return out


# --- System ---

async def system_handler(request: web.Request) -> web.Response:
    ctx = request.app[ctx_key]
    store = ctx["store"]
    state = store.state

    data = {
        "status": "running",
        "uptime_seconds": (datetime.now(timezone.utc) - ctx["started_at"]).total_seconds(),
        "version": VERSION,
        "started_at": ctx["started_at"].isoformat(),
        "selected_account_id": store.selected_account_id,
        "accounts": len(state.accounts),
        "trades": len(state.trades),
        "weekly_plans": len(state.weekly_plans),
    }
    return web.json_response(_envelope(data))


async def state_handler(request: web.Request) -> web.Response:
    store = request.app[ctx_key]["store"]
    return web.json_response(_envelope(store.state.to_dict()))


async def get_selection_handler(request: web.Request) -> web.Response:
    store = request.app[ctx_key]["store"]
    return web.json_response(_envelope({"accountId": store.selected_account_id}))


async def put_selection_handler(request: web.Request) -> web.Response:
    store = request.app[ctx_key]["store"]
    try:
        body = await _json_body(request)
        store.select_account(str(body.get("accountId") or ALL_ACCOUNTS))
    except UnknownAccountError as e:
        return _error("unknown_account", str(e), 400)
    except ValueError as e:
        return _error("invalid_request", str(e), 400)
    return web.json_response(_envelope({"accountId": store.selected_account_id}))


# --- Accounts ---

async def list_accounts_handler(request: web.Request) -> web.Response:
    store = request.app[ctx_key]["store"]
    return web.json_response(_envelope([a.to_dict() for a in store.state.accounts]))


async def create_account_handler(request: web.Request) -> web.Response:
    store = request.app[ctx_key]["store"]
    try:
        body = await _json_body(request)
        created = store.add_account(Account.from_dict(body))
    except ValueError as e:
        return _error("invalid_request", str(e), 400)
    return web.json_response(_envelope(created.to_dict()), status=201)


async def update_account_handler(request: web.Request) -> web.Response:
    store = request.app[ctx_key]["store"]
    account_id = request.match_info["account_id"]
    try:
        body = await _json_body(request)
        updated = store.update_account(Account.from_dict({**body, "id": account_id}))
    except ValueError as e:
        return _error("invalid_request", str(e), 400)
    if updated is None:
        return _error("not_found", f"Account '{account_id}' not found", 404)
    return web.json_response(_envelope(updated.to_dict()))


async def delete_account_handler(request: web.Request) -> web.Response:
    store = request.app[ctx_key]["store"]
    account_id = request.match_info["account_id"]
    if store.state.account(account_id) is None:
        return _error("not_found", f"Account '{account_id}' not found", 404)
    if not store.delete_account(account_id, confirmed=_confirmed(request)):
        return _error(
            "confirmation_required",
            "Deleting an account also deletes its trades and weekly plans; repeat with confirm=true",
            409,
        )
    return web.json_response(_envelope({"deleted": account_id}))


async def accounts_summary_handler(request: web.Request) -> web.Response:
    store = request.app[ctx_key]["store"]
    return web.json_response(_envelope(asdict(portfolio_summary(store.state))))


# --- Trades ---

async def list_trades_handler(request: web.Request) -> web.Response:
    store = request.app[ctx_key]["store"]
    state = store.state

    account_id = request.query.get("account", store.selected_account_id)
    trades = filter_by_account(state.trades, account_id)
    limit = _safe_int(request.query.get("limit", "0"), 0)
    if limit > 0:
        trades = recent_trades(trades, limit)
    return web.json_response(_envelope([_trade_view(t, state.settings) for t in trades]))


async def create_trade_handler(request: web.Request) -> web.Response:
    store = request.app[ctx_key]["store"]
    try:
        body = await _json_body(request)
        trade, alerts = store.add_trade(NewTrade.from_dict(body))
    except UnknownAccountError as e:
        return _error("unknown_account", str(e), 400)
    except ValueError as e:
        return _error("invalid_request", str(e), 400)
    data = {
        "trade": _trade_view(trade, store.state.settings),
        "alerts": [a.to_dict() for a in alerts],
    }
    return web.json_response(_envelope(data), status=201)


async def delete_trade_handler(request: web.Request) -> web.Response:
    store = request.app[ctx_key]["store"]
    trade_id = request.match_info["trade_id"]
    if not store.delete_trade(trade_id):
        return _error("not_found", f"Trade '{trade_id}' not found", 404)
    return web.json_response(_envelope({"deleted": trade_id}))


# --- Dashboard ---

async def dashboard_handler(request: web.Request) -> web.Response:
    ctx = request.app[ctx_key]
    config = ctx["config"]
    store = ctx["store"]
    state = store.state
    settings = state.settings

    month_param = request.query.get("month")
    if month_param:
        try:
            parsed = datetime.strptime(month_param, "%Y-%m")
        except ValueError:
            return _error("invalid_request", f"month must be YYYY-MM, got '{month_param}'", 400)
        year, month = parsed.year, parsed.month
    else:
        today = _today(config)
        year, month = today.year, today.month

    visible = store.visible_trades()
    in_month = month_trades(visible, year, month)
    accounts = state.accounts_by_id
    summary = summarize(in_month, accounts, settings.usd_to_brl_rate)

    data = {
        "account_id": store.selected_account_id,
        "month": f"{year:04d}-{month:02d}",
        "summary": asdict(summary),
        "display": {
            "gross": format_currency(summary.gross_usd),
            "net": format_currency(summary.net_usd),
            "net_secondary": format_currency(summary.net_secondary, "BRL"),
        },
        "calendar": [asdict(week) for week in calendar_month(in_month, year, month)],
        "by_account": [asdict(row) for row in account_breakdown(in_month, accounts)],
        "recent_trades": [
            _trade_view(t, settings)
            for t in recent_trades(visible, config.journal.recent_trades_limit)
        ],
    }
    return web.json_response(_envelope(data))


# --- Weekly planning ---

async def list_plans_handler(request: web.Request) -> web.Response:
    store = request.app[ctx_key]["store"]
    plans = store.state.weekly_plans
    account_id = request.query.get("account")
    if account_id:
        plans = [p for p in plans if p.account_id == account_id]
    return web.json_response(_envelope([p.to_dict() for p in plans]))


async def upsert_plan_handler(request: web.Request) -> web.Response:
    store = request.app[ctx_key]["store"]
    try:
        body = await _json_body(request)
        saved = store.upsert_weekly_plan(WeeklyPlan.from_dict(body))
    except UnknownAccountError as e:
        return _error("unknown_account", str(e), 400)
    except ValueError as e:
        return _error("invalid_request", str(e), 400)
    return web.json_response(_envelope(saved.to_dict()))


async def planning_handler(request: web.Request) -> web.Response:
    ctx = request.app[ctx_key]
    config = ctx["config"]
    store = ctx["store"]
    state = store.state
    account_id = request.match_info["account_id"]

    if state.account(account_id) is None:
        return _error("not_found", f"Account '{account_id}' not found", 404)

    # ?date= pins "today" (what-if views and reproducible checks)
    date_param = request.query.get("date")
    try:
        today = date.fromisoformat(date_param) if date_param else _today(config)
    except ValueError:
        return _error("invalid_request", f"date must be YYYY-MM-DD, got '{date_param}'", 400)

    progress = week_progress(state.weekly_plans, state.trades, account_id, today)
    history = week_history(
        state.weekly_plans, state.trades, account_id, today, config.journal.history_weeks,
    )
    data = {
        "progress": progress.to_dict(),
        "history": [asdict(h) for h in history],
    }
    return web.json_response(_envelope(data))


# --- Settings ---

async def get_settings_handler(request: web.Request) -> web.Response:
    store = request.app[ctx_key]["store"]
    return web.json_response(_envelope(store.state.settings.to_dict()))


async def put_settings_handler(request: web.Request) -> web.Response:
    store = request.app[ctx_key]["store"]
    try:
        body = await _json_body(request)
        store.update_settings(JournalSettings.from_dict(body))
    except ValueError as e:
        return _error("invalid_request", str(e), 400)
    return web.json_response(_envelope(store.state.settings.to_dict()))


async def reset_handler(request: web.Request) -> web.Response:
    store = request.app[ctx_key]["store"]
    if not store.reset(confirmed=_confirmed(request)):
        return _error(
            "confirmation_required",
            "Reset erases every account, trade and plan; repeat with confirm=true",
            409,
        )
    return web.json_response(_envelope(store.state.to_dict()))


# --- Backup ---

async def export_handler(request: web.Request) -> web.Response:
    ctx = request.app[ctx_key]
    store = ctx["store"]
    filename = backup_filename(_today(ctx["config"]))
    log.info("api.export", filename=filename, trades=len(store.state.trades))
    return web.Response(
        text=dump_document(store.state, indent=2),
        content_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


async def import_handler(request: web.Request) -> web.Response:
    store = request.app[ctx_key]["store"]
    try:
        incoming = parse_import(await request.read())
    except ImportFileError as e:
        log.warning("api.import_rejected", error=str(e))
        return _error("invalid_import", str(e), 400)

    if not store.replace_all(incoming, confirmed=_confirmed(request)):
        return _error(
            "confirmation_required",
            "Import replaces all current data; repeat with confirm=true",
            409,
        )
    data = {
        "accounts": len(incoming.accounts),
        "trades": len(incoming.trades),
        "weeklyPlans": len(incoming.weekly_plans),
    }
    return web.json_response(_envelope(data))


# --- Reports ---

async def trades_csv_handler(request: web.Request) -> web.Response:
    store = request.app[ctx_key]["store"]
    return web.Response(
        text=trades_csv(store.state),
        content_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="trades.csv"'},
    )


async def monthly_report_handler(request: web.Request) -> web.Response:
    store = request.app[ctx_key]["store"]
    df = monthly_breakdown(store.state)
    return web.json_response(_envelope(df.to_dict(orient="records")))


def setup_routes(app: web.Application) -> None:
    """Register all REST API routes."""
    app.router.add_get("/v1/system", system_handler)
    app.router.add_get("/v1/state", state_handler)
    app.router.add_get("/v1/selection", get_selection_handler)
    app.router.add_put("/v1/selection", put_selection_handler)
    app.router.add_get("/v1/accounts", list_accounts_handler)
    app.router.add_post("/v1/accounts", create_account_handler)
    app.router.add_get("/v1/accounts/summary", accounts_summary_handler)
    app.router.add_put("/v1/accounts/{account_id}", update_account_handler)
    app.router.add_delete("/v1/accounts/{account_id}", delete_account_handler)
    app.router.add_get("/v1/trades", list_trades_handler)
    app.router.add_post("/v1/trades", create_trade_handler)
    app.router.add_delete("/v1/trades/{trade_id}", delete_trade_handler)
    app.router.add_get("/v1/dashboard", dashboard_handler)
    app.router.add_get("/v1/plans", list_plans_handler)
    app.router.add_put("/v1/plans", upsert_plan_handler)
    app.router.add_get("/v1/planning/{account_id}", planning_handler)
    app.router.add_get("/v1/settings", get_settings_handler)
    app.router.add_put("/v1/settings", put_settings_handler)
    app.router.add_post("/v1/reset", reset_handler)
    app.router.add_get("/v1/export", export_handler)
    app.router.add_post("/v1/import", import_handler)
    app.router.add_get("/v1/reports/trades.csv", trades_csv_handler)
    app.router.add_get("/v1/reports/monthly", monthly_report_handler)
