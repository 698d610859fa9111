"""Journal contract — entities shared by the ledger, the store and the API.

The wire format is the one the journal has always persisted: a single JSON
document with `accounts`, `trades`, `weeklyPlans` and `config`, camelCase keys.
Entities are frozen; the store replaces them, never mutates them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


ALL_ACCOUNTS = "all"
WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri")
DATE_FORMATS = ("DD/MM/YYYY", "MM/DD/YYYY")
STATE_FIELDS = ("accounts", "trades", "weeklyPlans", "config")


# --- Errors ---

class JournalError(Exception):
    """Base class for journal domain errors."""


class UnknownAccountError(JournalError):
    def __init__(self, account_id: str) -> None:
        super().__init__(f"Unknown account: '{account_id}'")
        self.account_id = account_id


class ImportFileError(JournalError):
    """Backup file could not be parsed as a journal document."""


# --- Enums ---

class TradeType(Enum):
    BUY = "BUY"
    SELL = "SELL"


class AccountStatus(Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


# Labels written by older versions of the journal
_LEGACY_STATUS = {"Ativa": AccountStatus.ACTIVE, "Inativa": AccountStatus.INACTIVE}


# --- Field helpers ---

def _require(data: dict, key: str) -> Any:
    if key not in data or data[key] is None:
        raise ValueError(f"missing field '{key}'")
    return data[key]


def _number(data: dict, key: str, default: float | None = None) -> float:
    value = data.get(key, default)
    if value is None:
        raise ValueError(f"missing field '{key}'")
    if isinstance(value, bool):
        raise ValueError(f"field '{key}' must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"field '{key}' must be a number, got {value!r}") from None


def _timestamp(data: dict, key: str) -> str:
    """ISO date or timestamp, kept as written. Anything unparseable is refused here."""
    value = str(_require(data, key))
    try:
        datetime.fromisoformat(value)
    except ValueError:
        raise ValueError(f"field '{key}' must be an ISO date, got {value!r}") from None
    return value


def _text(data: dict, key: str, default: str | None = None) -> str | None:
    value = data.get(key, default)
    return None if value is None else str(value)


def _parse_status(value: Any) -> AccountStatus:
    if value in _LEGACY_STATUS:
        return _LEGACY_STATUS[value]
    try:
        return AccountStatus(value)
    except ValueError:
        raise ValueError(f"invalid account status: {value!r}") from None


def _parse_trade_type(value: Any) -> TradeType:
    try:
        return TradeType(str(value).upper())
    except ValueError:
        raise ValueError(f"invalid trade type: {value!r}") from None


# --- Entities ---

@dataclass(frozen=True)
class Account:
    name: str
    prop_firm: str
    size: float
    split_percent: float      # % the firm keeps from profitable trades
    start_date: str           # YYYY-MM-DD
    status: AccountStatus = AccountStatus.ACTIVE
    notes: str | None = None
    id: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE

    def to_dict(self) -> dict:
        out = {
            "id": self.id,
            "name": self.name,
            "propFirm": self.prop_firm,
            "size": self.size,
            "splitPercent": self.split_percent,
            "startDate": self.start_date,
            "status": self.status.value,
        }
        if self.notes is not None:
            out["notes"] = self.notes
        return out

    @classmethod
    def from_dict(cls, data: dict) -> Account:
        return cls(
            id=_text(data, "id"),
            name=str(_require(data, "name")),
            prop_firm=_text(data, "propFirm", ""),
            size=_number(data, "size", 0.0),
            split_percent=_number(data, "splitPercent", 0.0),
            start_date=_text(data, "startDate", ""),
            status=_parse_status(data.get("status", AccountStatus.ACTIVE.value)),
            notes=_text(data, "notes"),
        )


@dataclass(frozen=True)
class NewTrade:
    """A trade as entered by the trader, before the store assigns id and profit."""
    account_id: str
    date: str                 # ISO timestamp, e.g. 2025-03-10T14:30
    asset: str
    type: TradeType
    points: float             # signed; the sign carries win/loss, not `type`
    value_per_point: float
    lots: float = 0.0
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> NewTrade:
        return cls(
            account_id=str(_require(data, "accountId")),
            date=_timestamp(data, "date"),
            asset=str(data.get("asset") or ""),
            type=_parse_trade_type(data.get("type", TradeType.BUY.value)),
            points=_number(data, "points"),
            value_per_point=_number(data, "valuePerPoint", 1.0),
            lots=_number(data, "lots", 0.0),
            notes=_text(data, "notes"),
        )


@dataclass(frozen=True)
class Trade:
    account_id: str
    date: str
    asset: str
    type: TradeType
    points: float
    value_per_point: float
    lots: float
    profit_usd: float
    notes: str | None = None
    id: str | None = None

    def to_dict(self) -> dict:
        out = {
            "id": self.id,
            "accountId": self.account_id,
            "date": self.date,
            "asset": self.asset,
            "type": self.type.value,
            "points": self.points,
            "valuePerPoint": self.value_per_point,
            "lots": self.lots,
            "profitUSD": self.profit_usd,
        }
        if self.notes is not None:
            out["notes"] = self.notes
        return out

    @classmethod
    def from_dict(cls, data: dict) -> Trade:
        points = _number(data, "points")
        value_per_point = _number(data, "valuePerPoint", 1.0)
        # Stored profit wins; only documents that never had one get it derived
        profit = data.get("profitUSD")
        return cls(
            id=_text(data, "id"),
            account_id=str(_require(data, "accountId")),
            date=_timestamp(data, "date"),
            asset=str(data.get("asset") or ""),
            type=_parse_trade_type(data.get("type", TradeType.BUY.value)),
            points=points,
            value_per_point=value_per_point,
            lots=_number(data, "lots", 0.0),
            profit_usd=points * value_per_point if profit is None else _number(data, "profitUSD"),
            notes=_text(data, "notes"),
        )


@dataclass(frozen=True)
class WeeklyPlan:
    account_id: str
    week_start: str           # Monday, YYYY-MM-DD
    goal_usd: float = 0.0
    goal_points: float = 0.0
    scheduled_days: tuple[str, ...] = ()
    max_trades_per_day: int = 3
    strategy: str = ""
    start_time: str = "09:00"
    end_time: str = "17:00"
    id: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "accountId": self.account_id,
            "weekStart": self.week_start,
            "goalUSD": self.goal_usd,
            "goalPoints": self.goal_points,
            "scheduledDays": list(self.scheduled_days),
            "maxTradesPerDay": self.max_trades_per_day,
            "strategy": self.strategy,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }

    @classmethod
    def from_dict(cls, data: dict) -> WeeklyPlan:
        days = data.get("scheduledDays") or []
        if not isinstance(days, (list, tuple)):
            raise ValueError(f"field 'scheduledDays' must be a list, got {days!r}")
        return cls(
            id=_text(data, "id"),
            account_id=str(_require(data, "accountId")),
            week_start=str(_require(data, "weekStart")).split("T")[0],
            goal_usd=_number(data, "goalUSD", 0.0),
            goal_points=_number(data, "goalPoints", 0.0),
            scheduled_days=tuple(str(d) for d in days),
            max_trades_per_day=int(_number(data, "maxTradesPerDay", 3)),
            strategy=_text(data, "strategy", ""),
            start_time=_text(data, "startTime", "09:00"),
            end_time=_text(data, "endTime", "17:00"),
        )


@dataclass(frozen=True)
class NotificationSettings:
    goal_reached: bool = True
    loss_streak: int = 3
    max_trades_exceeded: bool = True

    def to_dict(self) -> dict:
        return {
            "goalReached": self.goal_reached,
            "lossStreak": self.loss_streak,
            "maxTradesExceeded": self.max_trades_exceeded,
        }

    @classmethod
    def from_dict(cls, data: dict) -> NotificationSettings:
        return cls(
            goal_reached=bool(data.get("goalReached", True)),
            loss_streak=int(_number(data, "lossStreak", 3)),
            max_trades_exceeded=bool(data.get("maxTradesExceeded", True)),
        )


@dataclass(frozen=True)
class JournalSettings:
    """The persisted `config` singleton. Not to be confused with the process Config."""
    usd_to_brl_rate: float = 5.50
    date_format: str = "DD/MM/YYYY"
    notifications: NotificationSettings = field(default_factory=NotificationSettings)

    def to_dict(self) -> dict:
        return {
            "usdToBrlRate": self.usd_to_brl_rate,
            "dateFormat": self.date_format,
            "notifications": self.notifications.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> JournalSettings:
        notifications = data.get("notifications") or {}
        if not isinstance(notifications, dict):
            raise ValueError("field 'notifications' must be an object")
        return cls(
            usd_to_brl_rate=_number(data, "usdToBrlRate", 5.50),
            date_format=_text(data, "dateFormat", "DD/MM/YYYY"),
            notifications=NotificationSettings.from_dict(notifications),
        )


@dataclass(frozen=True)
class JournalState:
    """The whole application state: the unit that is persisted, exported and imported."""
    accounts: tuple[Account, ...] = ()
    trades: tuple[Trade, ...] = ()          # newest first
    weekly_plans: tuple[WeeklyPlan, ...] = ()
    settings: JournalSettings = field(default_factory=JournalSettings)

    def account(self, account_id: str) -> Account | None:
        for acc in self.accounts:
            if acc.id == account_id:
                return acc
        return None

    @property
    def accounts_by_id(self) -> dict[str, Account]:
        return {acc.id: acc for acc in self.accounts}

    def to_dict(self) -> dict:
        return {
            "accounts": [a.to_dict() for a in self.accounts],
            "trades": [t.to_dict() for t in self.trades],
            "weeklyPlans": [p.to_dict() for p in self.weekly_plans],
            "config": self.settings.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any, strict: bool = False) -> JournalState:
        """Build state from a journal document.

        Missing collections fall back to empty (and a missing `config` to
        defaults) unless `strict`, which requires all four fields. Cross
        references are never checked.
        """
        if not isinstance(data, dict):
            raise ValueError("journal document must be a JSON object")
        if strict:
            missing = [k for k in STATE_FIELDS if k not in data]
            if missing:
                raise ValueError(f"journal document missing fields: {', '.join(missing)}")

        def _records(key: str) -> list:
            value = data.get(key)
            if value is None:
                return []
            if not isinstance(value, list):
                raise ValueError(f"field '{key}' must be a list")
            if not all(isinstance(r, dict) for r in value):
                raise ValueError(f"field '{key}' must contain objects")
            return value

        config = data.get("config")
        if config is not None and not isinstance(config, dict):
            raise ValueError("field 'config' must be an object")
        return cls(
            accounts=tuple(Account.from_dict(a) for a in _records("accounts")),
            trades=tuple(Trade.from_dict(t) for t in _records("trades")),
            weekly_plans=tuple(WeeklyPlan.from_dict(p) for p in _records("weeklyPlans")),
            settings=JournalSettings.from_dict(config) if config else JournalSettings(),
        )
