"""Snapshot persistence and backup files.

The journal is stored as one JSON document under a fixed key. Reading it can
never crash startup: an absent or unreadable snapshot yields an empty journal.
Backup import is the opposite: a bad file is refused and reported.
"""

from __future__ import annotations

import json
from datetime import date

import aiosqlite
import structlog

from tradejournal.shell.contract import ImportFileError, JournalSettings, JournalState
from tradejournal.shell.database import Database

log = structlog.get_logger()

BACKUP_PREFIX = "tradermaster_backup_"

_PARSE_ERRORS = (ValueError, TypeError, OverflowError)


def dump_document(state: JournalState, indent: int | None = None) -> str:
    return json.dumps(state.to_dict(), indent=indent, ensure_ascii=False)


class SnapshotStore:
    """Reads and writes the whole journal under `key`."""

    def __init__(self, db: Database, key: str, default_settings: JournalSettings | None = None) -> None:
        self._db = db
        self._key = key
        self._default_settings = default_settings or JournalSettings()

    def _empty(self) -> JournalState:
        return JournalState(settings=self._default_settings)

    async def load(self) -> JournalState:
        try:
            raw = await self._db.get_value(self._key)
        except aiosqlite.Error as e:
            log.warning("snapshot.read_failed", key=self._key, error=str(e))
            return self._empty()

        if raw is None:
            log.info("snapshot.empty", key=self._key)
            return self._empty()

        try:
            state = JournalState.from_dict(json.loads(raw))
        except _PARSE_ERRORS as e:
            log.warning("snapshot.load_failed", key=self._key, error=str(e),
                        error_type=type(e).__name__)
            return self._empty()

        log.info("snapshot.loaded", key=self._key, accounts=len(state.accounts),
                 trades=len(state.trades), plans=len(state.weekly_plans))
        return state

    async def save(self, state: JournalState) -> None:
        """Overwrite the snapshot with the full document."""
        await self._db.set_value(self._key, dump_document(state))


# --- Backup files ---

def backup_filename(today: date) -> str:
    return f"{BACKUP_PREFIX}{today.isoformat()}.json"


def parse_import(text: str | bytes) -> JournalState:
    """Parse backup content. Raises ImportFileError when it is not a journal document."""
    try:
        if isinstance(text, bytes):
            text = text.decode("utf-8")
        return JournalState.from_dict(json.loads(text), strict=True)
    except _PARSE_ERRORS as e:
        raise ImportFileError(f"Could not import backup: {e}") from e
