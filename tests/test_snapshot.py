"""Persistence tests: kv database, snapshot load/save, backup import/export."""

import json
import os
import tempfile
from datetime import date

import pytest

SAMPLE_DOC = {
    "accounts": [
        {"id": "a1", "name": "FTMO 100k", "propFirm": "FTMO", "size": 100000,
         "splitPercent": 20, "startDate": "2025-01-02", "status": "Ativa"},
    ],
    "trades": [
        {"id": "t2", "accountId": "a1", "date": "2025-03-11T10:00", "asset": "EURUSD",
         "type": "SELL", "points": -30, "valuePerPoint": 10, "lots": 1, "profitUSD": -300},
        {"id": "t1", "accountId": "a1", "date": "2025-03-10T10:00", "asset": "EURUSD",
         "type": "BUY", "points": 50, "valuePerPoint": 10, "lots": 1, "profitUSD": 500},
    ],
    "weeklyPlans": [
        {"id": "p1", "accountId": "a1", "weekStart": "2025-03-10", "goalUSD": 1000,
         "goalPoints": 100, "scheduledDays": ["Mon", "Tue"], "maxTradesPerDay": 3,
         "strategy": "London open", "startTime": "08:00", "endTime": "12:00"},
    ],
    "config": {"usdToBrlRate": 5.2, "dateFormat": "MM/DD/YYYY",
               "notifications": {"goalReached": True, "lossStreak": 2, "maxTradesExceeded": False}},
}


def _remove_db(db_path):
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(db_path + suffix):
            os.unlink(db_path + suffix)


async def _make_db():
    from tradejournal.shell.database import Database
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    db = Database(db_path)
    await db.connect()
    return db, db_path


@pytest.mark.asyncio
async def test_database_kv_roundtrip():
    db, db_path = await _make_db()
    try:
        assert await db.get_value("k") is None
        await db.set_value("k", "one")
        await db.set_value("k", "two")
        assert await db.get_value("k") == "two"
        row = await db.fetchone("SELECT COUNT(*) AS n FROM kv_store")
        assert row["n"] == 1
        await db.close()
    finally:
        _remove_db(db_path)


@pytest.mark.asyncio
async def test_snapshot_empty_key_gives_defaults():
    from tradejournal.shell.contract import JournalSettings
    from tradejournal.shell.snapshot import SnapshotStore

    db, db_path = await _make_db()
    try:
        defaults = JournalSettings(usd_to_brl_rate=5.0)
        state = await SnapshotStore(db, "forex_master_v2_data", defaults).load()
        assert state.accounts == ()
        assert state.trades == ()
        assert state.settings.usd_to_brl_rate == 5.0
        await db.close()
    finally:
        _remove_db(db_path)


@pytest.mark.asyncio
async def test_snapshot_corrupt_blob_falls_back():
    from tradejournal.shell.snapshot import SnapshotStore

    db, db_path = await _make_db()
    try:
        for blob in ("{not json", "[1, 2, 3]", '{"accounts": "oops"}',
                     '{"trades": [{"accountId": "a1"}]}',
                     '{"trades": [{"accountId": "a1", "date": "31/12/2025", "points": 1}]}'):
            await db.set_value("journal", blob)
            state = await SnapshotStore(db, "journal").load()
            assert state.accounts == ()
            assert state.trades == ()
        await db.close()
    finally:
        _remove_db(db_path)


@pytest.mark.asyncio
async def test_snapshot_save_then_load():
    from tradejournal.shell.contract import AccountStatus, JournalState
    from tradejournal.shell.snapshot import SnapshotStore

    db, db_path = await _make_db()
    try:
        snap = SnapshotStore(db, "journal")
        await snap.save(JournalState.from_dict(SAMPLE_DOC))

        raw = json.loads(await db.get_value("journal"))
        assert list(raw) == ["accounts", "trades", "weeklyPlans", "config"]
        # Legacy status is written back in the current vocabulary
        assert raw["accounts"][0]["status"] == "Active"

        state = await snap.load()
        assert state.accounts[0].status == AccountStatus.ACTIVE
        assert [t.id for t in state.trades] == ["t2", "t1"]
        assert state.weekly_plans[0].scheduled_days == ("Mon", "Tue")
        assert state.settings.notifications.loss_streak == 2
        await db.close()
    finally:
        _remove_db(db_path)


def test_partial_document_fills_defaults():
    from tradejournal.shell.contract import JournalState
    state = JournalState.from_dict({"accounts": SAMPLE_DOC["accounts"]})
    assert len(state.accounts) == 1
    assert state.trades == ()
    assert state.settings.usd_to_brl_rate == 5.5


def test_stored_profit_is_kept():
    from tradejournal.shell.contract import Trade
    t = Trade.from_dict({"accountId": "a", "date": "2025-03-10T10:00", "points": 50,
                         "valuePerPoint": 10, "profitUSD": 123})
    assert t.profit_usd == 123
    derived = Trade.from_dict({"accountId": "a", "date": "2025-03-10T10:00", "points": 50,
                               "valuePerPoint": 10})
    assert derived.profit_usd == 500


# --- Backup files ---

def test_backup_filename():
    from tradejournal.shell.snapshot import backup_filename
    assert backup_filename(date(2025, 3, 14)) == "tradermaster_backup_2025-03-14.json"


def test_export_import_roundtrip():
    from tradejournal.shell.contract import JournalState
    from tradejournal.shell.snapshot import dump_document, parse_import

    state = JournalState.from_dict(SAMPLE_DOC)
    text = dump_document(state, indent=2)
    assert "\n  " in text
    assert parse_import(text) == state
    assert parse_import(text.encode("utf-8")) == state


def test_import_keeps_dangling_references():
    from tradejournal.shell.snapshot import parse_import
    doc = dict(SAMPLE_DOC, accounts=[])
    state = parse_import(json.dumps(doc))
    assert state.accounts == ()
    assert len(state.trades) == 2


@pytest.mark.parametrize("text", [
    "not json at all",
    "[]",
    '{"accounts": [], "trades": []}',
    '{"accounts": {}, "trades": [], "weeklyPlans": [], "config": {}}',
    '{"accounts": [], "trades": [{"date": "2025-03-10"}], "weeklyPlans": [], "config": {}}',
    '{"accounts": [], "trades": [], "weeklyPlans": [], "config": []}',
    '{"accounts": [], "trades": [{"accountId": "a1", "date": "", "points": 5}], "weeklyPlans": [], "config": {}}',
    '{"accounts": [], "trades": [{"accountId": "a1", "date": "not-a-date", "points": 5}], "weeklyPlans": [], "config": {}}',
])
def test_import_rejects_bad_files(text):
    from tradejournal.shell.contract import ImportFileError
    from tradejournal.shell.snapshot import parse_import
    with pytest.raises(ImportFileError):
        parse_import(text)


def test_import_rejects_non_utf8():
    from tradejournal.shell.contract import ImportFileError
    from tradejournal.shell.snapshot import parse_import
    with pytest.raises(ImportFileError):
        parse_import(b"\xff\xfe\x00garbage")
