# tests/test_storage.py
import sqlite3
from pathlib import Path

import pytest

from tokenledger.asset.ledger import AssetLedger
from tokenledger.auth.registry import AuthorizationRegistry
from tokenledger.chain.journal import Journal
from tokenledger.core.types import MAX_SUPPLY, JournalEntry, Principal
from tokenledger.storage import DB_PATH_ENV, SQLiteStorage, create_storage

DEPLOYER = Principal("0xdeployer")
ALICE = Principal("0xalice")


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
def storage(temp_db_path: Path) -> SQLiteStorage:
    return SQLiteStorage(db_path=temp_db_path)


@pytest.fixture
def ledger() -> AssetLedger:
    registry = AuthorizationRegistry(owner=DEPLOYER, address=Principal("0xregistry"))
    return AssetLedger("Test Asset", "TST", registry, DEPLOYER)


def test_create_storage_dynamic_routing(temp_db_path: Path):
    storage = create_storage(f"sqlite://{temp_db_path}")
    assert isinstance(storage, SQLiteStorage)
    assert str(storage.db_path) == str(temp_db_path.resolve())


def test_create_storage_rejects_unknown_scheme():
    with pytest.raises(ValueError, match="Unsupported"):
        create_storage("postgres://nope")
    with pytest.raises(NotImplementedError):
        create_storage("jsonl:/tmp/x.jsonl")


def test_sqlite_init_default_and_env(tmp_path: Path, monkeypatch):
    monkeypatch.delenv(DB_PATH_ENV, raising=False)
    monkeypatch.chdir(tmp_path)
    default_storage = SQLiteStorage()
    assert default_storage.db_path.name == "tokenledger-journal.db"
    default_storage.close()

    env_path = tmp_path / "env" / "journal.db"
    monkeypatch.setenv(DB_PATH_ENV, str(env_path))
    env_storage = SQLiteStorage()
    assert env_storage.db_path == env_path.resolve()
    env_storage.close()


def test_sqlite_schema_creation(storage: SQLiteStorage):
    cursor = storage.conn.cursor()
    cursor.execute("PRAGMA table_info(entries)")
    columns = {row[1] for row in cursor.fetchall()}
    assert columns == {
        "ledger_id", "sequence", "prev_hash", "entry_hash", "operation",
        "caller", "kind", "payload_json"
    }


def test_append_and_load_basic(storage: SQLiteStorage, ledger: AssetLedger):
    journal = Journal("TST")
    for entry in journal.record(ledger.genesis):
        storage.append(entry)

    loaded = storage.load_entries("TST")
    assert len(loaded) == 2
    assert loaded[1].kind == "Transfer"
    # 5e23 does not fit a 64-bit integer; it must survive as text
    assert loaded[1].payload["value"] == str(MAX_SUPPLY)
    assert loaded == journal.get_chain()


def test_append_unchained_raises(storage: SQLiteStorage):
    orphan = JournalEntry(
        ledger_id="TST", sequence=3, operation="transfer", caller="0xa",
        kind="Transfer", payload={}, prev_hash=""
    )
    with pytest.raises(ValueError, match="unchained"):
        storage.append(orphan)


def test_load_empty_ledger(storage: SQLiteStorage):
    assert storage.load_entries("non-existent") == []


def test_journal_integration_with_storage(temp_db_path: Path, ledger: AssetLedger):
    journal = Journal("TST", storage=f"sqlite://{temp_db_path}")
    journal.record(ledger.genesis)
    journal.record(ledger.transfer(DEPLOYER, ALICE, 25))
    journal.close()

    reopened = Journal("TST", storage=str(temp_db_path))
    assert reopened.length == 3
    assert reopened.entries[2].payload["to"] == "0xalice"

    # Appending continues the persisted chain
    reopened.record(ledger.transfer(ALICE, DEPLOYER, 5))
    assert reopened.entries[3].sequence == 3
    reopened.close()


def test_storage_queries(temp_db_path: Path, ledger: AssetLedger):
    journal = Journal("TST", storage=f"sqlite://{temp_db_path}")
    journal.record(ledger.genesis)
    journal.record(ledger.transfer(DEPLOYER, ALICE, 25))
    other = Journal("ABC", storage=journal.storage)
    other.record(ledger.approve(ALICE, DEPLOYER, 1))

    storage = journal.storage
    assert storage.list_ledgers() == ["ABC", "TST"]
    assert storage.get_entry_count("TST") == 3
    assert storage.get_latest_sequence("TST") == 2
    assert storage.get_latest_sequence("missing") is None

    latest = storage.query_entries("TST", limit=2)
    assert [e.sequence for e in latest] == [1, 2]
    journal.close()


def test_tamper_detection_on_load(temp_db_path: Path, ledger: AssetLedger):
    journal = Journal("TST", storage=f"sqlite://{temp_db_path}")
    journal.record(ledger.genesis)
    journal.record(ledger.transfer(DEPLOYER, ALICE, 25))
    journal.close()

    conn = sqlite3.connect(temp_db_path)
    conn.execute("""
        UPDATE entries
        SET payload_json = REPLACE(payload_json, '"value":"25"', '"value":"2500"')
        WHERE sequence = 2
    """)
    conn.execute("""
        UPDATE entries
        SET payload_json = REPLACE(payload_json, '0xdeployer', '0xmallory')
        WHERE sequence = 1
    """)
    conn.commit()
    conn.close()

    with SQLiteStorage(temp_db_path) as storage:
        with pytest.raises(ValueError, match="Chain broken"):
            storage.load_entries("TST")

    # A journal over a broken store refuses to attach instead of restarting at sequence 0
    with pytest.raises(ValueError, match="Chain broken"):
        Journal("TST", storage=str(temp_db_path))


def test_records_are_never_dropped_after_failed_reload(temp_db_path: Path, ledger: AssetLedger):
    journal = Journal("TST", storage=f"sqlite://{temp_db_path}")
    journal.record(ledger.genesis)
    journal.record(ledger.transfer(DEPLOYER, ALICE, 25))
    journal.close()

    conn = sqlite3.connect(temp_db_path)
    conn.execute("UPDATE entries SET caller = '0xmallory' WHERE sequence = 0")
    conn.commit()
    conn.close()

    with pytest.raises(ValueError, match="Chain broken"):
        Journal("TST", storage=str(temp_db_path))

    with SQLiteStorage(temp_db_path) as storage:
        assert storage.get_entry_count("TST") == 3


def test_append_duplicate_sequence_raises(storage: SQLiteStorage, ledger: AssetLedger):
    first = Journal("TST").record(ledger.genesis)[0]
    storage.append(first)

    clash = Journal("TST").record(ledger.transfer(DEPLOYER, ALICE, 7))[0]
    assert clash.sequence == first.sequence
    with pytest.raises(sqlite3.IntegrityError):
        storage.append(clash)
    assert storage.load_entries("TST") == [first]


def test_close_releases_resources(temp_db_path: Path, ledger: AssetLedger):
    storage = SQLiteStorage(temp_db_path)
    assert storage._conn is not None
    entry = Journal("TST").record(ledger.genesis)[0]
    storage.append(entry)
    storage.close()

    with pytest.raises(RuntimeError, match="closed"):
        storage.append(entry)


def test_context_manager(temp_db_path: Path):
    with SQLiteStorage(temp_db_path) as storage:
        assert storage._conn is not None
    with pytest.raises(RuntimeError, match="closed"):
        storage.load_entries("TST")
