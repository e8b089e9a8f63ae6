"""
SchoolBooks — Database Layer
One SQLite file holds every book, the customer register and the fee rules.
Each record is stored as a JSON document under its collection name; the
autoincrement row id is the record's identity. Financial year is never
stored: readers derive it from the date.
"""
import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime

from books import (Book, customer_from_record, entry_from_record, rule_from_record)
from errors import PersistenceFailure

log = logging.getLogger(__name__)

DB_PATH = None
def get_db_path(): return DB_PATH
def set_db_path(path):
    global DB_PATH
    DB_PATH = path

COLLECTIONS = tuple(b.value for b in Book) + ('customers', 'rules')

_subscribers = {}

@contextmanager
def get_db():
    if not DB_PATH:
        raise PersistenceFailure("No books open")
    try:
        conn = sqlite3.connect(DB_PATH)
    except sqlite3.Error as e:
        raise PersistenceFailure(f"Cannot open {DB_PATH}: {e}") from e
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    try:
        yield conn
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        log.error("Database error on %s: %s", DB_PATH, e)
        raise PersistenceFailure(str(e)) from e
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()

def init_db(path):
    set_db_path(path)
    with get_db() as db:
        db.executescript(SCHEMA)

SCHEMA = """
CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT);

CREATE TABLE IF NOT EXISTS records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    collection TEXT NOT NULL,
    date TEXT DEFAULT '',
    data TEXT NOT NULL DEFAULT '{}',
    created TEXT DEFAULT '',
    updated TEXT DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_records_coll ON records(collection, date);
"""

# ─── Meta ──────────────────────────────────────────────────────────
def get_meta(key, default=''):
    with get_db() as db:
        row = db.execute("SELECT value FROM meta WHERE key=?", (key,)).fetchone()
        return row['value'] if row else default

def set_meta(key, value):
    with get_db() as db:
        db.execute("INSERT OR REPLACE INTO meta(key,value) VALUES(?,?)", (key, value))

# ─── Conversion ───────────────────────────────────────────────────
def _collection(name):
    name = str(getattr(name, 'value', name)).strip().lower()
    if name not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {name!r}")
    return name

def to_model(collection, record):
    """Typed record (LedgerEntry / CustomerRecord / RuleEntry) for a collection."""
    collection = _collection(collection)
    if collection == 'customers':
        return customer_from_record(record)
    if collection == 'rules':
        return rule_from_record(record)
    return entry_from_record(collection, record)

def _payload(collection, record):
    data = to_model(collection, record).to_record()
    data.pop('id', None)
    data.pop('financial_year', None)
    return data

def _from_row(collection, row):
    data = json.loads(row['data'] or '{}')
    data['id'] = row['id']
    return to_model(collection, data)

# ─── Records ──────────────────────────────────────────────────────
def insert(collection, record):
    """Save a new record. Returns the id the store allocated."""
    collection = _collection(collection)
    data = _payload(collection, record)
    now = datetime.now().isoformat(timespec='seconds')
    with get_db() as db:
        cur = db.execute(
            "INSERT INTO records(collection, date, data, created, updated) VALUES(?,?,?,?,?)",
            (collection, data.get('date', ''), json.dumps(data), now, now))
        new_id = cur.lastrowid
    log.info("Inserted %s record %s", collection, new_id)
    _notify(collection)
    return new_id

def update(collection, record_id, record):
    collection = _collection(collection)
    if record_id is None:
        raise PersistenceFailure("Cannot update: this record was never saved to the database.")
    data = _payload(collection, record)
    now = datetime.now().isoformat(timespec='seconds')
    with get_db() as db:
        cur = db.execute(
            "UPDATE records SET date=?, data=?, updated=? WHERE id=? AND collection=?",
            (data.get('date', ''), json.dumps(data), now, record_id, collection))
        if cur.rowcount == 0:
            raise PersistenceFailure(f"No {collection} record with id {record_id}")
    _notify(collection)

def delete(collection, record_id):
    collection = _collection(collection)
    if record_id is None:
        raise PersistenceFailure("Cannot delete: this record was never saved to the database.")
    with get_db() as db:
        cur = db.execute("DELETE FROM records WHERE id=? AND collection=?", (record_id, collection))
        if cur.rowcount == 0:
            raise PersistenceFailure(f"No {collection} record with id {record_id}")
    log.info("Deleted %s record %s", collection, record_id)
    _notify(collection)

def bulk_insert(collection, records):
    """Insert many records in one transaction. Returns their ids."""
    collection = _collection(collection)
    now = datetime.now().isoformat(timespec='seconds')
    ids = []
    with get_db() as db:
        for record in records:
            data = _payload(collection, record)
            cur = db.execute(
                "INSERT INTO records(collection, date, data, created, updated) VALUES(?,?,?,?,?)",
                (collection, data.get('date', ''), json.dumps(data), now, now))
            ids.append(cur.lastrowid)
    if ids:
        _notify(collection)
    return ids

def get_record(collection, record_id):
    collection = _collection(collection)
    with get_db() as db:
        row = db.execute("SELECT * FROM records WHERE id=? AND collection=?",
                         (record_id, collection)).fetchone()
        return _from_row(collection, row) if row else None

def list_records(collection):
    """Every record of a collection, oldest first."""
    collection = _collection(collection)
    with get_db() as db:
        rows = db.execute("SELECT * FROM records WHERE collection=? ORDER BY date, id",
                          (collection,)).fetchall()
        return [_from_row(collection, r) for r in rows]

def snapshot():
    """All six books read in one transaction: {Book: [entries]}."""
    out = {b: [] for b in Book}
    with get_db() as db:
        rows = db.execute(
            "SELECT * FROM records WHERE collection IN (%s) ORDER BY date, id"
            % ','.join('?' * len(Book)), tuple(b.value for b in Book)).fetchall()
        for r in rows:
            out[Book(r['collection'])].append(_from_row(r['collection'], r))
    return out

def count_records(collection):
    collection = _collection(collection)
    with get_db() as db:
        return db.execute("SELECT COUNT(*) FROM records WHERE collection=?",
                          (collection,)).fetchone()[0]

# ─── Change notification ──────────────────────────────────────────
def subscribe(collection, callback):
    """Call callback(records) after every change to a collection.
    Returns a function that removes the subscription."""
    collection = _collection(collection)
    _subscribers.setdefault(collection, []).append(callback)

    def unsubscribe():
        subs = _subscribers.get(collection, [])
        if callback in subs:
            subs.remove(callback)
    return unsubscribe

def _notify(collection):
    subs = list(_subscribers.get(collection, []))
    if not subs:
        return
    records = list_records(collection)
    for cb in subs:
        try:
            cb(records)
        except Exception:
            log.exception("Subscriber for %s failed", collection)

# ─── Starter Books ────────────────────────────────────────────────
def create_books(path, school_name='My School'):
    init_db(path)
    set_meta('school_name', school_name)
    set_meta('created', datetime.now().strftime('%Y-%m-%d'))
    return path
