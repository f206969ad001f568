"""
SQLite database initialisation and helpers.
"""

import os
import sqlite3
from contextlib import contextmanager

from ecoreports.config import DATABASE_PATH

_SCHEMA = """
CREATE TABLE IF NOT EXISTS reports (
    id              TEXT PRIMARY KEY,
    title           TEXT NOT NULL,
    ecosystem       TEXT NOT NULL,
    region          TEXT NOT NULL DEFAULT 'N/A',
    file_path       TEXT NOT NULL,
    file_size       INTEGER NOT NULL DEFAULT 0,
    status          TEXT NOT NULL DEFAULT 'processing'
                    CHECK (status IN ('processing', 'completed', 'failed')),
    is_comparative  INTEGER NOT NULL DEFAULT 0,
    page_count      INTEGER,
    word_count      INTEGER,
    language        TEXT,
    chunk_count     INTEGER,
    error_message   TEXT,
    user_id         TEXT,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS chunks (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    report_id       TEXT NOT NULL REFERENCES reports(id) ON DELETE CASCADE,
    content         TEXT NOT NULL,
    section_type    TEXT NOT NULL DEFAULT 'other'
                    CHECK (section_type IN ('resumen', 'fortalezas', 'retos',
                                            'recomendaciones', 'métricas', 'other')),
    chunk_index     INTEGER NOT NULL,
    start_char      INTEGER NOT NULL,
    end_char        INTEGER NOT NULL,
    embedding       BLOB,
    created_at      TEXT NOT NULL,
    CHECK (start_char < end_char),
    UNIQUE(report_id, chunk_index)
);

CREATE TABLE IF NOT EXISTS processing_status (
    report_id       TEXT PRIMARY KEY REFERENCES reports(id) ON DELETE CASCADE,
    stage           TEXT NOT NULL
                    CHECK (stage IN ('extracting', 'chunking', 'embedding',
                                     'completed', 'failed')),
    progress        INTEGER NOT NULL CHECK (progress BETWEEN 0 AND 100),
    message         TEXT NOT NULL DEFAULT '',
    updated_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_chunks_report ON chunks(report_id);
CREATE INDEX IF NOT EXISTS idx_reports_status ON reports(status);
"""


def _ensure_dir(path: str):
    db_dir = os.path.dirname(path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)


def init_db(db_path: str | None = None):
    """Create tables if they don't exist yet."""
    path = db_path or DATABASE_PATH
    _ensure_dir(path)
    conn = sqlite3.connect(path)
    conn.executescript(_SCHEMA)
    conn.close()


def get_connection(db_path: str | None = None) -> sqlite3.Connection:
    path = db_path or DATABASE_PATH
    _ensure_dir(path)
    conn = sqlite3.connect(path)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_db(db_path: str | None = None):
    """Context manager that yields a connection and auto-commits/rollbacks."""
    conn = get_connection(db_path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
