from __future__ import annotations

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = Path.home() / ".notegrid.sqlite"


def connect(db_path: Path | str, check_same_thread: bool = True) -> sqlite3.Connection:
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, check_same_thread=check_same_thread, timeout=10)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        conn.execute("PRAGMA journal_mode = WAL")
    except sqlite3.OperationalError:
        conn.execute("PRAGMA journal_mode = DELETE")
    conn.execute("PRAGMA synchronous = NORMAL")
    return conn


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS users (
            uuid TEXT PRIMARY KEY,
            created_at INTEGER NOT NULL,
            updated_at INTEGER NOT NULL
        );

        CREATE TABLE IF NOT EXISTS tasks (
            id TEXT NOT NULL,
            user_uuid TEXT NOT NULL REFERENCES users(uuid) ON DELETE CASCADE,
            title TEXT NOT NULL DEFAULT '',
            note TEXT NOT NULL DEFAULT '',
            tags TEXT NOT NULL DEFAULT '[]',
            color TEXT NOT NULL,
            quadrant TEXT,
            kanban_status TEXT,
            completed INTEGER NOT NULL DEFAULT 0,
            created_at INTEGER NOT NULL,
            updated_at INTEGER NOT NULL,
            sort_order INTEGER NOT NULL,
            PRIMARY KEY (user_uuid, id)
        );
        CREATE INDEX IF NOT EXISTS idx_tasks_user_order ON tasks(user_uuid, sort_order);

        CREATE TABLE IF NOT EXISTS links (
            id TEXT NOT NULL,
            user_uuid TEXT NOT NULL REFERENCES users(uuid) ON DELETE CASCADE,
            url TEXT NOT NULL,
            title TEXT NOT NULL DEFAULT '',
            favicon TEXT NOT NULL DEFAULT '',
            created_at INTEGER NOT NULL,
            sort_order INTEGER NOT NULL,
            PRIMARY KEY (user_uuid, id)
        );
        CREATE INDEX IF NOT EXISTS idx_links_user_order ON links(user_uuid, sort_order);

        CREATE TABLE IF NOT EXISTS user_blobs (
            uuid TEXT PRIMARY KEY,
            data_json TEXT NOT NULL,
            updated_at INTEGER NOT NULL
        );
        """
    )
    conn.commit()
