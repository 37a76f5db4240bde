"""
Key/value settings table shared by the dashboard and the console scripts.

Values are TEXT; structured values go through get_json/set_json.
"""

import json
import sqlite3
from pathlib import Path
from typing import Any

SETTINGS_TABLE = "app_config"


def connect(db_path: str | Path) -> sqlite3.Connection:
    db_file = Path(db_path).expanduser().resolve()
    db_file.parent.mkdir(parents=True, exist_ok=True)
    # Streamlit may close the connection from another script thread
    conn = sqlite3.connect(db_file, check_same_thread=False)
    for pragma in ("journal_mode=WAL", "synchronous=NORMAL", "busy_timeout=5000"):
        conn.execute(f"PRAGMA {pragma};")
    conn.execute(
        f"CREATE TABLE IF NOT EXISTS {SETTINGS_TABLE} (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
    )
    return conn


def get_config(conn: sqlite3.Connection, key: str) -> str | None:
    row = conn.execute(f"SELECT value FROM {SETTINGS_TABLE} WHERE key = ?", (key,)).fetchone()
    return None if row is None else row[0]


def set_config(conn: sqlite3.Connection, key: str, value: Any) -> None:
    with conn:
        conn.execute(
            f"INSERT INTO {SETTINGS_TABLE} (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, str(value)),
        )


def delete_config(conn: sqlite3.Connection, *keys: str) -> None:
    if keys:
        with conn:
            conn.executemany(f"DELETE FROM {SETTINGS_TABLE} WHERE key = ?", [(k,) for k in keys])


def get_json(conn: sqlite3.Connection, key: str) -> Any | None:
    """Decoded value, or None when the key is unset or holds malformed JSON."""
    raw = get_config(conn, key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return None


def set_json(conn: sqlite3.Connection, key: str, value: Any) -> None:
    set_config(conn, key, json.dumps(value, separators=(",", ":"), sort_keys=True))


def list_keys(conn: sqlite3.Connection, prefix: str = "") -> list[str]:
    rows = conn.execute(
        f"SELECT key FROM {SETTINGS_TABLE} WHERE key LIKE ? ORDER BY key", (prefix + "%",)
    ).fetchall()
    return [key for (key,) in rows]
