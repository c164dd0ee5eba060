"""
Local key-value storage for Farsi Hub.
"""
import json
import sqlite3
from pathlib import Path
from typing import Any, Optional, Union

DEFAULT_DB = Path("data") / "farsihub.db"


class KeyValueStore:
    """
    JSON values stored under string keys in a single SQLite table. Each value
    is read and written whole.
    """
    def __init__(self, path: Union[str, Path] = DEFAULT_DB):
        self.path = Path(path)
        self._init_dir()
        self._init_db()

    def _init_dir(self):
        """Initialize the database directory."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _init_db(self):
        """Initialize the SQLite table."""
        with sqlite3.connect(self.path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
            """)

    def get_raw(self, key: str) -> Optional[str]:
        """
        Get the stored text for a key.

        Args:
            key: Key to look up

        Returns:
            The stored string, or None if the key is absent
        """
        with sqlite3.connect(self.path) as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get and decode a JSON value.

        Raises:
            json.JSONDecodeError: If the stored text is not JSON
        """
        raw = self.get_raw(key)
        if raw is None:
            return default
        return json.loads(raw)

    def set_raw(self, key: str, value: str) -> None:
        with sqlite3.connect(self.path) as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO kv (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                """,
                (key, value)
            )

    def set(self, key: str, value: Any) -> None:
        """
        Encode a value as JSON and store it, replacing any previous value.

        Args:
            key: Key to write
            value: JSON-serializable value
        """
        self.set_raw(key, json.dumps(value, ensure_ascii=False))

    def delete(self, key: str) -> None:
        with sqlite3.connect(self.path) as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
