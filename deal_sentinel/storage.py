"""
Persistence layer for DealSentinel.

Three interchangeable key-value stores sit behind the same ``get``/``set``
interface:

* `MemoryStore` – a dict, used by tests and ``STORE_BACKEND=memory``.
* `JsonFileStore` – one JSON document on disk, replaced atomically on write.
* `SqliteStore` – a single ``kv`` table in ``data/deal_sentinel.sqlite``.

`TrackedGameRepository` keeps the whole tracked-game collection under one key
(``tracked_games``) as a mapping of game id to record.  `AlertLog` appends
every price-drop alert to ``data/alerts.csv``.
"""
from __future__ import annotations

import copy
import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import pandas as pd

from .config import cfg
from .models import PriceAlert, TrackedGame
from .util import ensure_data_dir, load_json, now_ts, rolling_csv_append, save_json

logger = logging.getLogger(__name__)

TRACKED_KEY = "tracked_games"


class MemoryStore:
    """In-process store; values are deep-copied in and out."""

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}

    def get(self, key: str) -> Any:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)


class JsonFileStore:
    """All keys live in one JSON object; each write replaces the file."""

    def __init__(self, path: str) -> None:
        self.path = path

    def get(self, key: str) -> Any:
        return load_json(self.path, {}).get(key)

    def set(self, key: str, value: Any) -> None:
        data = load_json(self.path, {})
        data[key] = value
        save_json(self.path, data)


SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key    TEXT PRIMARY KEY,
    value  TEXT NOT NULL
);
"""


class SqliteStore:
    """Values are stored as JSON text in a single ``kv`` table."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
        with self._connection() as conn:
            conn.executescript(SCHEMA)
            conn.commit()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
        finally:
            conn.close()

    def get(self, key: str) -> Any:
        with self._connection() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return json.loads(row[0]) if row else None

    def set(self, key: str, value: Any) -> None:
        with self._connection() as conn:
            conn.execute("REPLACE INTO kv (key, value) VALUES (?, ?)", (key, json.dumps(value)))
            conn.commit()


def make_store(backend: Optional[str] = None, data_dir: Optional[str] = None):
    """Build the store named by ``STORE_BACKEND`` (json, sqlite or memory)."""
    backend = (backend or cfg.store_backend).lower()
    folder = data_dir or ensure_data_dir()
    if backend == "memory":
        return MemoryStore()
    if backend == "sqlite":
        return SqliteStore(os.path.join(folder, "deal_sentinel.sqlite"))
    if backend == "json":
        return JsonFileStore(os.path.join(folder, "store.json"))
    raise ValueError(f"unknown STORE_BACKEND: {backend!r}")


class TrackedGameRepository:
    """Load and save the whole tracked-game collection as one value."""

    def __init__(self, store, key: str = TRACKED_KEY) -> None:
        self.store = store
        self.key = key

    def exists(self) -> bool:
        return self.store.get(self.key) is not None

    def load(self) -> Dict[str, TrackedGame]:
        raw = self.store.get(self.key) or {}
        games: Dict[str, TrackedGame] = {}
        for game_id, record in raw.items():
            try:
                games[game_id] = TrackedGame.from_dict(record)
            except (KeyError, TypeError, ValueError):
                logger.warning("Dropping unreadable tracked record %r", game_id)
        return games

    def save(self, games: Dict[str, TrackedGame]) -> None:
        self.store.set(self.key, {game_id: g.to_dict() for game_id, g in games.items()})


class AlertLog:
    """Append-only CSV of price-drop alerts."""

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path or os.path.join(ensure_data_dir(), "alerts.csv")

    def record(self, alert: PriceAlert, ts: Optional[str] = None) -> None:
        rolling_csv_append(self.path, {
            "ts": ts or now_ts(),
            "game_id": alert.game_id,
            "title": alert.title,
            "old_price": f"{alert.old_price:.2f}",
            "new_price": f"{alert.new_price:.2f}",
            "target_price": f"{alert.target_price:.2f}",
        })

    def tail(self, n: int = 20) -> pd.DataFrame:
        if not os.path.exists(self.path):
            return pd.DataFrame()
        return pd.read_csv(self.path, dtype={"game_id": str}).tail(n)

    def recent(self, n: int = 20) -> List[Dict[str, Any]]:
        return self.tail(n).to_dict(orient="records")
