"""Key-value persistence for learned cycle patterns and fallback profiles."""

import json
import logging
import sqlite3
import threading
import time
from typing import Dict, List, Optional

from .models import IntersectionCycleProfile, SignalCyclePattern

logger = logging.getLogger(__name__)


class MemoryKeyValueStore:
    """Process-local key-value store."""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return [k for k in self._data if k.startswith(prefix)]

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


class SQLiteKeyValueStore:
    """Key-value store backed by a single SQLite table."""

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store(
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at INTEGER NOT NULL DEFAULT 0
            )
            """
        )
        self._conn.commit()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            row = self._conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO kv_store(key, value, updated_at) VALUES (?, ?, ?)",
                (key, value, int(time.time())),
            )
            self._conn.commit()

    def keys(self, prefix: str = "") -> List[str]:
        # Escape LIKE wildcards so the prefix is matched literally
        pattern = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
        with self._lock:
            rows = self._conn.execute(
                "SELECT key FROM kv_store WHERE key LIKE ? ESCAPE '\\'", (pattern,)
            ).fetchall()
        return [row[0] for row in rows]

    def retention_cleanup(self, retention_days: int) -> int:
        """Delete entries not updated in `retention_days`. Returns the number removed."""
        cutoff = int(time.time()) - (retention_days * 86400)
        with self._lock:
            try:
                cur = self._conn.execute(
                    "DELETE FROM kv_store WHERE updated_at > 0 AND updated_at < ?", (cutoff,)
                )
                self._conn.commit()
                return max(cur.rowcount, 0)
            except sqlite3.Error as e:
                logger.warning(f"Retention cleanup failed: {e}")
                return 0

    def close(self) -> None:
        with self._lock:
            self._conn.close()


class SignalPhaseStorage:
    """
    Persists SignalCyclePattern objects under a key prefix.

    Persistence is best effort: failures are logged and swallowed so the
    in-memory pattern stays authoritative.
    """

    KEY_PREFIX = "signal-phase-"

    def __init__(self, store=None):
        self.store = store if store is not None else MemoryKeyValueStore()

    def save(self, pattern: SignalCyclePattern) -> None:
        try:
            self.store.set(self.KEY_PREFIX + pattern.node_id, json.dumps(pattern.to_dict()))
        except Exception as e:
            logger.warning(f"Failed to save pattern for {pattern.node_id}: {e}")

    def load(self, node_id: str) -> Optional[SignalCyclePattern]:
        try:
            raw = self.store.get(self.KEY_PREFIX + node_id)
            if raw is None:
                return None
            return SignalCyclePattern.from_dict(json.loads(raw))
        except Exception as e:
            logger.warning(f"Failed to load pattern for {node_id}: {e}")
            return None

    def load_all(self) -> Dict[str, SignalCyclePattern]:
        patterns: Dict[str, SignalCyclePattern] = {}
        try:
            keys = self.store.keys(self.KEY_PREFIX)
        except Exception as e:
            logger.warning(f"Failed to enumerate stored patterns: {e}")
            return patterns

        for key in keys:
            try:
                raw = self.store.get(key)
                if raw is None:
                    continue
                pattern = SignalCyclePattern.from_dict(json.loads(raw))
            except Exception as e:
                logger.warning(f"Skipping unreadable pattern {key}: {e}")
                continue
            patterns[pattern.node_id] = pattern

        logger.debug(f"Loaded {len(patterns)} stored cycle patterns")
        return patterns


class CycleProfileStore:
    """Persists IntersectionCycleProfile objects for the fallback simulator."""

    KEY_PREFIX = "cycle-profile-"

    def __init__(self, store=None):
        self.store = store if store is not None else MemoryKeyValueStore()

    def profile(self, intersection_id: str) -> Optional[IntersectionCycleProfile]:
        try:
            raw = self.store.get(self.KEY_PREFIX + intersection_id)
            if raw is None:
                return None
            return IntersectionCycleProfile.from_dict(json.loads(raw))
        except Exception as e:
            logger.warning(f"Failed to load cycle profile {intersection_id}: {e}")
            return None

    def upsert(self, profile: IntersectionCycleProfile) -> None:
        try:
            self.store.set(self.KEY_PREFIX + profile.intersection_id, json.dumps(profile.to_dict()))
        except Exception as e:
            logger.warning(f"Failed to save cycle profile {profile.intersection_id}: {e}")
