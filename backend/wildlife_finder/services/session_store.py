import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterator, Optional, Protocol

from pydantic import ValidationError

from wildlife_finder.models import Session

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    backend: str

    def get(self, session_id: str) -> Optional[Session]: ...

    def set(self, session_id: str, session: Session) -> None: ...

    def lock(self, session_id: str) -> Any: ...


class KeyedLocks:
    """One lock per session id; a turn holds its session's lock end to end.

    A lock lives only while some turn holds or waits on it.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: Dict[str, Lock] = {}
        self._holders: Dict[str, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, Lock())
            self._holders[key] = self._holders.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._holders[key] -= 1
                if not self._holders[key]:
                    del self._holders[key]
                    del self._locks[key]


class InMemorySessionStore:
    backend = "memory"

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._guard = Lock()
        self._locks = KeyedLocks()

    def get(self, session_id: str) -> Optional[Session]:
        with self._guard:
            session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    def set(self, session_id: str, session: Session) -> None:
        with self._guard:
            self._sessions[session_id] = session.model_copy(deep=True)

    def lock(self, session_id: str):
        return self._locks.hold(session_id)


class SqliteSessionStore:
    backend = "sqlite"

    def __init__(self, db_path: str) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()
        self._locks = KeyedLocks()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS conversation_sessions (
                        session_id TEXT PRIMARY KEY,
                        state_json TEXT NOT NULL DEFAULT '{}',
                        updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                    )
                    """
                )
                conn.commit()

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT state_json FROM conversation_sessions WHERE session_id = ?",
                    (session_id,),
                ).fetchone()

        if not row:
            return None
        state = self._safe_json_object(row["state_json"])
        if not state:
            return None
        state["id"] = session_id
        try:
            return Session.model_validate(state)
        except ValidationError:
            logger.warning("Discarding unreadable state for session %s", session_id)
            return None

    def set(self, session_id: str, session: Session) -> None:
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO conversation_sessions (session_id, state_json, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(session_id) DO UPDATE SET
                        state_json = excluded.state_json,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (session_id, session.model_dump_json()),
                )
                conn.commit()

    def lock(self, session_id: str):
        return self._locks.hold(session_id)

    def _safe_json_object(self, raw_value: Any) -> Dict[str, Any]:
        if raw_value in (None, ""):
            return {}
        if isinstance(raw_value, dict):
            return raw_value
        if not isinstance(raw_value, str):
            return {}
        try:
            parsed = json.loads(raw_value)
        except json.JSONDecodeError:
            return {}
        return parsed if isinstance(parsed, dict) else {}


def build_session_store(db_path: str = "") -> SessionStore:
    if db_path:
        return SqliteSessionStore(db_path=db_path)
    return InMemorySessionStore()
