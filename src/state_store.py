import json
import os
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Optional

from cashback_models import ConversationState


def _get_db_path() -> str:
    """Путь к БД читается каждый раз, чтобы тесты могли подменить его через monkeypatch."""
    return os.getenv("ADVISOR_STATE_DB", "advisor_state.db")


@contextmanager
def _conn(path: Optional[str] = None):
    con = sqlite3.connect(path or _get_db_path())
    con.execute("PRAGMA journal_mode=WAL;")
    try:
        yield con
        con.commit()
    finally:
        con.close()


def init_db(path: Optional[str] = None):
    with _conn(path) as con:
        con.execute(
            """
            CREATE TABLE IF NOT EXISTS conversations (
              user_id TEXT PRIMARY KEY,
              state_json TEXT,
              updated_at TEXT
            );
            """
        )


class _TurnQueue:
    """Очередь ходов одного пользователя: номерки выдаются по приходу и обслуживаются по порядку."""

    def __init__(self):
        self._cond = threading.Condition()
        self._next_ticket = 0
        self._serving = 0

    def take_ticket(self) -> int:
        with self._cond:
            ticket = self._next_ticket
            self._next_ticket += 1
            return ticket

    def wait_turn(self, ticket: int):
        with self._cond:
            while self._serving != ticket:
                self._cond.wait()

    def finish_turn(self):
        with self._cond:
            self._serving += 1
            self._cond.notify_all()

    @property
    def pending(self) -> int:
        """Сколько ходов выполняется или ждёт."""
        with self._cond:
            return self._next_ticket - self._serving


class ConversationStore:
    """
    Таблица состояний диалогов в памяти.

    Ходы одного пользователя выполняются строго по очереди в порядке прихода,
    разные пользователи не блокируют друг друга. Очередь пользователя живёт,
    пока в ней есть ходы, поэтому реестр не растёт с числом пользователей.
    Общий замок держится только на время выдачи номерка и удаления пустой очереди.
    """

    def __init__(self):
        self._states: Dict[str, Dict] = {}
        self._queues: Dict[str, _TurnQueue] = {}
        self._registry_lock = threading.Lock()

    @contextmanager
    def session(self, user_id):
        key = str(user_id)
        with self._registry_lock:
            queue = self._queues.get(key)
            if queue is None:
                queue = _TurnQueue()
                self._queues[key] = queue
            ticket = queue.take_ticket()
        queue.wait_turn(ticket)
        try:
            yield
        finally:
            with self._registry_lock:
                queue.finish_turn()
                if queue.pending == 0:
                    del self._queues[key]

    def pending_turns(self, user_id) -> int:
        with self._registry_lock:
            queue = self._queues.get(str(user_id))
            return queue.pending if queue else 0

    # хранится сериализованная копия: изменения вступают в силу только после set()
    def get(self, user_id) -> Optional[ConversationState]:
        data = self._states.get(str(user_id))
        return ConversationState.from_dict(data) if data else None

    def set(self, user_id, state: ConversationState):
        self._states[str(user_id)] = state.to_dict()

    def clear(self, user_id):
        self._states.pop(str(user_id), None)


class SQLiteConversationStore(ConversationStore):
    """Состояния диалогов в SQLite, переживают перезапуск процесса."""

    def __init__(self, db_path: Optional[str] = None):
        super().__init__()
        self.db_path = db_path or _get_db_path()
        init_db(self.db_path)

    def get(self, user_id) -> Optional[ConversationState]:
        with _conn(self.db_path) as con:
            cur = con.execute("SELECT state_json FROM conversations WHERE user_id=?", (str(user_id),))
            row = cur.fetchone()
        if not row:
            return None
        return ConversationState.from_dict(json.loads(row[0]))

    def set(self, user_id, state: ConversationState):
        with _conn(self.db_path) as con:
            con.execute(
                "INSERT OR REPLACE INTO conversations(user_id, state_json, updated_at) VALUES (?,?,?)",
                (str(user_id), json.dumps(state.to_dict(), ensure_ascii=False), datetime.now(timezone.utc).isoformat()),
            )

    def clear(self, user_id):
        with _conn(self.db_path) as con:
            con.execute("DELETE FROM conversations WHERE user_id=?", (str(user_id),))


def create_store(cfg: dict) -> ConversationStore:
    state_cfg = cfg.get("state", {})
    if state_cfg.get("backend") == "sqlite":
        return SQLiteConversationStore(state_cfg.get("db_path"))
    return ConversationStore()
