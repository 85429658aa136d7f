import os
import sys
import threading
import time
from datetime import date

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

from cashback_models import ConversationState, IdentifierField, MatchResult, ParsedRecord, Phase
from state_store import ConversationStore, SQLiteConversationStore, create_store


def _confirmation_state():
    return ConversationState(
        phase=Phase.AWAITING_CONFIRMATION,
        pending_record=ParsedRecord("Сбер", "Аптки", 3.0, 1000.0, date(2025, 2, 28)),
        corrections={"category": MatchResult("Аптеки", 83.3, 1)},
        group_name="Семья",
    )


def test_memory_store_roundtrip():
    store = ConversationStore()
    assert store.get("u1") is None

    store.set("u1", _confirmation_state())
    state = store.get("u1")
    assert state.phase == Phase.AWAITING_CONFIRMATION
    assert state.pending_record.category == "Аптки"
    assert state.corrections["category"].candidate == "Аптеки"

    store.clear("u1")
    assert store.get("u1") is None


def test_memory_store_returns_copies():
    store = ConversationStore()
    store.set("u1", _confirmation_state())

    state = store.get("u1")
    state.phase = Phase.AWAITING_MANUAL_INPUT
    assert store.get("u1").phase == Phase.AWAITING_CONFIRMATION


def test_sqlite_store_survives_restart(tmp_path, monkeypatch):
    db = tmp_path / "state.db"
    monkeypatch.setenv("ADVISOR_STATE_DB", str(db))

    store = SQLiteConversationStore()
    store.set(42, ConversationState(phase=Phase.AWAITING_IDENTIFIER_INPUT, input_field=IdentifierField.BANK_NAME, page_cursor=2))
    store.set("u2", _confirmation_state())

    reopened = SQLiteConversationStore(str(db))
    state = reopened.get("42")
    assert state.input_field == IdentifierField.BANK_NAME
    assert state.page_cursor == 2
    assert reopened.get("u2").pending_record.expiry == date(2025, 2, 28)

    reopened.clear("42")
    assert store.get(42) is None


def test_create_store_by_config(tmp_path):
    assert type(create_store({"state": {"backend": "memory"}})) is ConversationStore
    store = create_store({"state": {"backend": "sqlite", "db_path": str(tmp_path / "s.db")}})
    assert isinstance(store, SQLiteConversationStore)


def _wait_until(predicate, timeout=5):
    deadline = time.time() + timeout
    while not predicate() and time.time() < deadline:
        time.sleep(0.01)
    return predicate()


def test_sessions_of_other_users_do_not_block():
    store = ConversationStore()
    with store.session("u1"):
        with store.session("u2"):
            assert store.pending_turns("u1") == 1
            assert store.pending_turns("u2") == 1


def test_finished_sessions_leave_no_queues():
    store = ConversationStore()
    for i in range(50):
        with store.session(f"user-{i}"):
            pass
    with store.session(7):
        assert store.pending_turns("7") == 1

    assert store._queues == {}
    assert store.pending_turns("user-0") == 0


def test_queue_survives_while_turns_wait():
    store = ConversationStore()
    done = threading.Event()

    def waiter():
        with store.session("u1"):
            done.set()

    with store.session("u1"):
        t = threading.Thread(target=waiter)
        t.start()
        assert _wait_until(lambda: store.pending_turns("u1") == 2)
    t.join(timeout=5)

    assert done.is_set()
    assert store._queues == {}


def test_waiting_turns_run_in_arrival_order():
    store = ConversationStore()
    order = []

    def turn(n):
        with store.session("u1"):
            order.append(n)

    threads = []
    with store.session("u1"):
        for n in range(5):
            t = threading.Thread(target=turn, args=(n,))
            t.start()
            threads.append(t)
            assert _wait_until(lambda: store.pending_turns("u1") == n + 2)
    for t in threads:
        t.join(timeout=5)

    assert order == [0, 1, 2, 3, 4]


def test_session_serializes_turns_of_one_user():
    store = ConversationStore()
    order = []
    first_inside = threading.Event()
    release_first = threading.Event()

    def first():
        with store.session("u1"):
            order.append("first-start")
            first_inside.set()
            release_first.wait(timeout=5)
            order.append("first-end")

    def second():
        first_inside.wait(timeout=5)
        with store.session("u1"):
            order.append("second")

    t1 = threading.Thread(target=first)
    t2 = threading.Thread(target=second)
    t1.start()
    t2.start()

    first_inside.wait(timeout=5)
    time.sleep(0.05)
    assert order == ["first-start"]

    release_first.set()
    t1.join(timeout=5)
    t2.join(timeout=5)
    assert order == ["first-start", "first-end", "second"]
