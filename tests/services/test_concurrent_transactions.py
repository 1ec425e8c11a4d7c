import threading

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from grownet.authorization import Role
from grownet.database import Base, build_engine
from grownet.exceptions import NotFound
from grownet.models.connection import Connection, ConnectionStatus
from grownet.models.conversation import Conversation
from grownet.models.notification import Notification
from grownet.models.user import User
from grownet.services.connections import ConnectionMatchEngine
from grownet.services.conversations import ConversationStore
from grownet.services.directory import UserDirectory
from grownet.services.notifications import NotificationSink


@pytest.fixture
def file_sessions(tmp_path):
    """Sessions on a file database so each thread gets its own connection."""
    file_engine = build_engine(f"sqlite:///{tmp_path}/grownet.db")
    Base.metadata.create_all(bind=file_engine)
    yield sessionmaker(bind=file_engine)
    file_engine.dispose()


@pytest.fixture
def pair(file_sessions):
    with file_sessions() as db:
        mentor = User(email="mentor@test.com", name="Mentor", role=Role.MENTOR, password_hash="x")
        mentee = User(email="mentee@test.com", name="Mentee", role=Role.MENTEE, password_hash="x")
        db.add_all([mentor, mentee])
        db.commit()
        return mentor.id, mentee.id


def _engine_for(db):
    return ConnectionMatchEngine(
        db,
        users=UserDirectory(db),
        conversations=ConversationStore(db),
        notifications=NotificationSink(db),
    )


def _run_together(session_factory, *calls):
    """Run each call in its own thread and session, released at the same moment.

    Each call receives an engine and its return value is recorded. The
    session commits after a successful call, as ``get_db`` does.
    """
    barrier = threading.Barrier(len(calls))
    outcomes = [None] * len(calls)

    def worker(index, call):
        db = session_factory()
        try:
            engine = _engine_for(db)
            barrier.wait()
            value = call(engine)
            db.commit()
            outcomes[index] = ("ok", value)
        except Exception as exc:
            db.rollback()
            outcomes[index] = ("error", exc)
        finally:
            db.close()

    threads = [
        threading.Thread(target=worker, args=(index, call))
        for index, call in enumerate(calls)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return outcomes


def _count(session_factory, model, *criteria):
    with session_factory() as db:
        return db.execute(
            select(func.count()).select_from(model).where(*criteria)
        ).scalar_one()


def test_reciprocal_requests_at_once_match_exactly_once(file_sessions, pair):
    mentor_id, mentee_id = pair

    outcomes = _run_together(
        file_sessions,
        lambda engine: engine.send_request(mentor_id, mentee_id).matched,
        lambda engine: engine.send_request(mentee_id, mentor_id).matched,
    )

    assert all(kind == "ok" for kind, _ in outcomes), outcomes
    assert sorted(matched for _, matched in outcomes) == [False, True]
    assert _count(file_sessions, Connection) == 1
    assert _count(file_sessions, Connection, Connection.status == ConnectionStatus.ACCEPTED) == 1
    assert _count(file_sessions, Conversation) == 1


def test_same_direction_requests_at_once_leave_one_pending(file_sessions, pair):
    mentor_id, mentee_id = pair

    outcomes = _run_together(
        file_sessions,
        lambda engine: engine.send_request(mentor_id, mentee_id).matched,
        lambda engine: engine.send_request(mentor_id, mentee_id).matched,
    )

    kinds = sorted(kind for kind, _ in outcomes)
    assert kinds == ["error", "ok"], outcomes
    assert _count(file_sessions, Connection, Connection.status == ConnectionStatus.PENDING) == 1
    assert _count(file_sessions, Conversation) == 0


def _seed_pending(session_factory, requester_id, receiver_id):
    with session_factory() as db:
        connection = Connection(requester_id=requester_id, receiver_id=receiver_id)
        db.add(connection)
        db.commit()
        return connection.id


def test_accept_and_reject_at_once(file_sessions, pair):
    mentor_id, mentee_id = pair
    connection_id = _seed_pending(file_sessions, mentor_id, mentee_id)

    outcomes = _run_together(
        file_sessions,
        lambda engine: engine.accept_request(mentee_id, connection_id).matched,
        lambda engine: engine.reject_request(mentee_id, connection_id),
    )

    succeeded = [value for kind, value in outcomes if kind == "ok"]
    failed = [value for kind, value in outcomes if kind == "error"]
    assert len(succeeded) == 1, outcomes
    assert len(failed) == 1 and isinstance(failed[0], NotFound), outcomes


def test_double_accept_notifies_once(file_sessions, pair):
    mentor_id, mentee_id = pair
    connection_id = _seed_pending(file_sessions, mentor_id, mentee_id)

    outcomes = _run_together(
        file_sessions,
        lambda engine: engine.accept_request(mentee_id, connection_id).matched,
        lambda engine: engine.accept_request(mentee_id, connection_id).matched,
    )

    assert sorted(kind for kind, _ in outcomes) == ["error", "ok"], outcomes
    assert _count(file_sessions, Notification, Notification.user_id == mentor_id) == 1
    assert _count(file_sessions, Conversation) == 1
