import pytest
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from grownet.authorization import Role
from grownet.config import settings
from grownet.database import Base, build_engine
from grownet.dependencies import create_access_token, get_db, release_outbox
from grownet.main import app
from grownet.models.connection import Connection, ConnectionStatus
from grownet.models.user import User
from grownet.services.connections import ConnectionMatchEngine
from grownet.services.conversations import ConversationStore
from grownet.services.directory import UserDirectory
from grownet.services.notifications import NotificationSink

test_engine = build_engine(settings.test_database_url)
TestSession = sessionmaker(bind=test_engine)


class RecordingPush:
    """Stands in for the presence registry and remembers every push."""

    def __init__(self):
        self.events = []

    def emit_to_user(self, user_id, event, payload):
        self.events.append((user_id, event, payload))

    def events_for(self, user_id):
        return [(event, payload) for uid, event, payload in self.events if uid == user_id]


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db():
    connection = test_engine.connect()
    transaction = connection.begin()
    session = TestSession(bind=connection)
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def client(db):
    def override_get_db():
        try:
            yield db
        except Exception:
            release_outbox(db, committed=False)
            raise
        else:
            release_outbox(db, committed=True)

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def admin_user(db):
    user = User(email="admin@test.com", name="Admin", role=Role.ADMIN, password_hash="x")
    user.set_password("admin123")
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def mentor_user(db):
    user = User(email="mentor@test.com", name="Mentor", role=Role.MENTOR, password_hash="x")
    user.set_password("mentor123")
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def mentee_user(db):
    user = User(email="mentee@test.com", name="Mentee", role=Role.MENTEE, password_hash="x")
    user.set_password("mentee123")
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def admin_token(admin_user):
    return create_access_token(admin_user)


@pytest.fixture
def mentor_token(mentor_user):
    return create_access_token(mentor_user)


@pytest.fixture
def mentee_token(mentee_user):
    return create_access_token(mentee_user)


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def mentor_headers(mentor_token):
    return {"Authorization": f"Bearer {mentor_token}"}


@pytest.fixture
def mentee_headers(mentee_token):
    return {"Authorization": f"Bearer {mentee_token}"}


@pytest.fixture
def pending_request(db, mentor_user, mentee_user):
    """A request from the mentor waiting on the mentee."""
    conn = Connection(
        requester_id=mentor_user.id,
        receiver_id=mentee_user.id,
    )
    db.add(conn)
    db.flush()
    return conn


@pytest.fixture
def connection(db, mentor_user, mentee_user):
    conn = Connection(
        requester_id=mentor_user.id,
        receiver_id=mentee_user.id,
        status=ConnectionStatus.ACCEPTED,
    )
    db.add(conn)
    db.flush()
    return conn


@pytest.fixture
def push():
    return RecordingPush()


@pytest.fixture
def match_engine(db, push):
    return ConnectionMatchEngine(
        db,
        users=UserDirectory(db),
        conversations=ConversationStore(db),
        notifications=NotificationSink(db, push=push),
        push=push,
    )
