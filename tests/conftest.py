import os
from datetime import timedelta

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('BCRYPT_ROUNDS', '4')

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from pathfinder.auth.dependencies import get_abuse_guard, get_auth_orchestrator, get_phase_machine  # noqa: E402
from pathfinder.core.clock import utcnow  # noqa: E402
from pathfinder.database import Base  # noqa: E402
from pathfinder.main import app  # noqa: E402
from pathfinder.models.unlock_event import UnlockEvent  # noqa: E402
from pathfinder.models.user import User  # noqa: E402
from pathfinder.models.verification import VerificationRecord  # noqa: E402
from pathfinder.services.abuse_guard import AbuseGuard, InMemoryCounterStore  # noqa: E402
from pathfinder.services.auth_orchestrator import AuthOrchestrator  # noqa: E402
from pathfinder.services.credential_store import CredentialStore  # noqa: E402
from pathfinder.services.phase_unlock import PhaseUnlockMachine  # noqa: E402
from pathfinder.services.token_service import TokenService  # noqa: E402
from pathfinder.services.verification_ledger import VerificationLedger  # noqa: E402

EMAIL = 'jdoe@students.bowiestate.edu'
PASSWORD = 'correct-horse'

TABLES = [User.__table__, VerificationRecord.__table__, UnlockEvent.__table__]


class FakeClock:
    def __init__(self, start=None) -> None:
        self.now = start or utcnow()

    def __call__(self):
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingMailer:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def send(self, email: str, code: str) -> None:
        self.sent.append((email, code))

    def last_code_for(self, email: str) -> str:
        return [code for sent_to, code in self.sent if sent_to == email][-1]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=TABLES)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))
        engine.dispose()


@pytest.fixture
def store(session_factory, clock):
    return CredentialStore(session_factory, clock=clock)


@pytest.fixture
def ledger(session_factory, clock):
    return VerificationLedger(session_factory, clock=clock)


@pytest.fixture
def guard(clock):
    return AbuseGuard(InMemoryCounterStore(clock=clock))


@pytest.fixture
def tokens(store):
    # Real clock: PyJWT rejects tokens whose iat lies in the future.
    return TokenService(store)


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def orchestrator(store, ledger, tokens, guard, mailer):
    return AuthOrchestrator(store=store, ledger=ledger, tokens=tokens, guard=guard, mailer=mailer)


@pytest.fixture
def machine(store, session_factory, clock):
    return PhaseUnlockMachine(store, session_factory, clock=clock)


@pytest.fixture
def client(orchestrator, guard, machine):
    app.dependency_overrides[get_auth_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_abuse_guard] = lambda: guard
    app.dependency_overrides[get_phase_machine] = lambda: machine
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def register_user(client, mailer):
    def register(email: str = EMAIL, password: str = PASSWORD):
        client.post('/auth/send-verification', json={'email': email})
        code = mailer.last_code_for(email)
        client.post('/auth/verify-code', json={'email': email, 'code': code})
        return client.post(
            '/auth/register',
            json={
                'email': email,
                'password': password,
                'firstName': 'Jane',
                'lastName': 'Doe',
                'studentId': 'BSU123',
                'verificationCode': code,
            },
        )

    return register


@pytest.fixture
def auth_headers(client, register_user):
    register_user()
    response = client.post('/auth/login', json={'email': EMAIL, 'password': PASSWORD})
    return {'Authorization': f"Bearer {response.json()['accessToken']}"}
