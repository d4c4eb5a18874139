"""Shared fixtures for API tests.

The API is exercised without its lifespan, so no database is opened. The
authenticated user and the managers are swapped in through FastAPI
dependency overrides.
"""

from decimal import Decimal

import anyio.from_thread
import pytest
from fastapi.testclient import TestClient

from api import app
from api.messages import get_message_manager
from api.notifications import get_notification_manager
from api.verification import get_verification_manager
from api.withdrawals import get_withdrawal_manager
from auth import get_current_user
from auth.models import CurrentUser, UserRole
from tests.fakes import (
    FakeMessageManager, FakeNotificationManager, FakeVerificationManager,
    FakeWithdrawalManager
)

CLIENT = CurrentUser(id=1, username="client1", role=UserRole.CLIENT)
FREELANCER = CurrentUser(id=2, username="freelancer1", role=UserRole.FREELANCER)
ADMIN = CurrentUser(id=3, username="admin", role=UserRole.ADMIN)
USERS = [CLIENT, FREELANCER, ADMIN]

class Session:
    """Holds the user the next request is made as."""
    def __init__(self):
        self.user = CLIENT

    def login(self, user: CurrentUser):
        self.user = user

@pytest.fixture
def session():
    session = Session()
    app.dependency_overrides[get_current_user] = lambda: session.user
    yield session
    app.dependency_overrides.clear()

@pytest.fixture
def client(session):
    # One shared event loop for every request and socket, so a push from one
    # connection's handler to another socket stays on the same loop.
    test_client = TestClient(app)
    with anyio.from_thread.start_blocking_portal() as portal:
        test_client.portal = portal
        yield test_client

@pytest.fixture
def message_manager(tmp_path):
    manager = FakeMessageManager(USERS, upload_dir=str(tmp_path), max_bytes=1024)
    app.dependency_overrides[get_message_manager] = lambda: manager
    yield manager
    app.dependency_overrides.pop(get_message_manager, None)

@pytest.fixture
def verification_manager():
    manager = FakeVerificationManager()
    app.dependency_overrides[get_verification_manager] = lambda: manager
    yield manager
    app.dependency_overrides.pop(get_verification_manager, None)

@pytest.fixture
def notification_manager():
    manager = FakeNotificationManager(user.id for user in USERS)
    app.dependency_overrides[get_notification_manager] = lambda: manager
    yield manager
    app.dependency_overrides.pop(get_notification_manager, None)

def withdrawal_manager(earned: str, pending: str = "0") -> FakeWithdrawalManager:
    """Install a withdrawal manager for FREELANCER; cleared with the session."""
    manager = FakeWithdrawalManager(FREELANCER.id, Decimal(earned), Decimal(pending))
    app.dependency_overrides[get_withdrawal_manager] = lambda: manager
    return manager
