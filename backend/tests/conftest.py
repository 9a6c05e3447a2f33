import os
import tempfile
from decimal import Decimal

# Settings are read once at import time, so the test environment must be in
# place before any payment_ledger module is imported.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_INIT_MODE", "off")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-the-ledger-test-suite")
os.environ.setdefault("ARGON2_TIME_COST", "1")
os.environ.setdefault("ARGON2_MEMORY_COST", "1024")
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "payment-ledger-tests.log"))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from payment_ledger.core.database import Base
from payment_ledger.core.security import PasswordHasher, TokenIssuer
from payment_ledger.models.user import User
from payment_ledger.services.auth_service import Authenticator

TEST_SECRET = "unit-test-secret-0123456789abcdef"
STRONG_PASSWORD = "Sup3r$ecret"


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def token_issuer():
    return TokenIssuer(secret_key=TEST_SECRET)


@pytest.fixture
def password_hasher():
    return PasswordHasher(time_cost=1, memory_cost=1024, parallelism=1)


@pytest.fixture
def authenticator(token_issuer, password_hasher):
    return Authenticator(token_issuer=token_issuer, password_hasher=password_hasher)


@pytest.fixture
def make_user(db):
    """Insert a user directly, bypassing registration"""

    def _make(email: str, balance: str = "0") -> User:
        user = User(email=email, password_hash="not-a-real-hash", balance=Decimal(balance))
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make
