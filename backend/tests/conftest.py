import os

os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ.setdefault("JWT_ACCESS_TTL_MINUTES", "30")
os.environ.setdefault("AUTH_LOGIN_MAX_ATTEMPTS", "5")
os.environ.setdefault("AUTH_LOGIN_LOCKOUT_MINUTES", "15")
os.environ.setdefault("API_AUTH_FAILURE_MIN_MS", "0")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.db import Base
from app.modules.auth import models as auth_models  # noqa: F401
from app.modules.auth.models import User
from app.modules.auth.ratelimit import ResetRateLimitGate
from app.modules.shopping import models as shopping_models  # noqa: F401

SCHEMAS = ("auth", "shopping")


@pytest.fixture()
def session_factory(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'main.db'}")

    @event.listens_for(engine, "connect")
    def _attach_schemas(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        for schema in SCHEMAS:
            cursor.execute(f"ATTACH DATABASE '{tmp_path / schema}.db' AS {schema}")
        cursor.close()

    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    yield factory
    engine.dispose()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def _fresh_rate_limits():
    ResetRateLimitGate()
    yield
    ResetRateLimitGate()


@pytest.fixture()
def make_user(db):
    def _MakeUser(email: str, display_name: str | None = None) -> User:
        user = User(Email=email.lower(), DisplayName=display_name, PasswordHash="not-a-real-hash")
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _MakeUser
