from __future__ import annotations

from collections.abc import Callable, Generator
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, delete

from app import crud
from app.api.deps import get_db
from app.core.db import init_db
from app.core.security import create_access_token
from app.enums import UserRole
from app.main import app
from app.models import User, utc_now
from app.services.subscription_service import apply_free_plan

PASSWORD = "secret123"


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture(scope="function")
def db(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        init_db(session)
        yield session
        session.rollback()
        # Clean tables after each test (children first).
        for table in reversed(SQLModel.metadata.sorted_tables):
            session.exec(delete(table))
        session.commit()


@pytest.fixture(scope="function")
def client(engine, db, monkeypatch) -> Generator[TestClient, None, None]:
    def _override_get_db() -> Generator[Session, None, None]:
        with Session(engine) as session:
            yield session

    # the chat stream opens its own session outside the request
    monkeypatch.setattr("app.services.companion_service.engine", engine)
    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db) -> Callable[..., User]:
    def _make(email: str = "user@example.com", *, role: UserRole = UserRole.user,
              verified: bool = True, nuts: int | None = None) -> User:
        user = crud.user.create(session=db, email=email, password=PASSWORD, name="Test", role=role)
        apply_free_plan(db, user)
        if verified:
            user.email_verified = utc_now()
        if nuts is not None:
            user.nuts = nuts
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


def _auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, expires_delta=timedelta(days=1))}"}


@pytest.fixture
def headers_for() -> Callable[[User], dict[str, str]]:
    return _auth_headers


@pytest.fixture
def user(make_user) -> User:
    return make_user("user@example.com")


@pytest.fixture
def user_headers(user) -> dict[str, str]:
    return _auth_headers(user)


@pytest.fixture
def admin(make_user) -> User:
    return make_user("admin@example.com", role=UserRole.admin)


@pytest.fixture
def admin_headers(admin) -> dict[str, str]:
    return _auth_headers(admin)
