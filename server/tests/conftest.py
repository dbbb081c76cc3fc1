from __future__ import annotations

from collections.abc import Generator
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.auth.deps import get_current_user
from app.core.db import Base, get_db
from app.main import app
from app.models.member import Member
from app.models.role import Role
from app.models.user import User

SQLALCHEMY_TEST_URL = "sqlite+pysqlite:///:memory:"
engine = create_engine(SQLALCHEMY_TEST_URL, connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def override_get_db() -> Generator[Session, None, None]:
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def setup_database() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    session = TestingSessionLocal()
    try:
        yield session
        session.commit()
    finally:
        session.close()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    app.dependency_overrides.clear()
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def authorize(client: TestClient):
    def _apply(user: User):
        app.dependency_overrides[get_current_user] = lambda: user

    yield _apply
    app.dependency_overrides.pop(get_current_user, None)


def _ensure_role(session: Session, name: str) -> Role:
    role = session.query(Role).filter_by(name=name).first()
    if role is None:
        role = Role(name=name)
        session.add(role)
        session.commit()
        session.refresh(role)
    return role


def make_member(session: Session, **overrides) -> Member:
    values = {"first_name": "Test", "last_name": "Member", "status": "Active"}
    values.update(overrides)
    member = Member(**values)
    session.add(member)
    session.commit()
    session.refresh(member)
    return member


@pytest.fixture()
def collector(db_session: Session) -> Member:
    return make_member(db_session, first_name="Kidane", last_name="Treasurer", phone="+12145550100")


@pytest.fixture()
def finance_user(db_session: Session, collector: Member) -> User:
    role = _ensure_role(db_session, "FinanceAdmin")
    user = User(
        email="finance@example.com",
        full_name="Finance Admin",
        hashed_password="hash",
        is_active=True,
        member_id=collector.id,
    )
    user.roles.append(role)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def unlinked_finance_user(db_session: Session) -> User:
    role = _ensure_role(db_session, "FinanceAdmin")
    user = User(email="finance2@example.com", full_name="No Member", hashed_password="hash", is_active=True)
    user.roles.append(role)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def office_admin_user(db_session: Session) -> User:
    role = _ensure_role(db_session, "OfficeAdmin")
    user = User(email="office@example.com", full_name="Office", hashed_password="hash", is_active=True)
    user.roles.append(role)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def registrar_user(db_session: Session) -> User:
    role = _ensure_role(db_session, "Registrar")
    user = User(email="registrar@example.com", full_name="Registrar", hashed_password="hash", is_active=True)
    user.roles.append(role)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def sample_member(db_session: Session) -> Member:
    return make_member(
        db_session,
        first_name="Abeba",
        middle_name="S.",
        last_name="Tesfaye",
        email="abeba@example.com",
        phone="+12145550123",
        yearly_pledge=Decimal("1200.00"),
        date_joined_parish=date(2020, 1, 1),
    )


@pytest.fixture()
def member_factory(db_session: Session):
    def _create(**overrides) -> Member:
        return make_member(db_session, **overrides)

    return _create
