import os

# vibesbnb 를 import 하기 전에 설정해야 모듈 레벨 engine / scheduler 가 테스트용으로 뜬다
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import vibesbnb.domain.models  # noqa: F401
from vibesbnb.db.base import Base
from vibesbnb.db.session import build_engine, get_db
from vibesbnb.repositories.property_repository import PropertyRepository

HOST_ID = "host-1"
GUEST_ID = "guest-1"


@pytest.fixture
def engine():
    engine = build_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def prop(db):
    """host-1 소유 숙소"""
    prop = PropertyRepository(db).create(host_id=HOST_ID, name="Sunny Loft")
    db.commit()
    return prop


@pytest.fixture
def seeded_property_id(session_factory):
    """
    API 테스트용 숙소.
    StaticPool 은 커넥션 하나를 공유하므로 시드 세션은 바로 닫는다.
    """
    with session_factory() as session:
        prop = PropertyRepository(session).create(host_id=HOST_ID, name="Sunny Loft")
        session.commit()
        return prop.id


@pytest.fixture
def client(session_factory):
    from vibesbnb.main import app

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def host_headers(user_id: str = HOST_ID) -> dict:
    return {"X-User-Id": user_id, "X-User-Role": "host"}


def guest_headers(user_id: str = GUEST_ID) -> dict:
    return {"X-User-Id": user_id, "X-User-Role": "guest"}
