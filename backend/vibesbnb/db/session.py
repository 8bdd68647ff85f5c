# backend/vibesbnb/db/session.py

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from vibesbnb.core.config import settings
from vibesbnb.db.base import Base


def enable_sqlite_savepoints(engine: Engine) -> None:
    """
    pysqlite 기본 트랜잭션 처리는 SAVEPOINT 와 충돌한다.
    per-row savepoint(begin_nested)을 쓰기 위해 BEGIN 을 직접 발행하도록 바꾼다.
    """

    @event.listens_for(engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str, **kwargs) -> Engine:
    engine = create_engine(database_url, future=True, **kwargs)
    if engine.dialect.name == "sqlite":
        enable_sqlite_savepoints(engine)
    return engine


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def init_db() -> None:
    """
    애플리케이션 시작 시 한 번 호출해서 테이블 생성.
    모든 도메인 모델을 메타데이터에 등록한 뒤 create_all 을 수행한다.
    """
    import vibesbnb.domain.models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
