"""Generate database session"""

from typing import Any, Generator

from sqlalchemy import Connection, Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from bonusmalus.core.config import get_settings


def configure_sqlite(engine: Engine) -> None:
    """
    Make a SQLite engine behave like the other stores for this application.

    - foreign keys are enforced (SQLite leaves them off by default)
    - every transaction starts with BEGIN IMMEDIATE, so it holds the write lock from its first read.
      A status or assignment check and the write that depends on it can't be split by another writer.
    """

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        # SQLAlchemy emits BEGIN itself, see on_begin
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def on_begin(connection: Connection) -> None:
        connection.exec_driver_sql("BEGIN IMMEDIATE")


settings = get_settings()

# SQLite connections are handed between FastAPI worker threads.
engine = create_engine(
    settings.database_url,
    echo=settings.database_echo,
    connect_args=(
        {"check_same_thread": False}
        if settings.database_url.startswith("sqlite")
        else {}
    ),
    pool_pre_ping=True,
)
if engine.dialect.name == "sqlite":
    configure_sqlite(engine)

SessionLocal = sessionmaker(autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
