"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures/variables required for testing multiple layers.
"""

from pathlib import Path
from typing import Callable, Generator

import pytest
from sqlalchemy import Engine, StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from bonusmalus.api.models import CreateGameRequest, PlayerEntry, RuleEntry
from bonusmalus.core.shared_types import RuleType
from bonusmalus.db.database import configure_sqlite
from bonusmalus.db.schema import Base
from bonusmalus.db.sql_repository import SQLGameRepository
from bonusmalus.game.lifecycle import AutoEndPolicy
from bonusmalus.services.game_service import GameService
from bonusmalus.services.rule_service import RuleService

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
configure_sqlite(engine)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)


@pytest.fixture
def db_session_repo() -> Generator[Session, None, None]:
    """Connection to a test database. Tables are removed at teardown to make unit tests independent of each other."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def repository(db_session_repo: Session) -> SQLGameRepository:
    return SQLGameRepository(db_session_repo)


@pytest.fixture
def game_service(repository: SQLGameRepository) -> GameService:
    return GameService(repository, policy=AutoEndPolicy(low_score_threshold=3))


@pytest.fixture
def rule_service(repository: SQLGameRepository) -> RuleService:
    return RuleService(repository)


@pytest.fixture
def file_session_factory(tmp_path: Path) -> Generator[sessionmaker[Session], None, None]:
    """
    File backed database for tests with several threads.

    Mock real setup: one engine, one connection + session per concurrent request.
    """
    file_engine: Engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    configure_sqlite(file_engine)
    Base.metadata.create_all(bind=file_engine)
    try:
        yield sessionmaker(autoflush=False, bind=file_engine)
    finally:
        file_engine.dispose()


# --- Request builders ---
def make_create_request(
    name: str = "Cup",
    initial_score: int = 100,
    players: list[tuple[str, bool]] | None = None,
    rules: list[tuple[str, RuleType, int]] | None = None,
) -> CreateGameRequest:
    """First player is the creator unless stated otherwise."""
    if players is None:
        players = [("A", True), ("B", False)]
    if rules is None:
        rules = [("Late", RuleType.MALUS, -10)]
    return CreateGameRequest(
        name=name,
        initial_score=initial_score,
        players=[PlayerEntry(username=u, is_creator=c) for u, c in players],
        rules=[RuleEntry(name=n, rule_type=t, score_delta=d) for n, t, d in rules],
    )


@pytest.fixture
def create_request() -> Callable[..., CreateGameRequest]:
    return make_create_request
