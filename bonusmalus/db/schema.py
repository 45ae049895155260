"""Database tables / schema"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from bonusmalus.core.shared_types import GameStatus, RuleType


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class DBGame(Base):
    __tablename__ = "games"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100))
    initial_score: Mapped[int]
    status: Mapped[str] = mapped_column(String(16), default=GameStatus.DRAFT.value)
    # plain references to players.id (no FK, players already point at games)
    creator_player_id: Mapped[Optional[int]]
    winner_player_id: Mapped[Optional[int]]
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)


class DBPlayer(Base):
    __tablename__ = "players"
    __table_args__ = (
        UniqueConstraint("game_id", "username", name="uq_players_game_username"),
        UniqueConstraint("game_id", "access_code", name="uq_players_game_access_code"),
    )
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    game_id: Mapped[int] = mapped_column(
        ForeignKey("games.id", ondelete="CASCADE"), index=True
    )
    username: Mapped[str] = mapped_column(String(100))
    access_code: Mapped[str] = mapped_column(String(32))
    is_creator: Mapped[bool] = mapped_column(default=False)
    current_score: Mapped[int]
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)


class DBRule(Base):
    __tablename__ = "rules"
    __table_args__ = (UniqueConstraint("game_id", "name", name="uq_rules_game_name"),)
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    game_id: Mapped[int] = mapped_column(
        ForeignKey("games.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(100))
    rule_type: Mapped[str] = mapped_column(String(16), default=RuleType.BONUS.value)
    score_delta: Mapped[int]
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)


class DBRuleAssignment(Base):
    """Append-only. The unique rule_id is what makes 'first claim wins' well defined."""

    __tablename__ = "rule_assignments"
    __table_args__ = (UniqueConstraint("rule_id", name="uq_rule_assignments_rule_id"),)
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    rule_id: Mapped[int] = mapped_column(ForeignKey("rules.id"))
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), index=True)
    assigned_to_player_id: Mapped[int] = mapped_column(ForeignKey("players.id"))
    score_delta_applied: Mapped[int]
    assigned_at: Mapped[datetime] = mapped_column(default=utc_now)
