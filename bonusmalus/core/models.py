"""
Boundary layer data model(s).

These objects are used to communicate with the Service.
Both the API layer (higher) and the domain/db layers (lower) send and receive the models defined here,
which decouples the SQLAlchemy rows and the pydantic request/response models from the information that crosses layers.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from bonusmalus.core.shared_types import GameStatus, RuleType


@dataclass
class GameModel:
    id: int
    name: str
    initial_score: int
    status: GameStatus
    creator_player_id: Optional[int] = None
    winner_player_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class PlayerModel:
    id: int
    game_id: int
    username: str
    access_code: str
    is_creator: bool
    current_score: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class RuleModel:
    id: int
    game_id: int
    name: str
    rule_type: RuleType
    score_delta: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class RuleAssignmentModel:
    """Append-only record of a rule being credited to a player."""

    id: int
    rule_id: int
    game_id: int
    assigned_to_player_id: int
    score_delta_applied: int
    assigned_at: Optional[datetime] = None


# --- Named results of individual operations ---
@dataclass
class PlayerCredentials:
    """What must be relayed to a player out-of-band after game creation."""

    player_id: int
    username: str
    access_code: str
    is_creator: bool


@dataclass
class CreatedGame:
    game_id: int
    credentials: list[PlayerCredentials] = field(default_factory=list)


@dataclass
class AssignmentOutcome:
    assignment: RuleAssignmentModel
    player: PlayerModel


@dataclass
class GameEnding:
    game: GameModel
    winner: PlayerModel
    leaderboard: list[PlayerModel]


@dataclass
class GameStatusView:
    game_id: int
    status: GameStatus
    winner_player_id: Optional[int]


@dataclass
class RuleWithAssignment:
    rule: RuleModel
    assignment: Optional[RuleAssignmentModel]


@dataclass
class ConditionalInsert:
    """Outcome of 'insert the assignment only if the rule has none yet'."""

    inserted: bool
    assignment: Optional[RuleAssignmentModel] = None
