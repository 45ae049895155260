"""Requests and Response models"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from bonusmalus.core.exceptions import InvalidRequestError
from bonusmalus.core.shared_types import GameStatus, RuleType


# --- REQUEST MODELS ---
class PlayerEntry(BaseModel):
    username: str
    is_creator: bool = False
    access_code: Optional[str] = None

    @field_validator("username")
    @classmethod
    def strip_username(cls, value: str) -> str:
        return value.strip()

    @field_validator("access_code")
    @classmethod
    def validate_access_code(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value

        value = value.strip()
        if len(value) < 4 or len(value) > 32:
            raise InvalidRequestError("Access code must be 4 to 32 characters long.")
        if not value.isalnum():
            raise InvalidRequestError(
                f"Access code {value!r} may only contain letters and digits."
            )
        return value


class RuleEntry(BaseModel):
    name: str
    rule_type: RuleType
    score_delta: int

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        return value.strip()


class CreateGameRequest(BaseModel):
    name: str
    initial_score: int = 0
    players: list[PlayerEntry] = Field(default_factory=list)
    rules: list[RuleEntry] = Field(default_factory=list)


class RuleRequest(RuleEntry):
    """Body of create-rule and update-rule calls."""


# --- RESPONSE MODELS ---
class ErrorDetail(BaseModel):
    message: str
    code: str


class ErrorResponse(BaseModel):
    errors: list[ErrorDetail]


class PlayerCredentialsResponse(BaseModel):
    player_id: int
    username: str
    access_code: str
    is_creator: bool


class CreateGameResponse(BaseModel):
    game_id: int
    credentials: list[PlayerCredentialsResponse]


class PlayerResponse(BaseModel):
    id: int
    username: str
    is_creator: bool
    current_score: int


class RuleResponse(BaseModel):
    id: int
    name: str
    rule_type: RuleType
    score_delta: int


class AssignmentResponse(BaseModel):
    id: int
    rule_id: int
    assigned_to_player_id: int
    score_delta_applied: int
    assigned_at: Optional[datetime]


class RuleWithAssignmentResponse(BaseModel):
    rule: RuleResponse
    assignment: Optional[AssignmentResponse]


class AssignRuleResponse(BaseModel):
    assignment: AssignmentResponse
    player: PlayerResponse
    game_status: GameStatus


class GameStatusResponse(BaseModel):
    game_id: int
    status: GameStatus
    winner_player_id: Optional[int]


class EndGameResponse(BaseModel):
    game_id: int
    status: GameStatus
    winner: PlayerResponse
    leaderboard: list[PlayerResponse]
