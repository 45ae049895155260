"""
Game API endpoints

Thin glue: parse the request, call the service, map the Result status onto an HTTP status code.
The authenticated player id comes from the identity layer in the X-Player-Id header.
"""

import logging
from typing import Any, TypeVar

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from bonusmalus.api.models import (
    AssignmentResponse,
    AssignRuleResponse,
    CreateGameRequest,
    CreateGameResponse,
    EndGameResponse,
    ErrorDetail,
    ErrorResponse,
    GameStatusResponse,
    PlayerCredentialsResponse,
    PlayerResponse,
    RuleRequest,
    RuleResponse,
    RuleWithAssignmentResponse,
)
from bonusmalus.core.config import get_settings
from bonusmalus.core.models import PlayerModel, RuleAssignmentModel, RuleModel
from bonusmalus.core.results import Result
from bonusmalus.core.shared_types import GameStatus, ResultStatus
from bonusmalus.db.database import get_db
from bonusmalus.db.sql_repository import SQLGameRepository
from bonusmalus.game.lifecycle import AutoEndPolicy
from bonusmalus.services.game_service import GameService
from bonusmalus.services.rule_service import RuleService

router = APIRouter(
    prefix="/api/games",
    tags=["games"],
    responses={
        code: {"model": ErrorResponse}
        for code in (
            status.HTTP_400_BAD_REQUEST,
            status.HTTP_403_FORBIDDEN,
            status.HTTP_404_NOT_FOUND,
            status.HTTP_409_CONFLICT,
        )
    },
)
logger = logging.getLogger(__name__)

T = TypeVar("T")

HTTP_STATUS: dict[ResultStatus, int] = {
    ResultStatus.OK: status.HTTP_200_OK,
    ResultStatus.CREATED: status.HTTP_201_CREATED,
    ResultStatus.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    ResultStatus.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ResultStatus.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ResultStatus.CONFLICT: status.HTTP_409_CONFLICT,
    ResultStatus.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


# --- Dependencies ---
def get_game_service(db: Session = Depends(get_db)) -> GameService:
    settings = get_settings()
    return GameService(
        SQLGameRepository(db),
        policy=AutoEndPolicy(low_score_threshold=settings.low_score_threshold),
        access_code_length=settings.access_code_length,
    )


def get_rule_service(db: Session = Depends(get_db)) -> RuleService:
    return RuleService(SQLGameRepository(db))


def unwrap(result: Result[T]) -> T:
    """Return the value of a successful Result, raise HTTPException with the error entries otherwise."""
    if result.is_failure:
        raise HTTPException(
            status_code=HTTP_STATUS[result.status],
            detail=ErrorResponse(
                errors=[
                    ErrorDetail(message=error.message, code=error.code)
                    for error in result.errors
                ]
            ).model_dump(),
        )
    return result.value  # type: ignore[return-value]


# --- Response builders ---
def player_response(player: PlayerModel) -> PlayerResponse:
    return PlayerResponse(
        id=player.id,
        username=player.username,
        is_creator=player.is_creator,
        current_score=player.current_score,
    )


def rule_response(rule: RuleModel) -> RuleResponse:
    return RuleResponse(
        id=rule.id, name=rule.name, rule_type=rule.rule_type, score_delta=rule.score_delta
    )


def assignment_response(assignment: RuleAssignmentModel) -> AssignmentResponse:
    return AssignmentResponse(
        id=assignment.id,
        rule_id=assignment.rule_id,
        assigned_to_player_id=assignment.assigned_to_player_id,
        score_delta_applied=assignment.score_delta_applied,
        assigned_at=assignment.assigned_at,
    )


# --- Routes ---
@router.post("", response_model=CreateGameResponse, status_code=status.HTTP_201_CREATED)
def create_game(
    request: CreateGameRequest, service: GameService = Depends(get_game_service)
) -> Any:
    created = unwrap(service.create_game(request))
    return CreateGameResponse(
        game_id=created.game_id,
        credentials=[
            PlayerCredentialsResponse(
                player_id=c.player_id,
                username=c.username,
                access_code=c.access_code,
                is_creator=c.is_creator,
            )
            for c in created.credentials
        ],
    )


@router.get("/{game_id}", response_model=GameStatusResponse)
def get_game_status(game_id: int, service: GameService = Depends(get_game_service)) -> Any:
    view = unwrap(service.get_game_status(game_id))
    return GameStatusResponse(
        game_id=view.game_id, status=view.status, winner_player_id=view.winner_player_id
    )


@router.get("/{game_id}/leaderboard", response_model=list[PlayerResponse])
def get_leaderboard(game_id: int, service: GameService = Depends(get_game_service)) -> Any:
    return [player_response(p) for p in unwrap(service.get_leaderboard(game_id))]


@router.get("/{game_id}/rules", response_model=list[RuleWithAssignmentResponse])
def list_rules(game_id: int, service: RuleService = Depends(get_rule_service)) -> Any:
    return [
        RuleWithAssignmentResponse(
            rule=rule_response(item.rule),
            assignment=assignment_response(item.assignment) if item.assignment else None,
        )
        for item in unwrap(service.list_rules(game_id))
    ]


@router.post(
    "/{game_id}/rules", response_model=RuleResponse, status_code=status.HTTP_201_CREATED
)
def create_rule(
    game_id: int,
    body: RuleRequest,
    x_player_id: int = Header(...),
    service: RuleService = Depends(get_rule_service),
) -> Any:
    rule = unwrap(
        service.create_rule(game_id, x_player_id, body.name, body.rule_type, body.score_delta)
    )
    return rule_response(rule)


@router.put("/{game_id}/rules/{rule_id}", response_model=RuleResponse)
def update_rule(
    game_id: int,
    rule_id: int,
    body: RuleRequest,
    x_player_id: int = Header(...),
    service: RuleService = Depends(get_rule_service),
) -> Any:
    rule = unwrap(
        service.update_rule(
            rule_id, game_id, x_player_id, body.name, body.rule_type, body.score_delta
        )
    )
    return rule_response(rule)


@router.delete("/{game_id}/rules/{rule_id}", response_model=RuleResponse)
def delete_rule(
    game_id: int,
    rule_id: int,
    x_player_id: int = Header(...),
    service: RuleService = Depends(get_rule_service),
) -> Any:
    return rule_response(unwrap(service.delete_rule(rule_id, game_id, x_player_id)))


@router.post(
    "/{game_id}/rules/{rule_id}/assign",
    response_model=AssignRuleResponse,
    status_code=status.HTTP_201_CREATED,
)
def assign_rule(
    game_id: int,
    rule_id: int,
    x_player_id: int = Header(...),
    rule_service: RuleService = Depends(get_rule_service),
    game_service: GameService = Depends(get_game_service),
) -> Any:
    """Claim a rule for the calling player, then give the game a chance to end automatically."""
    outcome = unwrap(rule_service.assign_rule(game_id, rule_id, x_player_id))

    game_status = GameStatus.STARTED
    auto_end = game_service.try_auto_end_game(game_id)
    if auto_end.is_success and auto_end.value is not None:
        game_status = auto_end.value.status
    elif "END_CONDITIONS_NOT_MET" not in auto_end.error_codes:
        # the assignment stands either way
        logger.warning(f"Failed to auto-end game {game_id}: {auto_end.error_codes}")

    return AssignRuleResponse(
        assignment=assignment_response(outcome.assignment),
        player=player_response(outcome.player),
        game_status=game_status,
    )


@router.get("/{game_id}/assignments", response_model=list[AssignmentResponse])
def assignment_history(game_id: int, service: RuleService = Depends(get_rule_service)) -> Any:
    return [assignment_response(a) for a in unwrap(service.assignment_history(game_id))]


@router.post("/{game_id}/end", response_model=EndGameResponse)
def end_game(
    game_id: int,
    x_player_id: int = Header(...),
    service: GameService = Depends(get_game_service),
) -> Any:
    ending = unwrap(service.end_game(game_id, x_player_id))
    return EndGameResponse(
        game_id=ending.game.id,
        status=ending.game.status,
        winner=player_response(ending.winner),
        leaderboard=[player_response(p) for p in ending.leaderboard],
    )
