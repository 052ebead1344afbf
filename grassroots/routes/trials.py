"""
Grassroots Hub Backend — Trial Route Handlers
===============================================

What:  Trial lists (/api/trial-lists) and trial evaluations
       (/api/trial-evaluations), including the ranking endpoints.
How:   Thin handlers: authenticate as a coach, validate the body, delegate to
       TrialService. Errors raised below are turned into the JSON error
       envelope by the handlers registered in main.py.
Who:   The coach's trial management screens.

Ranking endpoints return the affected set, every evaluation whose position
changed as [{id, ranking}], so clients can patch their view without a refetch.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from grassroots.auth import Principal, require_coach
from grassroots.schemas.common import CreatedResponse, ErrorResponse, MessageResponse
from grassroots.schemas.trial import (
    EvaluationRemovedResponse,
    EvaluationResponse,
    EvaluationUpdateRequest,
    PlayerAddedResponse,
    PlayerAddRequest,
    RankingUpdateRequest,
    RankingUpdateResponse,
    TrialListCreate,
    TrialListDetailResponse,
    TrialListsResponse,
    validate_trial_list_status,
)
from grassroots.services.trial_service import TrialService, get_trial_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Trials"])

_AUTH_ERRORS = {
    401: {"description": "Missing, invalid or expired token", "model": ErrorResponse},
    403: {"description": "Caller is not a coach", "model": ErrorResponse},
}
_NOT_FOUND = {404: {"description": "Not found or owned by another coach", "model": ErrorResponse}}
_CONFLICT = {409: {"description": "Conflicting or concurrent modification", "model": ErrorResponse}}


# ══════════════════════════════════════════════════════════════════════════
# Trial lists
# ══════════════════════════════════════════════════════════════════════════


@router.post(
    "/trial-lists",
    response_model=CreatedResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_AUTH_ERRORS},
    summary="Create a trial list",
)
async def create_trial_list(
    payload: TrialListCreate,
    coach: Principal = Depends(require_coach),
    service: TrialService = Depends(get_trial_service),
) -> CreatedResponse:
    return await service.create_trial_list(coach.user_id, payload)


@router.get(
    "/trial-lists",
    response_model=TrialListsResponse,
    responses={**_AUTH_ERRORS},
    summary="List the coach's trial lists",
    description=(
        "Newest first, with the number of players and their mean overall rating. "
        "An unknown status filter is ignored."
    ),
)
async def list_trial_lists(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    coach: Principal = Depends(require_coach),
    service: TrialService = Depends(get_trial_service),
) -> TrialListsResponse:
    return await service.list_trial_lists(
        coach.user_id,
        status=validate_trial_list_status(status_filter),
        limit=limit,
        offset=offset,
    )


@router.get(
    "/trial-lists/{list_id}",
    response_model=TrialListDetailResponse,
    responses={**_AUTH_ERRORS, **_NOT_FOUND},
    summary="Get a trial list with its ranked players",
)
async def get_trial_list(
    list_id: int,
    coach: Principal = Depends(require_coach),
    service: TrialService = Depends(get_trial_service),
) -> TrialListDetailResponse:
    return await service.get_trial_list(coach.user_id, list_id)


@router.delete(
    "/trial-lists/{list_id}",
    response_model=MessageResponse,
    responses={**_AUTH_ERRORS, **_NOT_FOUND, **_CONFLICT},
    summary="Delete a trial list and all of its evaluations",
)
async def delete_trial_list(
    list_id: int,
    coach: Principal = Depends(require_coach),
    service: TrialService = Depends(get_trial_service),
) -> MessageResponse:
    return await service.delete_trial_list(coach.user_id, list_id)


@router.post(
    "/trial-lists/{list_id}/players",
    response_model=PlayerAddedResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_AUTH_ERRORS, **_NOT_FOUND, **_CONFLICT},
    summary="Add a player to the end of a trial list",
)
async def add_player(
    list_id: int,
    payload: PlayerAddRequest,
    coach: Principal = Depends(require_coach),
    service: TrialService = Depends(get_trial_service),
) -> PlayerAddedResponse:
    return await service.add_player(coach.user_id, list_id, payload)


# ══════════════════════════════════════════════════════════════════════════
# Trial evaluations
# ══════════════════════════════════════════════════════════════════════════


@router.put(
    "/trial-evaluations/{evaluation_id}",
    response_model=EvaluationResponse,
    responses={
        400: {"description": "No fields to update", "model": ErrorResponse},
        **_AUTH_ERRORS,
        **_NOT_FOUND,
    },
    summary="Update ratings, notes or status of an evaluation",
)
async def update_evaluation(
    evaluation_id: int,
    payload: EvaluationUpdateRequest,
    coach: Principal = Depends(require_coach),
    service: TrialService = Depends(get_trial_service),
) -> EvaluationResponse:
    return await service.update_evaluation(coach.user_id, evaluation_id, payload)


@router.put(
    "/trial-evaluations/{evaluation_id}/ranking",
    response_model=RankingUpdateResponse,
    responses={
        400: {"description": "new_ranking outside 1..n", "model": ErrorResponse},
        **_AUTH_ERRORS,
        **_NOT_FOUND,
        **_CONFLICT,
    },
    summary="Move an evaluation to a new position",
    description=(
        "Moving up shifts the players between the target and the old position "
        "down by one; moving down shifts them up by one. Positions stay 1..n "
        "without gaps or duplicates."
    ),
)
async def update_ranking(
    evaluation_id: int,
    payload: RankingUpdateRequest,
    coach: Principal = Depends(require_coach),
    service: TrialService = Depends(get_trial_service),
) -> RankingUpdateResponse:
    return await service.move_evaluation(coach.user_id, evaluation_id, payload.new_ranking)


@router.delete(
    "/trial-evaluations/{evaluation_id}",
    response_model=EvaluationRemovedResponse,
    responses={**_AUTH_ERRORS, **_NOT_FOUND, **_CONFLICT},
    summary="Remove a player from a trial list",
)
async def remove_evaluation(
    evaluation_id: int,
    coach: Principal = Depends(require_coach),
    service: TrialService = Depends(get_trial_service),
) -> EvaluationRemovedResponse:
    return await service.remove_evaluation(coach.user_id, evaluation_id)
