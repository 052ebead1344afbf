"""
Grassroots Hub Backend — Trial Request/Response Schemas
=========================================================

What:  Typed API contracts for trial lists and trial evaluations.
Why:   Request bodies are validated here, at the boundary, before anything
       reaches TrialService or RankedList. Unknown fields are rejected rather
       than merged into SQL.
Who:   Trial route handlers (input) and TrialService (output).

Ranking input:
    RankingUpdateRequest.new_ranking is deliberately a bare int. Range checks
    against the current list size can only be done inside the transaction,
    so an out-of-range value reaches RankedList and comes back as
    InvalidRankError (400), not as a schema error (422).
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator

from grassroots.models.trial import EVALUATION_STATUSES, TRIAL_LIST_STATUSES

_TIME_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class TrialListCreate(BaseModel):
    """Body of POST /api/trial-lists."""
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1, max_length=200, description="Trial title")
    description: Optional[str] = Field(default=None, max_length=1000)
    trial_date: Optional[date] = Field(default=None, description="YYYY-MM-DD")
    trial_time: Optional[str] = Field(default=None, pattern=_TIME_PATTERN, description="HH:MM")
    location: Optional[str] = Field(default=None, max_length=200)
    max_players: Optional[int] = Field(default=None, ge=1, le=100)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Title is required")
        return stripped


class PlayerAddRequest(BaseModel):
    """Body of POST /api/trial-lists/{id}/players."""
    model_config = ConfigDict(extra="forbid")

    player_id: int = Field(ge=1, description="User id of the player")
    player_name: str = Field(min_length=1, max_length=200)
    player_age: Optional[int] = Field(default=None, ge=5, le=50)
    player_position: Optional[str] = Field(default=None, max_length=100)


class EvaluationUpdateRequest(BaseModel):
    """
    Body of PUT /api/trial-evaluations/{id}.

    Every field is optional; only the fields present in the request are
    written. `ranking` is not accepted here, use the ranking endpoint.
    """
    model_config = ConfigDict(extra="forbid")

    overall_rating: Optional[int] = Field(default=None, ge=1, le=10)
    technical_skills: Optional[int] = Field(default=None, ge=1, le=10)
    physical_attributes: Optional[int] = Field(default=None, ge=1, le=10)
    mental_strength: Optional[int] = Field(default=None, ge=1, le=10)
    teamwork: Optional[int] = Field(default=None, ge=1, le=10)
    private_notes: Optional[str] = Field(default=None, max_length=2000)
    strengths: Optional[str] = Field(default=None, max_length=500)
    areas_for_improvement: Optional[str] = Field(default=None, max_length=500)
    recommended_for_team: Optional[bool] = None
    status: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in EVALUATION_STATUSES:
            raise ValueError(f"Invalid status '{v}'. Must be one of: {EVALUATION_STATUSES}")
        return v


class RankingUpdateRequest(BaseModel):
    """Body of PUT /api/trial-evaluations/{id}/ranking."""
    model_config = ConfigDict(extra="forbid")

    new_ranking: StrictInt = Field(description="Target 1-based position in the list")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class TrialListResponse(BaseModel):
    id: int
    coach_id: int
    title: str
    description: Optional[str] = None
    trial_date: Optional[date] = None
    trial_time: Optional[str] = None
    location: Optional[str] = None
    status: str
    max_players: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TrialListSummary(TrialListResponse):
    """A trial list plus aggregate figures for the coach's overview page."""
    player_count: int = Field(default=0, description="Players on the list")
    average_rating: Optional[float] = Field(
        default=None,
        description="Mean overall rating of rated players (null if none rated)",
    )


class TrialListsResponse(BaseModel):
    success: bool = True
    trial_lists: List[TrialListSummary]
    total: int = Field(description="Number of lists in this page")


class EvaluationResponse(BaseModel):
    id: int
    trial_list_id: int
    player_id: int
    coach_id: int
    player_name: str
    player_age: Optional[int] = None
    player_position: Optional[str] = None
    ranking: int
    overall_rating: Optional[int] = None
    technical_skills: Optional[int] = None
    physical_attributes: Optional[int] = None
    mental_strength: Optional[int] = None
    teamwork: Optional[int] = None
    private_notes: Optional[str] = None
    strengths: Optional[str] = None
    areas_for_improvement: Optional[str] = None
    recommended_for_team: bool = False
    status: str
    evaluated_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TrialListDetailResponse(BaseModel):
    success: bool = True
    trial_list: TrialListResponse
    players: List[EvaluationResponse] = Field(description="Players in ranking order")


class PlayerAddedResponse(BaseModel):
    success: bool = True
    message: str = "Player added to trial list successfully"
    evaluation_id: int
    ranking: int = Field(description="Position assigned to the player (end of list)")


class RankChangeResponse(BaseModel):
    """One entry of an affected set: evaluation `id` now sits at `ranking`."""
    id: int
    ranking: int


class RankingUpdateResponse(BaseModel):
    success: bool = True
    message: str
    evaluation_id: int
    ranking: int
    affected: List[RankChangeResponse] = Field(
        description="Every evaluation whose ranking changed (empty for a no-op move)",
    )


class EvaluationRemovedResponse(BaseModel):
    success: bool = True
    message: str = "Player removed from trial list successfully"
    affected: List[RankChangeResponse] = Field(
        description="Evaluations that moved up one place after the removal",
    )


def validate_trial_list_status(status: Optional[str]) -> Optional[str]:
    """Query-string filter helper: unknown statuses disable the filter instead of failing."""
    if status in TRIAL_LIST_STATUSES:
        return status
    return None
