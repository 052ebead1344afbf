"""
Grassroots Hub Backend — Vacancy Schemas
==========================================

What:  Contracts for posting a team vacancy and for the proximity search.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class VacancyCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    league: Optional[str] = Field(default=None, max_length=200)
    age_group: Optional[str] = Field(default=None, max_length=50)
    position: Optional[str] = Field(default=None, max_length=100)
    location: Optional[str] = Field(default=None, max_length=255)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class VacancyResponse(BaseModel):
    id: int
    posted_by: int
    title: str
    description: Optional[str] = None
    league: Optional[str] = None
    age_group: Optional[str] = None
    position: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NearbyVacancy(VacancyResponse):
    distance_km: float = Field(description="Great-circle distance from the search point, 0.1 km precision")


class NearbyVacanciesResponse(BaseModel):
    """
    Result of GET /api/vacancies/nearby, closest first.

    `center` echoes the search point so clients can draw the radius.
    """
    vacancies: List[NearbyVacancy]
    center: List[float] = Field(description="[lat, lng] of the search point")
    radius_km: float
    total: int
