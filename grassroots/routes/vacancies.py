"""
Grassroots Hub Backend — Vacancy Route Handlers
=================================================

What:  POST /api/vacancies and GET /api/vacancies/nearby.
Who:   Any authenticated user may post or search.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from grassroots.auth import Principal, get_current_user
from grassroots.schemas.common import CreatedResponse, ErrorResponse
from grassroots.schemas.vacancy import NearbyVacanciesResponse, VacancyCreate
from grassroots.services.vacancy_service import VacancyService, get_vacancy_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Vacancies"])


@router.post(
    "/vacancies",
    response_model=CreatedResponse,
    status_code=status.HTTP_201_CREATED,
    responses={401: {"description": "Not authenticated", "model": ErrorResponse}},
    summary="Post a team vacancy",
)
async def create_vacancy(
    payload: VacancyCreate,
    user: Principal = Depends(get_current_user),
    service: VacancyService = Depends(get_vacancy_service),
) -> CreatedResponse:
    return await service.create_vacancy(user.user_id, payload)


@router.get(
    "/vacancies/nearby",
    response_model=NearbyVacanciesResponse,
    responses={
        400: {"description": "Coordinates or radius out of range", "model": ErrorResponse},
        401: {"description": "Not authenticated", "model": ErrorResponse},
    },
    summary="Active vacancies near a point, closest first",
    description=(
        "Great-circle (Haversine) distance in km, rounded to 0.1 km. "
        "Vacancies without coordinates are never returned."
    ),
)
async def nearby_vacancies(
    lat: float = Query(description="Latitude of the search point"),
    lng: float = Query(description="Longitude of the search point"),
    radius: Optional[float] = Query(default=None, description="Search radius in km"),
    user: Principal = Depends(get_current_user),
    service: VacancyService = Depends(get_vacancy_service),
) -> NearbyVacanciesResponse:
    return await service.search_nearby(lat, lng, radius)
