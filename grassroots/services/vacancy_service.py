"""
Grassroots Hub Backend — Vacancy Service
==========================================

What:  Posting team vacancies and the "vacancies near me" search.
How:   The nearby search narrows candidates to a latitude band in SQL, then
       computes exact Haversine distances in Python, keeps those within the
       radius and sorts them closest first.
"""

import logging
from typing import Optional

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from grassroots.config import settings
from grassroots.database import async_session_factory
from grassroots.exceptions import DatabaseError, ValidationError
from grassroots.geo import haversine_km, validate_coordinates
from grassroots.models.vacancy import TeamVacancy
from grassroots.repositories.vacancy_repository import VacancyRepository, latitude_band
from grassroots.schemas.common import CreatedResponse
from grassroots.schemas.vacancy import (
    NearbyVacanciesResponse,
    NearbyVacancy,
    VacancyCreate,
    VacancyResponse,
)

logger = logging.getLogger(__name__)


class VacancyService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create_vacancy(self, posted_by: int, payload: VacancyCreate) -> CreatedResponse:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    vacancy = await VacancyRepository(session).add(
                        TeamVacancy(posted_by=posted_by, **payload.model_dump())
                    )
        except DBAPIError as e:
            logger.error("Database error creating vacancy: %s", str(e))
            raise DatabaseError(context={"error_type": type(e).__name__}) from e

        logger.info("User %s posted vacancy %s", posted_by, vacancy.id)
        return CreatedResponse(message="Vacancy posted successfully", id=vacancy.id)

    async def search_nearby(
        self,
        latitude: float,
        longitude: float,
        radius_km: Optional[float] = None,
    ) -> NearbyVacanciesResponse:
        """
        Active vacancies within `radius_km` of (latitude, longitude), closest first.

        Raises:
            ValidationError: coordinates out of range, or radius not in (0, max]
        """
        validate_coordinates(latitude, longitude)
        radius = settings.default_search_radius_km if radius_km is None else radius_km
        if not 0 < radius <= settings.max_search_radius_km:
            raise ValidationError(
                message=f"Radius must be greater than 0 and at most {settings.max_search_radius_km} km.",
                field="radius",
            )

        try:
            async with self._session_factory() as session:
                candidates = await VacancyRepository(session).active_with_coordinates(
                    lat_range=latitude_band(latitude, radius)
                )
        except DBAPIError as e:
            logger.error("Database error searching vacancies: %s", str(e))
            raise DatabaseError(context={"error_type": type(e).__name__}) from e

        matches = []
        for vacancy in candidates:
            distance = haversine_km(latitude, longitude, vacancy.latitude, vacancy.longitude)
            if distance <= radius:
                matches.append((distance, vacancy))
        matches.sort(key=lambda pair: (pair[0], pair[1].id))

        vacancies = [
            NearbyVacancy(
                **VacancyResponse.model_validate(vacancy).model_dump(),
                distance_km=round(distance, 1),
            )
            for distance, vacancy in matches
        ]
        logger.debug(
            "Nearby search (%.4f, %.4f) r=%.1f km: %d of %d candidates",
            latitude, longitude, radius, len(vacancies), len(candidates),
        )
        return NearbyVacanciesResponse(
            vacancies=vacancies,
            center=[latitude, longitude],
            radius_km=radius,
            total=len(vacancies),
        )


# ── Module-level singleton ────────────────────────────────────────────────
vacancy_service = VacancyService(async_session_factory)


def get_vacancy_service() -> VacancyService:
    return vacancy_service
