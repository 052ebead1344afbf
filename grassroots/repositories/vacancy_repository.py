"""Persistence for team vacancies (create, and the candidate set for proximity search)."""

from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from grassroots.models.vacancy import TeamVacancy

# Degrees of latitude per km (constant); longitude span widens toward the poles.
_KM_PER_DEGREE_LAT = 111.32


class VacancyRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, vacancy: TeamVacancy) -> TeamVacancy:
        self.session.add(vacancy)
        await self.session.flush()
        return vacancy

    async def active_with_coordinates(
        self,
        lat_range: Optional[Tuple[float, float]] = None,
    ) -> List[TeamVacancy]:
        """
        Active vacancies that have coordinates.

        lat_range narrows the scan to a latitude band (a cheap prefilter;
        exact distances are computed by the caller).
        """
        query = select(TeamVacancy).where(
            TeamVacancy.status == "active",
            TeamVacancy.latitude.is_not(None),
            TeamVacancy.longitude.is_not(None),
        )
        if lat_range is not None:
            query = query.where(TeamVacancy.latitude.between(*lat_range))
        result = await self.session.execute(query)
        return list(result.scalars().all())


def latitude_band(latitude: float, radius_km: float) -> Tuple[float, float]:
    delta = radius_km / _KM_PER_DEGREE_LAT
    return max(-90.0, latitude - delta), min(90.0, latitude + delta)
