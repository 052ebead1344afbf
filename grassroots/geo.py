"""
Grassroots Hub Backend — Geographic Helpers
=============================================

What:  Great-circle distance between two coordinates (Haversine formula).
Who:   VacancyService for the "vacancies near me" search.

Distances are in kilometres on a spherical Earth of radius 6371 km; the
error against the ellipsoid (under 0.5%) does not matter for travel radii.
"""

import math

from grassroots.exceptions import ValidationError

EARTH_RADIUS_KM = 6371.0


def validate_coordinates(latitude: float, longitude: float) -> None:
    """Raise ValidationError unless -90 <= lat <= 90 and -180 <= lng <= 180."""
    if not -90.0 <= latitude <= 90.0:
        raise ValidationError(
            message=f"Latitude {latitude} is out of range (-90 to 90).",
            field="lat",
        )
    if not -180.0 <= longitude <= 180.0:
        raise ValidationError(
            message=f"Longitude {longitude} is out of range (-180 to 180).",
            field="lng",
        )


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in km between (lat1, lon1) and (lat2, lon2), given in degrees."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c
