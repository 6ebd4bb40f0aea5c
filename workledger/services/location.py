from dataclasses import dataclass
from math import asin, cos, radians, sin, sqrt

from workledger.models import AttendanceSettings

EARTH_RADIUS_M = 6371000.0


@dataclass(frozen=True)
class GeofenceResult:
    allowed: bool
    distance_m: float | None
    radius_m: int | None
    reason: str


def distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    lat1_rad = radians(lat1)
    lon1_rad = radians(lon1)
    lat2_rad = radians(lat2)
    lon2_rad = radians(lon2)

    delta_lat = lat2_rad - lat1_rad
    delta_lon = lon2_rad - lon1_rad

    a = sin(delta_lat / 2) ** 2 + cos(lat1_rad) * cos(lat2_rad) * sin(delta_lon / 2) ** 2
    c = 2 * asin(sqrt(a))
    return EARTH_RADIUS_M * c


def evaluate_geofence(
    settings_row: AttendanceSettings,
    lat: float | None,
    lon: float | None,
) -> GeofenceResult:
    if not settings_row.enable_geofencing:
        return GeofenceResult(allowed=True, distance_m=None, radius_m=None, reason="geofencing_disabled")

    if lat is None or lon is None:
        return GeofenceResult(allowed=False, distance_m=None, radius_m=None, reason="no_location_payload")

    if settings_row.office_latitude is None or settings_row.office_longitude is None:
        return GeofenceResult(allowed=True, distance_m=None, radius_m=None, reason="office_location_not_set")

    distance_value = distance_m(settings_row.office_latitude, settings_row.office_longitude, lat, lon)
    radius = settings_row.geofence_radius_meters
    return GeofenceResult(
        allowed=distance_value <= radius,
        distance_m=round(distance_value, 2),
        radius_m=radius,
        reason="inside_radius" if distance_value <= radius else "outside_radius",
    )
