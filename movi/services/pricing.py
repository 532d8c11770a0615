from __future__ import annotations

import math
from typing import Optional

from movi.core.config.models import PricingConfig
from movi.core.errors import InvalidInputError
from movi.services.models import Location

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points, in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def quote_price(
    pickup: Location,
    dropoff: Location,
    weight_kg: float = 0.0,
    *,
    pricing: Optional[PricingConfig] = None,
) -> int:
    if weight_kg < 0:
        raise InvalidInputError("Weight cannot be negative.", weight_kg=weight_kg)
    p = pricing or PricingConfig()
    km = haversine_km(pickup.latitude, pickup.longitude, dropoff.latitude, dropoff.longitude)
    return int(round(p.base_price + km * p.price_per_km + weight_kg * p.price_per_kg))
