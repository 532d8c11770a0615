from __future__ import annotations

from typing import Dict, Union

from movi.core.errors import InvalidInputError
from movi.services.models import Profile, ProfileUpdate


class ProfileService:
    def __init__(self, *, api):
        self.api = api

    def get_my_profile(self) -> Profile:
        return Profile.model_validate(self.api.get("/profile/me"))

    def update_my_profile(self, data: Union[ProfileUpdate, Dict]) -> Profile:
        update = data if isinstance(data, ProfileUpdate) else ProfileUpdate.model_validate(data)
        body = update.model_dump(exclude_none=True)
        return Profile.model_validate(self.api.put("/profile/me", json=body))

    def update_driver_location(self, latitude: float, longitude: float) -> bool:
        """Drivers only; the backend rejects other roles."""
        if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
            raise InvalidInputError("Invalid coordinates.", latitude=latitude, longitude=longitude)
        res = self.api.post("/profile/me/location", json={"latitude": latitude, "longitude": longitude}) or {}
        return bool(res.get("ok", True))
