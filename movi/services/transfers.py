from __future__ import annotations

from typing import List

from movi.services.models import DriverStats, DriverTransfer, WithdrawResult, parse_list


class TransferService:
    def __init__(self, *, api):
        self.api = api

    def get_driver_transfers(self) -> List[DriverTransfer]:
        return parse_list(DriverTransfer, self.api.get("/driver-transfers"))

    def get_driver_stats(self) -> DriverStats:
        return DriverStats.model_validate(self.api.get("/driver-transfers/stats") or {})

    def withdraw_funds(self) -> WithdrawResult:
        return WithdrawResult.model_validate(self.api.post("/driver-transfers/withdraw"))
