"""
unlock_queue.py - Unlock Request Queue

At most one live UnlockRequest per (holder, asset). A request is filed by
Ledger.request_unlock, consumed by Ledger.claim, or dropped by
Ledger.cancel_unlock.

Maturity is never stored: whether a request is pending or matured is
evaluated against the current time whenever it is needed.
"""

from __future__ import annotations
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from .core import (
    UnlockRequest, UnlockState, unlock_state, maturity_after,
    DuplicateRequest, NotMatured, RequestNotFound,
)


class UnlockQueue:
    """Asset-scoped table of live unlock requests keyed by holder."""

    def __init__(self):
        self._requests: Dict[str, Dict[str, UnlockRequest]] = {}

    def __len__(self) -> int:
        return sum(len(table) for table in self._requests.values())

    def find(self, holder: str, code: str) -> Optional[UnlockRequest]:
        return self._requests.get(code, {}).get(holder)

    def get(self, holder: str, code: str) -> UnlockRequest:
        """
        Raises:
            RequestNotFound: If the holder has no live request for the asset
        """
        request = self.find(holder, code)
        if request is None:
            raise RequestNotFound(f"unlock request not found for {holder} {code}")
        return request

    def requests(self, code: str) -> List[UnlockRequest]:
        table = self._requests.get(code, {})
        return [table[h] for h in sorted(table)]

    def state(self, holder: str, code: str, now: datetime) -> UnlockState:
        return unlock_state(self.find(holder, code), now)

    def matured(self, code: str, now: datetime) -> List[UnlockRequest]:
        """Live requests for an asset that are claimable at `now`."""
        return [r for r in self.requests(code) if r.is_mature(now)]

    # ========================================================================
    # PLANNING (pure)
    # ========================================================================

    def new_request(
        self,
        holder: str,
        code: str,
        amount: Decimal,
        now: datetime,
        delay: timedelta,
    ) -> UnlockRequest:
        """
        Build a request maturing at now + delay.

        Raises:
            DuplicateRequest: If a live request already exists for (holder, asset)
            InvalidArgument: If now + delay does not fit in a datetime
        """
        if self.find(holder, code) is not None:
            raise DuplicateRequest(f"unlock request already exists for {holder} {code}")
        return UnlockRequest(
            holder=holder,
            asset=code,
            requested_at=now,
            maturity_time=maturity_after(now, delay),
            amount=amount,
        )

    def claimable(self, holder: str, code: str, now: datetime) -> UnlockRequest:
        """
        Return the live request if it has matured.

        Raises:
            RequestNotFound: If there is no live request
            NotMatured: If now < maturity_time
        """
        request = self.get(holder, code)
        if not request.is_mature(now):
            raise NotMatured(
                f"unlock for {holder} {code} is not available until {request.maturity_time}"
            )
        return request

    # ========================================================================
    # MUTATION
    # ========================================================================

    def put(self, request: UnlockRequest) -> None:
        self._requests.setdefault(request.asset, {})[request.holder] = request

    def delete(self, holder: str, code: str) -> None:
        del self._requests[code][holder]

    def clone(self) -> UnlockQueue:
        cloned = UnlockQueue()
        cloned._requests = {code: dict(table) for code, table in self._requests.items()}
        return cloned
