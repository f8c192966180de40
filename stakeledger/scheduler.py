"""
scheduler.py - Automatic Claim Scheduler

An optional collaborator that claims matured unlock requests on a holder's
behalf. Nothing in the ledger schedules jobs on its own: a host that wants
automatic claims schedules one after request_unlock, typically at the
request's maturity_time.

- Simple heap-based scheduling, ordered by trigger time then holder
- Jobs are just data; step() calls Ledger.claim, which stays the only path
  that changes locked balances
- Jobs are keyed by holder identity, so Ledger.cancel_unlock can cancel them
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol
import heapq

from .core import UnlockRequest


class ClaimingLedger(Protocol):
    """The slice of Ledger the scheduler needs."""

    @property
    def current_time(self) -> datetime:
        ...

    def claim(self, holder: str, code: str) -> UnlockRequest:
        ...


# ============================================================================
# JOB DATA STRUCTURE
# ============================================================================

@dataclass(frozen=True, slots=True)
class ClaimJob:
    """
    Immutable scheduled claim.

    Sorting: by trigger_time, then holder, then asset.

    Attributes:
        trigger_time: Earliest time the claim should be attempted
        holder: Account whose unlock request is claimed
        asset: Asset code of the request
    """
    trigger_time: datetime
    holder: str
    asset: str

    def __lt__(self, other: 'ClaimJob') -> bool:
        if self.trigger_time != other.trigger_time:
            return self.trigger_time < other.trigger_time
        if self.holder != other.holder:
            return self.holder < other.holder
        return self.asset < other.asset

    @property
    def job_id(self) -> str:
        return f"claim:{self.holder}:{self.asset}:{self.trigger_time.isoformat()}"


# ============================================================================
# SCHEDULER
# ============================================================================

class ClaimScheduler:
    """
    Priority queue of claim jobs.

    Design:
    - Jobs are scheduled in advance
    - get_due() removes and returns jobs ready to run
    - cancel() drops every job for a holder; cancelling nothing is not an error
    """

    def __init__(self):
        self._heap: List[ClaimJob] = []

    def schedule(self, holder: str, asset: str, trigger_time: datetime) -> str:
        """
        Add a claim job to the queue.

        Returns the job_id.
        """
        job = ClaimJob(trigger_time=trigger_time, holder=holder, asset=asset)
        heapq.heappush(self._heap, job)
        return job.job_id

    def schedule_request(self, request: UnlockRequest) -> str:
        """Schedule a claim at the request's maturity time."""
        return self.schedule(request.holder, request.asset, request.maturity_time)

    def cancel(self, holder: str) -> int:
        """
        Remove every job scheduled for `holder`.

        Returns the number of jobs removed (0 when none were scheduled).
        """
        kept = [job for job in self._heap if job.holder != holder]
        removed = len(self._heap) - len(kept)
        if removed:
            heapq.heapify(kept)
            self._heap = kept
        return removed

    def get_due(self, as_of: datetime) -> List[ClaimJob]:
        """Get and remove jobs with trigger_time <= as_of, in execution order."""
        due = []
        while self._heap and self._heap[0].trigger_time <= as_of:
            due.append(heapq.heappop(self._heap))
        return due

    def step(self, ledger: ClaimingLedger) -> List[UnlockRequest]:
        """
        Run every job due at the ledger's current time.

        Returns the claimed requests, in execution order.

        Raises:
            LedgerError: Any rejection raised by Ledger.claim propagates
                         unchanged; jobs already popped are not re-queued.
        """
        claimed = []
        for job in self.get_due(ledger.current_time):
            claimed.append(ledger.claim(job.holder, job.asset))
        return claimed

    def pending_count(self) -> int:
        return len(self._heap)

    def peek_next(self) -> Optional[ClaimJob]:
        return self._heap[0] if self._heap else None

    def jobs_for(self, holder: str) -> List[ClaimJob]:
        return sorted(job for job in self._heap if job.holder == holder)
