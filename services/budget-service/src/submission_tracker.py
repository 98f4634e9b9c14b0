from __future__ import annotations

import itertools
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Optional, TypeVar
from uuid import uuid4

T = TypeVar("T")

DEFAULT_MAX_SESSIONS = 1024


@dataclass(frozen=True)
class SubmissionTicket:
    submission_id: str
    sequence: int


class SubmissionTracker:
    """
    Remembers the latest submission of one client and discards stale results.

    A newer submission supersedes interest in any recommendation still pending
    for an older one; `run` returns None instead of a result that arrives late.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._latest = 0
        self._in_flight = 0

    def begin(self) -> SubmissionTicket:
        ticket = SubmissionTicket(submission_id=str(uuid4()), sequence=next(self._counter))
        self._latest = ticket.sequence
        return ticket

    def is_current(self, ticket: SubmissionTicket) -> bool:
        return ticket.sequence == self._latest

    @property
    def busy(self) -> bool:
        """True while a result is still pending for any submission."""
        return self._in_flight > 0

    async def run(self, ticket: SubmissionTicket, pending: Awaitable[T]) -> Optional[T]:
        self._in_flight += 1
        try:
            result = await pending
        finally:
            self._in_flight -= 1
        if not self.is_current(ticket):
            return None
        return result


class SessionTrackers:
    """
    Bounded LRU map of per-session trackers.

    Trackers with a pending result are never evicted, so a newer submission of a
    session always supersedes its older one. While every other session is busy
    the map may briefly exceed `max_sessions`.
    """

    def __init__(self, max_sessions: int = DEFAULT_MAX_SESSIONS):
        self._max_sessions = max(1, max_sessions)
        self._trackers: "OrderedDict[str, SubmissionTracker]" = OrderedDict()

    def get(self, session_id: str) -> SubmissionTracker:
        tracker = self._trackers.pop(session_id, None) or SubmissionTracker()
        self._trackers[session_id] = tracker
        self._evict_idle(keep=session_id)
        return tracker

    def _evict_idle(self, keep: str) -> None:
        excess = len(self._trackers) - self._max_sessions
        if excess <= 0:
            return
        idle = [key for key, tracker in self._trackers.items() if key != keep and not tracker.busy]
        for key in idle[:excess]:
            del self._trackers[key]

    def __len__(self) -> int:
        return len(self._trackers)
