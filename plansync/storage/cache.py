"""
Reconciliation cache: the single place solution snapshots are written.

Every refresh takes a sequence number from the cache when it starts. When it
completes, the snapshot is offered back with that number and is dropped if
a refresh that started later has already been accepted. Out-of-order
completions therefore can never replace fresher data.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from plansync.engine.events import SyncListener
from plansync.models.entities import Session, SolutionSnapshot
from plansync.models.errors import StaleResponse

logger = logging.getLogger(__name__)


@dataclass
class _Slot:
    snapshot: Optional[SolutionSnapshot] = None
    issued: int = 0  # last sequence number handed out
    accepted: int = 0  # highest sequence number accepted
    dirty_since: Optional[int] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class ReconciliationCache:
    def __init__(self, listener: Optional[SyncListener] = None):
        self.listener = listener
        self._slots: Dict[str, _Slot] = {}

    def _slot(self, session_id: str) -> _Slot:
        slot = self._slots.get(session_id)
        if slot is None:
            slot = self._slots[session_id] = _Slot()
        return slot

    def prime(self, session_id: str) -> None:
        """Start a session with an empty slot. Sequence counters are kept."""
        slot = self._slot(session_id)
        slot.snapshot = None
        slot.dirty_since = None

    def next_sequence(self, session_id: str) -> int:
        """Assign the sequence number for a refresh being initiated now."""
        slot = self._slot(session_id)
        slot.issued += 1
        return slot.issued

    def high_water_mark(self, session_id: str) -> int:
        return self._slot(session_id).accepted

    def current_snapshot(self, session_id: str) -> Optional[SolutionSnapshot]:
        slot = self._slots.get(session_id)
        return slot.snapshot if slot else None

    async def accept(self, session: Session, sequence: int, snapshot: SolutionSnapshot) -> None:
        """
        Offer a refreshed snapshot.

        Raises StaleResponse, leaving the slot untouched, when a refresh
        initiated after this one was already accepted. Compare-and-replace
        and the listener notification run under the session's lock.
        """
        slot = self._slot(session.session_id)
        async with slot.lock:
            if sequence < slot.accepted:
                raise StaleResponse(session.session_id, sequence, slot.accepted)
            slot.snapshot = snapshot
            slot.accepted = sequence
            if slot.dirty_since is not None and sequence > slot.dirty_since:
                slot.dirty_since = None
            logger.debug(f"Accepted refresh #{sequence} for session {session.session_id}")
            if self.listener:
                self.listener.on_solution_updated(session, snapshot)

    def mark_dirty(self, session_id: str) -> int:
        """
        Flag a session as needing a refresh after a mutation.

        Only a refresh initiated after this call can clear the flag, since an
        earlier one may have raced ahead of the server applying the change.
        Returns the watermark.
        """
        slot = self._slot(session_id)
        slot.dirty_since = slot.issued
        return slot.dirty_since

    def is_dirty(self, session_id: str) -> bool:
        slot = self._slots.get(session_id)
        return bool(slot and slot.dirty_since is not None)

    def dirty_sessions(self) -> List[str]:
        return [sid for sid, slot in self._slots.items() if slot.dirty_since is not None]
