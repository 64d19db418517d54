import logging
from typing import List

from plansync.models.entities import Session, SolutionSnapshot
from plansync.models.errors import ErrorKind

logger = logging.getLogger(__name__)


class SyncListener:
    """
    Callbacks exposed to the presentation layer.
    Subclass and override what you need; the defaults do nothing.
    """

    def on_session_active(self, session: Session) -> None:
        pass

    def on_solution_updated(self, session: Session, snapshot: SolutionSnapshot) -> None:
        pass

    def on_error(self, kind: ErrorKind, detail: str) -> None:
        pass


class EventBus(SyncListener):
    """Fans every callback out to the registered listeners."""

    def __init__(self):
        self.listeners: List[SyncListener] = []

    def subscribe(self, listener: SyncListener) -> None:
        self.listeners.append(listener)

    def unsubscribe(self, listener: SyncListener) -> None:
        self.listeners.remove(listener)

    def _dispatch(self, name: str, *args) -> None:
        for listener in list(self.listeners):
            try:
                getattr(listener, name)(*args)
            except Exception:
                # a broken subscriber must not break synchronization
                logger.exception(f"Listener {listener!r} failed in {name}")

    def on_session_active(self, session: Session) -> None:
        self._dispatch("on_session_active", session)

    def on_solution_updated(self, session: Session, snapshot: SolutionSnapshot) -> None:
        self._dispatch("on_solution_updated", session, snapshot)

    def on_error(self, kind: ErrorKind, detail: str) -> None:
        self._dispatch("on_error", kind, detail)
