"""
Example: following a live solver session from Python

Submits a catalog problem, prints every accepted solution, adds a task
while the solver keeps running and removes it again.

Run against a solver listening on SOLVER_URL (default http://localhost:8080).
"""

import asyncio

from plansync.config.settings import get_settings
from plansync.engine.events import SyncListener
from plansync.engine.synchronizer import SessionSynchronizer
from plansync.models.catalog import get_problem
from plansync.models.entities import AddTask, DeleteTask, Priority
from plansync.models.errors import FactChangeRejected
from plansync.transport.client import SolverTransport
from plansync.utils.logging_config import setup_logging
from plansync.utils.snapshot import format_score


# 1. Subscribe to the callbacks the presentation layer would use
class PrintingListener(SyncListener):
    def on_session_active(self, session):
        print(f"session {session.session_id} is active")

    def on_solution_updated(self, session, snapshot):
        print(f"{session.session_id}: {format_score(snapshot.score)} with {len(snapshot.task_list)} tasks")

    def on_error(self, kind, detail):
        print(f"error ({kind.value}): {detail}")


async def main():
    settings = get_settings()
    async with SolverTransport(settings.solver_url, timeout=settings.request_timeout_seconds) as transport:
        sync = SessionSynchronizer(transport)
        sync.subscribe(PrintingListener())

        # 2. Submit "10 tasks 4 employees"
        session = await sync.submit(get_problem(1).to_spec())

        # 3. Give the solver a moment, then add a task
        await asyncio.sleep(2)
        await sync.apply(session.session_id, AddTask(
            ready_time=0, priority=Priority.MAJOR, pinned=False, task_type_id=2, customer_id=5,
        ))

        # 4. Remove the newest task; a rejection here is safe to ignore
        await asyncio.sleep(2)
        snapshot = await sync.refresh(session.session_id) or sync.current_snapshot(session.session_id)
        if snapshot and snapshot.task_list:
            newest = max(t.id for t in snapshot.task_list)
            try:
                await sync.apply(session.session_id, DeleteTask(task_id=newest))
            except FactChangeRejected as e:
                if not e.ignorable:
                    raise
                print(f"task {newest} was already gone")


if __name__ == "__main__":
    setup_logging()
    asyncio.run(main())
