import asyncio
import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from plansync.engine.events import SyncListener
from plansync.engine.synchronizer import SessionSynchronizer
from plansync.transport.client import SolverTransport


def make_solution(score: Optional[Any] = "[0]hard/[-3/0/0/0]soft", task_ids=(1,)) -> Dict[str, Any]:
    """Solution document shaped like the solver's bestSolution response."""
    solution = {
        "taskTypeList": [{"id": i, "code": f"T{i}", "title": f"Type {i}", "baseDuration": 30} for i in range(4)],
        "customerList": [{"id": i, "name": f"Customer {i}"} for i in range(6)],
        "employeeList": [{"id": 100, "fullName": "Amy Cole"}],
        "taskList": [
            {"id": tid, "taskType": tid % 4, "customer": tid % 6, "readyTime": 0,
             "priority": "MINOR", "pinned": False, "employee": 100, "startTime": 0, "endTime": 30}
            for tid in task_ids
        ],
    }
    if score is not None:
        solution["score"] = score
    return solution


class FakeSolver:
    """In-memory stand-in for the remote solver's REST surface."""

    def __init__(self):
        self.tenants: Dict[int, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.fact_changes: List[Dict[str, Any]] = []
        self.failures: Dict[Tuple[str, str], Any] = {}
        # bestSolution responses held back until their event is set, served in arrival order
        self.pending: List[Tuple[asyncio.Event, Dict[str, Any]]] = []
        self.status = "SOLVING"
        # requests parked until their event is set, one-shot per (method, path)
        self.blocked: Dict[Tuple[str, str], asyncio.Event] = {}

    def calls_to(self, method: str, fragment: str) -> int:
        return sum(1 for m, p in self.calls if m == method and fragment in p)

    def fail(self, method: str, path: str, failure: Any) -> None:
        self.failures[(method, path)] = failure

    def block(self, method: str, path: str) -> asyncio.Event:
        event = asyncio.Event()
        self.blocked[(method, path)] = event
        return event

    def hold(self, body: Dict[str, Any]) -> asyncio.Event:
        event = asyncio.Event()
        self.pending.append((event, body))
        return event

    async def handle(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        self.calls.append((method, path))

        gate = self.blocked.pop((method, path), None)
        if gate is not None:
            await gate.wait()

        failure = self.failures.pop((method, path), None)
        if isinstance(failure, Exception):
            raise failure
        if failure is not None:
            return failure

        if path == "/tenants":
            return httpx.Response(200, json=sorted(self.tenants))

        parts = path.strip("/").split("/")
        tenant_id = int(parts[1])
        action = parts[2:]

        if method == "POST" and action[:2] == ["solver", "generate"]:
            if tenant_id in self.tenants:
                return _error(400, f"Problem ({tenant_id}) already exists.")
            self.tenants[tenant_id] = make_solution(score=None, task_ids=range(int(action[2])))
            return httpx.Response(200)

        if method == "POST" and action == ["solver"]:
            if tenant_id in self.tenants:
                return _error(400, f"Problem ({tenant_id}) already exists.")
            body = json.loads(request.content)
            body.pop("score", None)
            self.tenants[tenant_id] = body
            return httpx.Response(200)

        if tenant_id not in self.tenants:
            return _error(404, f"Problem ({tenant_id}) does not have a solver task submitted.")

        if method == "POST" and action == ["solver", "problemFactChanges"]:
            change = json.loads(request.content)["problem-fact-change"]
            if change["$class"] == "TaDeleteTaskProblemFactChange":
                known = {t["id"] for t in self.tenants[tenant_id]["taskList"]}
                if change["taskId"] not in known:
                    return _error(400, f"Task ({change['taskId']}) does not exist.")
            self.fact_changes.append(change)
            return httpx.Response(200)

        if method == "GET" and action == ["solver", "bestSolution"]:
            if self.pending:
                event, body = self.pending.pop(0)
                await event.wait()
                return httpx.Response(200, json=body)
            return httpx.Response(200, json=self.tenants[tenant_id])

        if method == "GET" and action == ["solver", "bestScore"]:
            score = self.tenants[tenant_id].get("score")
            if score is None:
                return _error(404, "Solving has not started yet.")
            return httpx.Response(200, json=score)

        if method == "GET" and action == ["solver", "status"]:
            return httpx.Response(200, json=self.status)

        return _error(404, f"No route for {method} {path}")


def _error(status_code: int, message: str) -> httpx.Response:
    return httpx.Response(status_code, json={"status": status_code, "message": message})


class RecordingListener(SyncListener):
    def __init__(self):
        self.active = []
        self.updates = []
        self.errors = []

    def on_session_active(self, session):
        self.active.append(session.session_id)

    def on_solution_updated(self, session, snapshot):
        self.updates.append((session.session_id, snapshot))

    def on_error(self, kind, detail):
        self.errors.append((kind, detail))


def make_transport(solver: FakeSolver) -> SolverTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(solver.handle), base_url="http://solver")
    return SolverTransport(client=client)


async def settle(rounds: int = 20) -> None:
    """Let scheduled tasks run until they block on the fake solver."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def solver():
    return FakeSolver()


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def synchronizer(solver, listener):
    """Synchronizer wired to the fake solver, with a recording listener subscribed."""
    sync = SessionSynchronizer(make_transport(solver))
    sync.subscribe(listener)
    return sync
