"""
HTTP transport for the remote task-assigning solver.

All upstream traffic goes through SolverTransport. It owns the wire format
(paths, fact change envelopes) and turns every failure into one of the typed
errors in plansync.models.errors, so callers never see an httpx exception.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from plansync.models.entities import AddTask, DeleteTask, FactChange
from plansync.models.errors import ServerError, TransportFailure, TransportTimeout

logger = logging.getLogger(__name__)

ADD_TASK_CLASS = "TaAddTaskProblemFactChange"
DELETE_TASK_CLASS = "TaDeleteTaskProblemFactChange"


def encode_fact_change(change: FactChange) -> Dict[str, Any]:
    """Build the discriminated envelope the solver server expects."""
    if isinstance(change, AddTask):
        body = {
            "$class": ADD_TASK_CLASS,
            "task": {
                "readyTime": change.ready_time,
                "priority": change.priority.value,
                "pinned": change.pinned,
            },
            "taskTypeId": change.task_type_id,
            "customerId": change.customer_id,
        }
    elif isinstance(change, DeleteTask):
        body = {"$class": DELETE_TASK_CLASS, "taskId": change.task_id}
    else:
        raise TypeError(f"Unsupported fact change: {type(change).__name__}")
    return {"problem-fact-change": body}


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "detail", "error"):
            if body.get(key):
                return str(body[key])
    return response.reason_phrase or f"HTTP {response.status_code}"


class SolverTransport:
    """
    Thin async wrapper around the solver's REST surface.

    Timeouts belong to the caller: pass a configured httpx.AsyncClient or a
    timeout value. The transport adds none of its own.
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> "SolverTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def request(self, method: str, path: str, json: Optional[Any] = None) -> Any:
        """
        Send one request and decode its JSON body.

        Returns None for an empty 2xx body.

        Raises:
            TransportTimeout: the request timed out
            TransportFailure: the request never got a response
            ServerError: non-2xx status or an undecodable success body
        """
        try:
            response = await self.client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            logger.warning(f"{method} {path} timed out: {e!r}")
            raise TransportTimeout(f"{method} {path} timed out") from e
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {e!r}")
            raise TransportFailure(f"{method} {path} failed: {e}") from e

        if not response.is_success:
            message = _error_message(response)
            logger.warning(f"{method} {path} -> {response.status_code}: {message}")
            raise ServerError(message, status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ServerError(f"Malformed JSON from {method} {path}", status_code=response.status_code) from e

    async def list_tenants(self) -> List[int]:
        body = await self.request("GET", "/tenants")
        return [int(t) for t in body or []]

    async def generate(self, tenant_id: int, task_list_size: int, employee_list_size: int) -> None:
        await self.request(
            "POST", f"/tenants/{tenant_id}/solver/generate/{task_list_size}/{employee_list_size}"
        )

    async def submit_problem(self, tenant_id: int, payload: Dict[str, Any]) -> None:
        await self.request("POST", f"/tenants/{tenant_id}/solver", json=payload)

    async def submit_fact_change(self, tenant_id: int, change: FactChange) -> None:
        await self.request(
            "POST", f"/tenants/{tenant_id}/solver/problemFactChanges", json=encode_fact_change(change)
        )

    async def best_solution(self, tenant_id: int) -> Dict[str, Any]:
        body = await self.request("GET", f"/tenants/{tenant_id}/solver/bestSolution")
        if body is None:
            return {}
        if not isinstance(body, dict):
            raise ServerError(f"Expected a solution object for tenant {tenant_id}")
        return body

    async def best_score(self, tenant_id: int) -> Any:
        return await self.request("GET", f"/tenants/{tenant_id}/solver/bestScore")

    async def solver_status(self, tenant_id: int) -> Optional[str]:
        return await self.request("GET", f"/tenants/{tenant_id}/solver/status")
