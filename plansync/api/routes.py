from typing import Any, Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field, model_validator

from plansync.engine.synchronizer import SessionSynchronizer
from plansync.models.catalog import PROBLEMS, get_problem
from plansync.models.entities import AddTask, DeleteTask, FactChangeAck, Priority, ProblemSpec, Session, SolutionSnapshot
from plansync.utils.snapshot import format_score, task_rows

router = APIRouter()
logger = logging.getLogger(__name__)


def get_synchronizer(request: Request) -> SessionSynchronizer:
    return request.app.state.synchronizer


class CatalogProblemDTO(BaseModel):
    id: int
    task_list_size: int
    employee_list_size: int
    label: str


class SubmitRequest(BaseModel):
    problem_id: int = Field(..., ge=0)
    task_list_size: Optional[int] = Field(None, ge=1)
    employee_list_size: Optional[int] = Field(None, ge=1)

    @model_validator(mode="after")
    def sizes_together(self):
        """Sizes are given together or not at all (then taken from the catalog)."""
        if (self.task_list_size is None) != (self.employee_list_size is None):
            raise ValueError("task_list_size and employee_list_size must be given together")
        return self

    def to_spec(self) -> ProblemSpec:
        if self.task_list_size is None:
            try:
                return get_problem(self.problem_id).to_spec()
            except KeyError as e:
                raise HTTPException(status_code=400, detail=str(e.args[0]))
        return ProblemSpec(
            problem_id=self.problem_id,
            task_list_size=self.task_list_size,
            employee_list_size=self.employee_list_size,
        )


class SessionDTO(BaseModel):
    session_id: str
    tenant_id: int
    status: str
    last_error: Optional[str] = None
    has_snapshot: bool = False
    dirty: bool = False

    @classmethod
    def from_domain(cls, session: Session, sync: SessionSynchronizer) -> "SessionDTO":
        return cls(
            session_id=session.session_id,
            tenant_id=session.tenant_id,
            status=session.status.value,
            last_error=session.last_error,
            has_snapshot=sync.cache.current_snapshot(session.session_id) is not None,
            dirty=sync.cache.is_dirty(session.session_id),
        )


class AddTaskRequest(BaseModel):
    ready_time: int = Field(0, ge=0, description="Minutes after the planning start")
    priority: Priority = Priority.MINOR
    pinned: bool = False
    task_type_id: int
    customer_id: int


class AckDTO(BaseModel):
    session_id: str
    change: str
    dirty_since: int

    @classmethod
    def from_domain(cls, ack: FactChangeAck) -> "AckDTO":
        return cls(session_id=ack.session_id, change=type(ack.change).__name__, dirty_since=ack.dirty_since)


class SolutionResponse(BaseModel):
    session_id: str
    ready: bool
    score: Optional[str] = None
    feasible: Optional[bool] = None
    task_count: int = 0
    solution: Optional[Dict[str, Any]] = None

    @classmethod
    def build(cls, session_id: str, snapshot: Optional[SolutionSnapshot]) -> "SolutionResponse":
        if snapshot is None:
            return cls(session_id=session_id, ready=False)
        return cls(
            session_id=session_id,
            ready=True,
            score=format_score(snapshot.score),
            feasible=snapshot.score.is_feasible,
            task_count=len(snapshot.task_list),
            solution=snapshot.raw,
        )


class TaskRowDTO(BaseModel):
    id: int
    task_type: str
    customer: str
    priority: Optional[str] = None
    pinned: bool = False
    employee_id: Optional[int] = None
    start_time: Optional[int] = None
    end_time: Optional[int] = None


@router.get("/problems", response_model=List[CatalogProblemDTO], summary="List pre-built problem sizes")
def list_problems():
    return [
        CatalogProblemDTO(id=p.id, task_list_size=p.task_list_size,
                          employee_list_size=p.employee_list_size, label=p.label)
        for p in PROBLEMS
    ]


@router.get("/sessions", response_model=List[SessionDTO], summary="List known sessions")
def list_sessions(sync: SessionSynchronizer = Depends(get_synchronizer)):
    return [SessionDTO.from_domain(s, sync) for s in sync.registry.list_all()]


@router.post("/sessions", response_model=SessionDTO, status_code=status.HTTP_201_CREATED,
             summary="Submit a problem")
async def submit_problem(req: SubmitRequest, sync: SessionSynchronizer = Depends(get_synchronizer)):
    """
    Submit a problem to the solver and start tracking its session.

    Without explicit sizes the problem id is looked up in the catalog.

    **Error Handling:**
    - 400: unknown catalog problem
    - 409: the problem is already submitted and active
    - 502/503/504: the solver rejected the request or could not be reached
    """
    spec = req.to_spec()
    logger.info(f"Submit request: problem={spec.problem_id} "
                f"tasks={spec.task_list_size} employees={spec.employee_list_size}")
    session = await sync.submit(spec)
    return SessionDTO.from_domain(session, sync)


@router.post("/sessions/discover", response_model=List[SessionDTO], summary="Reattach to running sessions")
async def discover_sessions(sync: SessionSynchronizer = Depends(get_synchronizer)):
    sessions = await sync.discover()
    return [SessionDTO.from_domain(s, sync) for s in sessions]


@router.get("/sessions/{session_id}", response_model=SessionDTO)
def get_session(session_id: str, sync: SessionSynchronizer = Depends(get_synchronizer)):
    return SessionDTO.from_domain(sync.registry.require(session_id), sync)


@router.post("/sessions/{session_id}/tasks", response_model=AckDTO, status_code=status.HTTP_202_ACCEPTED,
             summary="Add a task to a live session")
async def add_task(session_id: str, req: AddTaskRequest, sync: SessionSynchronizer = Depends(get_synchronizer)):
    """
    Queue an AddTask fact change. The task shows up in the solution once a
    refresh observes it; a failed add is not retried since it could duplicate.
    """
    change = AddTask(
        ready_time=req.ready_time,
        priority=req.priority,
        pinned=req.pinned,
        task_type_id=req.task_type_id,
        customer_id=req.customer_id,
    )
    ack = await sync.apply(session_id, change)
    return AckDTO.from_domain(ack)


@router.delete("/sessions/{session_id}/tasks/{task_id}", response_model=AckDTO,
               status_code=status.HTTP_202_ACCEPTED, summary="Remove a task from a live session")
async def delete_task(session_id: str, task_id: int, sync: SessionSynchronizer = Depends(get_synchronizer)):
    ack = await sync.apply(session_id, DeleteTask(task_id=task_id))
    return AckDTO.from_domain(ack)


@router.post("/sessions/{session_id}/refresh", response_model=SolutionResponse, summary="Refresh the best solution")
async def refresh_solution(session_id: str, sync: SessionSynchronizer = Depends(get_synchronizer)):
    """Fetch now, then answer with whatever snapshot the cache holds afterwards."""
    await sync.refresh(session_id)
    return SolutionResponse.build(session_id, sync.current_snapshot(session_id))


@router.get("/sessions/{session_id}/solution", response_model=SolutionResponse)
def get_solution(session_id: str, sync: SessionSynchronizer = Depends(get_synchronizer)):
    return SolutionResponse.build(session_id, sync.current_snapshot(session_id))


@router.get("/sessions/{session_id}/tasks", response_model=List[TaskRowDTO])
def list_tasks(session_id: str, sync: SessionSynchronizer = Depends(get_synchronizer)):
    snapshot = sync.current_snapshot(session_id)
    if snapshot is None:
        return []
    return [TaskRowDTO(**row) for row in task_rows(snapshot)]


@router.get("/sessions/{session_id}/status", summary="Remote solver status")
async def solver_status(session_id: str, sync: SessionSynchronizer = Depends(get_synchronizer)):
    return {"session_id": session_id, "solver_status": await sync.solver_status(session_id)}
