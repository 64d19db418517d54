import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class SessionStatus(str, Enum):
    UNSUBMITTED = "unsubmitted"
    SUBMITTING = "submitting"
    ACTIVE = "active"
    FAILED = "failed"


class Priority(str, Enum):
    MINOR = "MINOR"
    MAJOR = "MAJOR"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class ProblemSpec:
    """
    Parameters used to create a remote session.

    Either generation sizes (task_list_size, employee_list_size) or a fully
    serialized problem payload, never both.
    """
    problem_id: int
    task_list_size: Optional[int] = None
    employee_list_size: Optional[int] = None
    payload: Optional[Dict[str, Any]] = field(default=None, compare=False, hash=False)

    def __post_init__(self):
        generated = self.task_list_size is not None or self.employee_list_size is not None
        if generated and self.payload is not None:
            raise ValueError("problem takes either generation sizes or a payload, not both")
        if generated:
            if self.task_list_size is None or self.employee_list_size is None:
                raise ValueError("task_list_size and employee_list_size are required together")
            if self.task_list_size < 1 or self.employee_list_size < 1:
                raise ValueError("task_list_size and employee_list_size must be positive")
        elif self.payload is None:
            raise ValueError("problem needs generation sizes or a payload")

    @property
    def is_generated(self) -> bool:
        return self.payload is None


@dataclass
class Session:
    session_id: str
    tenant_id: int
    spec: Optional[ProblemSpec] = None  # None for sessions discovered on the server
    status: SessionStatus = SessionStatus.UNSUBMITTED
    last_error: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE


@dataclass(frozen=True)
class AddTask:
    ready_time: int  # minutes
    priority: Priority
    pinned: bool
    task_type_id: int
    customer_id: int

    def __post_init__(self):
        # accept plain strings from callers; the wire only knows the enum values
        object.__setattr__(self, "priority", Priority(self.priority))
        if self.ready_time < 0:
            raise ValueError("ready_time must be >= 0")


@dataclass(frozen=True)
class DeleteTask:
    task_id: int


FactChange = Union[AddTask, DeleteTask]


@dataclass(frozen=True)
class FactChangeAck:
    session_id: str
    change: FactChange
    dirty_since: int  # sequence watermark at which the session became dirty


_LEVELS_RE = re.compile(r"^(?:(-?\d+)init/)?\[([^\]]*)\]hard/\[([^\]]*)\]soft$")


def _levels(text: str) -> Tuple[int, ...]:
    text = text.strip()
    if not text:
        return ()
    return tuple(int(part) for part in text.split("/"))


@dataclass(frozen=True, order=True)
class Score:
    """Bendable score. Compared level by level: init, then hard, then soft."""
    init: int = 0
    hard: Tuple[int, ...] = ()
    soft: Tuple[int, ...] = ()

    @classmethod
    def parse(cls, raw: Union[str, Dict[str, Any], "Score"]) -> "Score":
        if isinstance(raw, Score):
            return raw
        if isinstance(raw, str):
            match = _LEVELS_RE.match(raw.strip())
            if not match:
                raise ValueError(f"unrecognized score format: {raw!r}")
            init, hard, soft = match.groups()
            return cls(init=int(init or 0), hard=_levels(hard), soft=_levels(soft))
        if isinstance(raw, dict):
            hard = raw.get("hard", raw.get("hardScores", ()))
            soft = raw.get("soft", raw.get("softScores", ()))
            if isinstance(hard, int):
                hard = [hard]
            if isinstance(soft, int):
                soft = [soft]
            return cls(
                init=int(raw.get("init", raw.get("initScore", 0)) or 0),
                hard=tuple(int(v) for v in hard),
                soft=tuple(int(v) for v in soft),
            )
        raise ValueError(f"unrecognized score format: {raw!r}")

    @property
    def is_feasible(self) -> bool:
        return self.init == 0 and all(level >= 0 for level in self.hard)


@dataclass(frozen=True)
class TaskType:
    id: int
    code: Optional[str] = None
    title: Optional[str] = None
    base_duration: Optional[int] = None

    @property
    def label(self) -> str:
        return self.title or self.code or str(self.id)


@dataclass(frozen=True)
class Customer:
    id: int
    name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.name or str(self.id)


@dataclass(frozen=True)
class Employee:
    id: int
    full_name: Optional[str] = None


@dataclass(frozen=True)
class TaskRecord:
    id: int
    task_type_id: int
    customer_id: int
    ready_time: int = 0
    priority: Optional[Priority] = None
    pinned: bool = False
    employee_id: Optional[int] = None
    start_time: Optional[int] = None
    end_time: Optional[int] = None


@dataclass(frozen=True)
class SolutionSnapshot:
    """Best-known plan for a session, replaced whole on every accepted refresh."""
    score: Score
    task_list: List[TaskRecord] = field(default_factory=list)
    task_type_list: List[TaskType] = field(default_factory=list)
    customer_list: List[Customer] = field(default_factory=list)
    employee_list: List[Employee] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)
