from typing import Any, Dict, List, Optional

from plansync.models.entities import (
    Customer,
    Employee,
    Priority,
    Score,
    SolutionSnapshot,
    TaskRecord,
    TaskType,
)
from plansync.models.errors import ServerError


def _ref(value: Any) -> Optional[int]:
    # references arrive either as bare ids or as nested objects
    if value is None:
        return None
    if isinstance(value, dict):
        return _ref(value.get("id"))
    return int(value)


def _task(raw: Dict[str, Any]) -> TaskRecord:
    priority = raw.get("priority")
    return TaskRecord(
        id=int(raw["id"]),
        task_type_id=_ref(raw.get("taskType", raw.get("taskTypeId"))),
        customer_id=_ref(raw.get("customer", raw.get("customerId"))),
        ready_time=int(raw.get("readyTime") or 0),
        priority=Priority(priority) if priority else None,
        pinned=bool(raw.get("pinned", False)),
        employee_id=_ref(raw.get("employee")),
        start_time=raw.get("startTime"),
        end_time=raw.get("endTime"),
    )


def parse_snapshot(raw: Dict[str, Any]) -> Optional[SolutionSnapshot]:
    """
    Build a SolutionSnapshot from a best-solution response.

    Returns None when the response has no score (the solver has not produced
    a first plan yet). Raises ServerError for a malformed or referentially
    incomplete payload.
    """
    if raw.get("score") is None:
        return None
    try:
        snapshot = SolutionSnapshot(
            score=Score.parse(raw["score"]),
            task_list=[_task(t) for t in raw.get("taskList") or []],
            task_type_list=[
                TaskType(id=int(t["id"]), code=t.get("code"), title=t.get("title"),
                         base_duration=t.get("baseDuration"))
                for t in raw.get("taskTypeList") or []
            ],
            customer_list=[Customer(id=int(c["id"]), name=c.get("name")) for c in raw.get("customerList") or []],
            employee_list=[
                Employee(id=int(e["id"]), full_name=e.get("fullName"))
                for e in raw.get("employeeList") or []
            ],
            raw=raw,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ServerError(f"Malformed solution payload: {e}") from e

    dangling = check_references(snapshot)
    if dangling:
        raise ServerError(f"Incomplete solution payload: {', '.join(dangling)}")
    return snapshot


def check_references(snapshot: SolutionSnapshot) -> List[str]:
    """Return a description of every task reference that does not resolve in the snapshot."""
    type_ids = {t.id for t in snapshot.task_type_list}
    customer_ids = {c.id for c in snapshot.customer_list}
    dangling = []
    for task in snapshot.task_list:
        if task.task_type_id not in type_ids:
            dangling.append(f"task {task.id} -> taskType {task.task_type_id}")
        if task.customer_id not in customer_ids:
            dangling.append(f"task {task.id} -> customer {task.customer_id}")
    return dangling


def task_rows(snapshot: SolutionSnapshot) -> List[Dict[str, Any]]:
    """Flatten tasks with their type and customer labels resolved, for list views."""
    types = {t.id: t for t in snapshot.task_type_list}
    customers = {c.id: c for c in snapshot.customer_list}
    return [
        {
            "id": task.id,
            "task_type": types[task.task_type_id].label,
            "customer": customers[task.customer_id].label,
            "priority": task.priority.value if task.priority else None,
            "pinned": task.pinned,
            "employee_id": task.employee_id,
            "start_time": task.start_time,
            "end_time": task.end_time,
        }
        for task in snapshot.task_list
    ]


def format_score(score: Score) -> str:
    text = "[{}]hard/[{}]soft".format(
        "/".join(str(v) for v in score.hard),
        "/".join(str(v) for v in score.soft),
    )
    if score.init:
        text = f"{score.init}init/{text}"
    return text
