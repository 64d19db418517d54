from dataclasses import dataclass
from typing import Dict, List

from plansync.models.entities import ProblemSpec


@dataclass(frozen=True)
class CatalogProblem:
    id: int
    task_list_size: int
    employee_list_size: int

    @property
    def label(self) -> str:
        tasks = "task" if self.task_list_size == 1 else "tasks"
        employees = "employee" if self.employee_list_size == 1 else "employees"
        return f"{self.task_list_size} {tasks} {self.employee_list_size} {employees}"

    def to_spec(self) -> ProblemSpec:
        return ProblemSpec(
            problem_id=self.id,
            task_list_size=self.task_list_size,
            employee_list_size=self.employee_list_size,
        )


PROBLEMS: List[CatalogProblem] = [
    CatalogProblem(0, 1, 1),
    CatalogProblem(1, 10, 4),
    CatalogProblem(2, 20, 4),
    CatalogProblem(3, 40, 10),
    CatalogProblem(4, 100, 16),
    CatalogProblem(5, 200, 16),
    CatalogProblem(6, 400, 32),
    CatalogProblem(7, 400, 64),
    CatalogProblem(8, 600, 64),
    CatalogProblem(9, 1000, 128),
]

_BY_ID: Dict[int, CatalogProblem] = {p.id: p for p in PROBLEMS}


def get_problem(problem_id: int) -> CatalogProblem:
    """Look up a pre-built problem size. Raises KeyError for unknown ids."""
    try:
        return _BY_ID[problem_id]
    except KeyError:
        raise KeyError(f"No catalog problem with id {problem_id}") from None
