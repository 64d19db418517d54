import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import make_solution
from plansync.config.settings import Settings
from plansync.main import create_app


@pytest.fixture
def client(synchronizer):
    app = create_app(settings=Settings(auto_refresh=False), synchronizer=synchronizer)
    with TestClient(app) as client:
        yield client


class TestProblems:
    def test_catalog_listed(self, client):
        response = client.get("/api/v1/problems")

        assert response.status_code == 200
        problems = response.json()
        assert problems[1] == {"id": 1, "task_list_size": 10, "employee_list_size": 4,
                               "label": "10 tasks 4 employees"}


class TestSessionsEndpoint:
    """Integration tests for session submission and lookup."""

    def test_submit_from_catalog(self, client, solver):
        response = client.post("/api/v1/sessions", json={"problem_id": 2})

        assert response.status_code == 201
        data = response.json()
        assert data["session_id"] == "tenant-2"
        assert data["status"] == "active"
        assert data["has_snapshot"] is False
        assert ("POST", "/tenants/2/solver/generate/20/4") in solver.calls

    def test_submit_explicit_sizes(self, client, solver):
        response = client.post("/api/v1/sessions",
                               json={"problem_id": 42, "task_list_size": 3, "employee_list_size": 2})

        assert response.status_code == 201
        assert ("POST", "/tenants/42/solver/generate/3/2") in solver.calls

    def test_submit_unknown_catalog_problem(self, client, solver):
        response = client.post("/api/v1/sessions", json={"problem_id": 42})

        assert response.status_code == 400
        assert solver.calls == []

    def test_submit_half_sizes_invalid(self, client):
        response = client.post("/api/v1/sessions", json={"problem_id": 1, "task_list_size": 3})
        assert response.status_code == 422

    def test_duplicate_submit_conflicts(self, client, solver):
        client.post("/api/v1/sessions", json={"problem_id": 1})
        response = client.post("/api/v1/sessions", json={"problem_id": 1})

        assert response.status_code == 409
        assert response.json()["error_code"] == "INVALID_STATE"
        assert solver.calls_to("POST", "/solver/generate") == 1

    def test_upstream_rejection_is_bad_gateway(self, client, solver):
        solver.fail("POST", "/tenants/1/solver/generate/10/4",
                    httpx.Response(400, json={"message": "Problem (1) already exists."}))

        response = client.post("/api/v1/sessions", json={"problem_id": 1})

        assert response.status_code == 502
        assert "already exists" in response.json()["detail"]
        assert client.get("/api/v1/sessions/tenant-1").json()["status"] == "failed"

    def test_upstream_timeout(self, client, solver):
        request = httpx.Request("POST", "http://solver/tenants/1/solver/generate/10/4")
        solver.fail("POST", "/tenants/1/solver/generate/10/4", httpx.ConnectTimeout("slow", request=request))

        response = client.post("/api/v1/sessions", json={"problem_id": 1})

        assert response.status_code == 504
        assert response.json()["error_code"] == "TIMEOUT"

    def test_unknown_session(self, client):
        assert client.get("/api/v1/sessions/tenant-9").status_code == 404

    def test_list_and_discover(self, client, solver):
        solver.tenants[8] = make_solution()

        discovered = client.post("/api/v1/sessions/discover")
        listed = client.get("/api/v1/sessions")

        assert [s["session_id"] for s in discovered.json()] == ["tenant-8"]
        assert [s["session_id"] for s in listed.json()] == ["tenant-8"]
        assert listed.json()[0]["has_snapshot"] is True


class TestTasksEndpoint:
    def test_add_task_then_solution_visible(self, client, solver):
        client.post("/api/v1/sessions", json={"problem_id": 1})
        solver.tenants[1] = make_solution(score="[0]hard/[-3/0/0/0]soft", task_ids=range(11))

        response = client.post("/api/v1/sessions/tenant-1/tasks",
                               json={"task_type_id": 2, "customer_id": 5, "priority": "MAJOR"})

        assert response.status_code == 202
        assert response.json()["change"] == "AddTask"
        solution = client.get("/api/v1/sessions/tenant-1/solution").json()
        assert solution["ready"] is True
        assert solution["score"] == "[0]hard/[-3/0/0/0]soft"
        assert solution["task_count"] == 11

    def test_add_task_rejects_bad_priority(self, client):
        client.post("/api/v1/sessions", json={"problem_id": 1})
        response = client.post("/api/v1/sessions/tenant-1/tasks",
                               json={"task_type_id": 2, "customer_id": 5, "priority": "URGENT"})
        assert response.status_code == 422

    def test_delete_missing_task_flagged_ignorable(self, client):
        client.post("/api/v1/sessions", json={"problem_id": 1})

        response = client.delete("/api/v1/sessions/tenant-1/tasks/999")

        assert response.status_code == 502
        assert response.json()["ignorable"] is True

    def test_task_rows(self, client, solver):
        client.post("/api/v1/sessions", json={"problem_id": 1})
        assert client.get("/api/v1/sessions/tenant-1/tasks").json() == []

        solver.tenants[1] = make_solution(task_ids=(3,))
        client.post("/api/v1/sessions/tenant-1/refresh")

        rows = client.get("/api/v1/sessions/tenant-1/tasks").json()
        assert rows[0]["task_type"] == "Type 3"
        assert rows[0]["customer"] == "Customer 3"


class TestRefreshEndpoint:
    def test_refresh_before_first_plan(self, client):
        client.post("/api/v1/sessions", json={"problem_id": 1})

        response = client.post("/api/v1/sessions/tenant-1/refresh")

        assert response.status_code == 200
        assert response.json()["ready"] is False

    def test_refresh_transport_failure(self, client, solver):
        client.post("/api/v1/sessions", json={"problem_id": 1})
        request = httpx.Request("GET", "http://solver/tenants/1/solver/bestSolution")
        solver.fail("GET", "/tenants/1/solver/bestSolution", httpx.ConnectError("reset", request=request))

        response = client.post("/api/v1/sessions/tenant-1/refresh")

        assert response.status_code == 503
        assert client.get("/api/v1/sessions/tenant-1").json()["status"] == "active"

    def test_solver_status(self, client):
        client.post("/api/v1/sessions", json={"problem_id": 1})
        response = client.get("/api/v1/sessions/tenant-1/status")
        assert response.json() == {"session_id": "tenant-1", "solver_status": "SOLVING"}


class TestHealthCheck:
    def test_health_check(self, client):
        """Health endpoint should return OK."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["app"] == "PlanSync"
