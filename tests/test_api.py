"""Tests for the HTTP layer, with the engine dependency swapped for a scripted one."""

import json

import pytest
from fastapi.testclient import TestClient

from agent_workflow.config import config
from agent_workflow.engine import WorkflowEngine
from agent_workflow.errors import ModelGatewayFailure
from agent_workflow.gateway import FinalAnswer
from agent_workflow.main import RUNS, RunStore, app, get_engine
from agent_workflow.models import ExecutionSnapshot

NODES = [
    {"id": "a", "type": "workflow", "data": {"label": "Alpha", "description": "first", "content": "start"}},
    {"id": "b", "type": "workflow", "data": {"label": "Beta", "description": "second", "content": "finish"}},
]
EDGES = [{"id": "e1", "source": "a", "target": "b", "type": "animated"}]


@pytest.fixture
def gateway(scripted_gateway):
    return scripted_gateway()


@pytest.fixture
def client(gateway, registry):
    app.dependency_overrides[get_engine] = lambda: WorkflowEngine(gateway, registry)
    yield TestClient(app)
    app.dependency_overrides.clear()
    RUNS.clear()


def _lines(response):
    return [json.loads(line) for line in response.text.splitlines() if line.strip()]


class TestExecute:
    def test_streams_snapshots(self, client):
        response = client.post("/execute", json={"userInput": "hi", "nodes": NODES, "edges": EDGES})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")
        events = _lines(response)
        assert events[0]["status"] == "initializing"
        assert [e["done"] for e in events].count(True) == 1
        final = events[-1]
        assert final["done"] is True
        assert final["status"] == "completed"
        assert final["finalOutput"] == "Beta output"
        assert [s["nodeId"] for s in final["steps"]] == ["a", "b"]
        assert final["steps"][1]["input"] == "Alpha output"

    def test_failed_run_ends_with_error_event(self, client, gateway):
        gateway.replies = [ModelGatewayFailure("LLM API error: 503")]
        response = client.post("/execute", json={"userInput": "hi", "nodes": NODES, "edges": EDGES})

        final = _lines(response)[-1]
        assert final["done"] is True
        assert final["status"] == "error"
        assert final["error"] == "LLM API error: 503"
        assert final["steps"][0]["status"] == "error"

    def test_graph_without_entry(self, client):
        edges = EDGES + [{"id": "e2", "source": "b", "target": "a"}]
        final = _lines(client.post("/execute", json={"userInput": "hi", "nodes": NODES, "edges": edges}))[-1]
        assert final["status"] == "error"
        assert final["steps"] == []
        assert final["error"] == "No starting node found in workflow"

    def test_invalid_graph_rejected(self, client):
        edges = [{"id": "e1", "source": "a", "target": "ghost"}]
        response = client.post("/execute", json={"userInput": "hi", "nodes": NODES, "edges": edges})
        assert response.status_code == 422

    def test_missing_input_rejected(self, client):
        response = client.post("/execute", json={"userInput": "", "nodes": NODES, "edges": EDGES})
        assert response.status_code == 422

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.setattr(config, "openai_api_key", None)
        response = TestClient(app).post("/execute", json={"userInput": "hi", "nodes": NODES, "edges": EDGES})
        assert response.status_code == 500
        assert response.json()["detail"] == "OpenAI API key not configured"

    def test_crashed_run_ends_stream(self, client, caplog):
        class CrashingEngine:
            async def run(self, user_input, graph, publisher=None, **kwargs):
                raise RuntimeError("engine crashed")

        app.dependency_overrides[get_engine] = lambda: CrashingEngine()
        response = client.post("/execute", json={"userInput": "hi", "nodes": NODES, "edges": EDGES})

        assert response.status_code == 200
        assert response.text == ""
        assert "failed without a final snapshot" in caplog.text


class TestBackgroundExecutions:
    def test_start_and_poll(self, client):
        response = client.post("/executions", json={"userInput": "hi", "nodes": NODES, "edges": EDGES})
        assert response.status_code == 202
        execution_id = response.json()["executionId"]

        state = client.get(f"/executions/{execution_id}").json()
        assert state["executionId"] == execution_id
        assert state["status"] == "completed"
        assert state["done"] is True
        assert state["finalOutput"] == "Beta output"

    def test_unknown_execution(self, client):
        assert client.get("/executions/exec_missing").status_code == 404

    def test_oldest_finished_run_is_evicted(self, client, monkeypatch):
        monkeypatch.setattr(RUNS, "max_runs", 2)
        ids = [
            client.post("/executions", json={"userInput": "hi", "nodes": NODES, "edges": EDGES}).json()["executionId"]
            for _ in range(3)
        ]

        assert len(RUNS) == 2
        assert client.get(f"/executions/{ids[0]}").status_code == 404
        assert client.get(f"/executions/{ids[1]}").json()["status"] == "completed"
        assert client.get(f"/executions/{ids[2]}").json()["status"] == "completed"


class TestRunStore:
    def test_running_runs_are_kept_over_the_limit(self):
        store = RunStore(max_runs=1)
        store.put(ExecutionSnapshot(execution_id="a", status="running"))
        store.put(ExecutionSnapshot(execution_id="b", status="running"))
        assert len(store) == 2

        store.put(ExecutionSnapshot(execution_id="b", status="completed", done=True))
        assert store.get("b") is None
        assert store.get("a").status == "running"

    def test_update_keeps_start_order(self):
        store = RunStore(max_runs=2)
        store.put(ExecutionSnapshot(execution_id="a", status="running"))
        store.put(ExecutionSnapshot(execution_id="b", status="completed", done=True))
        store.put(ExecutionSnapshot(execution_id="a", status="completed", done=True))
        store.put(ExecutionSnapshot(execution_id="c", status="running"))

        assert store.get("a") is None
        assert store.get("b") is not None
        assert store.get("c") is not None


class TestMisc:
    def test_list_tools(self):
        tools = TestClient(app).get("/tools").json()["tools"]
        names = [t["name"] for t in tools]
        assert "web_search" in names
        assert all("parameters" in t for t in tools)

    def test_example_run(self, client, gateway):
        gateway.replies = [FinalAnswer(text="brief")]
        state = client.post("/example/run").json()
        assert state["status"] == "completed"
        assert [s["nodeId"] for s in state["steps"]] == ["intake", "research", "sentiment", "digest"]
        assert state["steps"][1]["input"] == "brief"
        assert state["finalOutput"] == "Digest Writer output"
