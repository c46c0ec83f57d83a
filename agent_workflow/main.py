# agent_workflow/main.py
import asyncio
import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import Field, ValidationError

from . import tools
from .config import config
from .engine import WorkflowEngine
from .errors import WorkflowError
from .gateway import OpenAIGateway
from .models import ExecutionSnapshot, Graph, WireModel, new_execution_id
from .publisher import SnapshotStream, StatePublisher
from .workflows import research_digest

logger = logging.getLogger(__name__)

app = FastAPI(title="Agent Workflow Engine")

class RunStore:
    """Latest snapshot per background execution, in start order.

    Holding more than `max_runs` evicts the oldest finished runs. Runs still in
    progress are never evicted.
    """

    def __init__(self, max_runs: int):
        self.max_runs = max_runs
        self.runs: "OrderedDict[str, ExecutionSnapshot]" = OrderedDict()

    def put(self, snapshot: ExecutionSnapshot):
        self.runs[snapshot.execution_id] = snapshot
        self._evict()

    def get(self, execution_id: str) -> Optional[ExecutionSnapshot]:
        return self.runs.get(execution_id)

    def clear(self):
        self.runs.clear()

    def __len__(self):
        return len(self.runs)

    def _evict(self):
        excess = len(self.runs) - self.max_runs
        if excess <= 0:
            return
        finished = [key for key, snapshot in self.runs.items() if snapshot.done]
        for key in finished[:excess]:
            logger.debug("evicting stored execution %s", key)
            del self.runs[key]


RUNS = RunStore(config.max_stored_runs)


def get_engine() -> WorkflowEngine:
    # one gateway per request, no shared client
    if not config.openai_api_key:
        raise HTTPException(status_code=500, detail="OpenAI API key not configured")
    gateway = OpenAIGateway(
        api_key=config.openai_api_key,
        model=config.model,
        temperature=config.temperature,
        base_url=config.openai_base_url,
        timeout=config.request_timeout,
        max_retries=config.max_retries,
    )
    return WorkflowEngine(
        gateway,
        tools.registry,
        max_tool_rounds=config.max_tool_rounds,
        max_steps=config.max_steps,
    )


class ExecutePayload(WireModel):
    user_input: str = Field(min_length=1)
    nodes: List[Dict[str, Any]]
    edges: List[Dict[str, Any]]

    def graph(self) -> Graph:
        try:
            return Graph.from_flow(self.nodes, self.edges)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))


class ExampleRunPayload(WireModel):
    user_input: Optional[str] = None


def _dump(snapshot: ExecutionSnapshot) -> Dict[str, Any]:
    return snapshot.model_dump(mode="json", by_alias=True)


@app.post("/execute")
async def execute(payload: ExecutePayload, engine: WorkflowEngine = Depends(get_engine)):
    """Run a workflow and stream one JSON snapshot per line; the last line has done=true."""
    graph = payload.graph()
    stream = SnapshotStream()
    publisher = StatePublisher(stream)

    async def _events():
        task = asyncio.create_task(engine.run(payload.user_input, graph, publisher=publisher))
        # a run that dies before its done snapshot must still end the stream
        task.add_done_callback(lambda _: stream.close())
        try:
            async for snapshot in stream:
                yield snapshot.to_line()
            await task
        except WorkflowError as e:
            # the final snapshot already carries the error
            logger.info("streamed execution ended with error: %s", e)
        except Exception:
            logger.exception("streamed execution failed without a final snapshot")
        finally:
            if not task.done():
                task.cancel()

    return StreamingResponse(_events(), media_type="application/x-ndjson")


@app.post("/executions", status_code=202)
async def start_execution(payload: ExecutePayload, background_tasks: BackgroundTasks,
                          engine: WorkflowEngine = Depends(get_engine)):
    graph = payload.graph()
    execution_id = new_execution_id()
    RUNS.put(ExecutionSnapshot(execution_id=execution_id))

    def _store(snapshot: ExecutionSnapshot):
        RUNS.put(snapshot)

    async def _runner():
        try:
            await engine.run(payload.user_input, graph, on_update=_store, execution_id=execution_id)
        except WorkflowError as e:
            logger.info("execution %s ended with error: %s", execution_id, e)

    background_tasks.add_task(_runner)
    return {"executionId": execution_id}


@app.get("/executions/{execution_id}")
async def get_execution(execution_id: str):
    snapshot = RUNS.get(execution_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="execution not found")
    return _dump(snapshot)


@app.get("/tools")
async def list_tools():
    return {"tools": [d.model_dump() for d in tools.registry.list_declarations()]}


@app.post("/example/run")
async def example_run(payload: Optional[ExampleRunPayload] = None, engine: WorkflowEngine = Depends(get_engine)):
    """Run the bundled research-digest graph and return its terminal state."""
    user_input = (payload.user_input if payload else None) or research_digest.EXAMPLE_INPUT
    try:
        state = await engine.run(user_input, research_digest.build_graph())
    except WorkflowError as e:
        state = e.state
    return _dump(ExecutionSnapshot.of(state, done=True))


def main():
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("agent_workflow.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
