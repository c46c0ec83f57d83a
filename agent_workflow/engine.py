# agent_workflow/engine.py
import asyncio
import logging
from typing import Callable, List, Optional

from .errors import NoEntryNode, StepLimitExceeded, WorkflowError, WorkflowRunError
from .gateway import ModelGateway
from .models import Edge, ExecutionState, Graph, Node, Step, new_execution_id
from .publisher import StatePublisher
from .step_loop import CancellationToken, StepRunner
from .tools import ToolRegistry, registry as default_registry

logger = logging.getLogger(__name__)

EdgeChooser = Callable[[Node, List[Edge]], Optional[Edge]]


def first_edge(node: Node, edges: List[Edge]) -> Optional[Edge]:
    # multiple outgoing edges are not branched: the first declared one wins
    return edges[0] if edges else None


def find_entry_node(graph: Graph) -> Node:
    entries = graph.entry_nodes()
    if not entries:
        raise NoEntryNode()
    if len(entries) > 1:
        logger.warning(
            "graph has %d nodes without incoming edges (%s); starting from %s",
            len(entries), ", ".join(n.id for n in entries), entries[0].id,
        )
    return entries[0]


class WorkflowEngine:
    def __init__(
        self,
        gateway: ModelGateway,
        registry: Optional[ToolRegistry] = None,
        choose_next_edge: EdgeChooser = first_edge,
        max_tool_rounds: int = 10,
        max_steps: int = 1000,
    ):
        self.gateway = gateway
        self.registry = registry if registry is not None else default_registry
        self.choose_next_edge = choose_next_edge
        self.max_steps = max_steps
        self.step_runner = StepRunner(gateway, self.registry, max_tool_rounds=max_tool_rounds)

    async def run(
        self,
        user_input: str,
        graph: Graph,
        on_update: Optional[Callable] = None,
        publisher: Optional[StatePublisher] = None,
        cancel_token: Optional[CancellationToken] = None,
        execution_id: Optional[str] = None,
    ) -> ExecutionState:
        """Walk the graph from its entry node, one step at a time.

        Returns the terminal state. On failure the terminal state (status
        "error") is still published, and a WorkflowError carrying it is raised.
        """
        publisher = publisher or StatePublisher()
        if on_update is not None:
            publisher.subscribe(on_update)
        state = ExecutionState(execution_id=execution_id or new_execution_id())
        logger.info("execution %s: starting (%d nodes, %d edges)", state.execution_id, len(graph.nodes), len(graph.edges))

        try:
            await publisher.publish(state)
            await self._execute(user_input, graph, state, publisher, cancel_token)
        except asyncio.CancelledError:
            self._fail(state, "execution cancelled")
            await publisher.finish(state)
            raise
        except WorkflowError as e:
            self._fail(state, e.message)
            await publisher.finish(state)
            e.state = state
            raise
        except Exception as e:
            self._fail(state, str(e) or e.__class__.__name__)
            await publisher.finish(state)
            err = WorkflowRunError(state.error, cause=e)
            err.state = state
            raise err from e

        await publisher.finish(state)
        logger.info("execution %s: completed after %d step(s)", state.execution_id, len(state.steps))
        return state

    def _fail(self, state: ExecutionState, message: str):
        for step in state.running_steps():
            step.status = "error"
            step.error = step.error or message
        state.status = "error"
        state.error = message
        logger.error("execution %s: failed: %s", state.execution_id, message)

    async def _execute(self, user_input: str, graph: Graph, state: ExecutionState,
                       publisher: StatePublisher, cancel_token: Optional[CancellationToken]):
        node = find_entry_node(graph)
        step_input = user_input
        visited = 0

        while True:
            if cancel_token:
                cancel_token.raise_if_cancelled()
            if visited >= self.max_steps:
                raise StepLimitExceeded(self.max_steps)
            visited += 1

            step = Step(node_id=node.id, node_label=node.label, status="running", input=step_input)
            state.steps.append(step)
            state.current_node_id = node.id
            state.status = "running"
            logger.info("execution %s: running %s", state.execution_id, node.id)
            await publisher.publish(state)

            async def _record(record, step=step):
                step.tool_calls.append(record)
                await publisher.publish(state)

            try:
                outcome = await self.step_runner.run(node, step_input, on_tool_call=_record, cancel_token=cancel_token)
            except BaseException as e:
                step.status = "error"
                step.error = str(e) or e.__class__.__name__
                raise

            step.output = outcome.output
            step.tool_calls = list(outcome.tool_calls)
            step.status = "completed"
            await publisher.publish(state)

            edge = self.choose_next_edge(node, graph.outgoing(node.id))
            if edge is None:
                logger.info("execution %s: %s is terminal", state.execution_id, node.id)
                state.final_output = outcome.output
                state.status = "completed"
                return
            logger.info("execution %s: %s -> next: %s", state.execution_id, node.id, edge.target)
            node = graph.node(edge.target)
            step_input = outcome.output
