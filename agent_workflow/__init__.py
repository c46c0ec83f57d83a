# agent_workflow/__init__.py
from .engine import WorkflowEngine, find_entry_node, first_edge
from .errors import (
    ModelGatewayFailure,
    NoEntryNode,
    RunCancelled,
    StepLimitExceeded,
    ToolExecutionError,
    ToolLoopExceeded,
    ToolNotFound,
    WorkflowError,
    WorkflowRunError,
)
from .gateway import FinalAnswer, ModelGateway, OpenAIGateway, ToolRequest, ToolRequests
from .models import Edge, ExecutionSnapshot, ExecutionState, Graph, Node, Step, ToolCallRecord
from .publisher import SnapshotStream, StatePublisher
from .step_loop import CancellationToken, StepRunner
from .tools import ToolRegistry, registry

__version__ = "0.1.0"
