# agent_workflow/errors.py
from typing import Optional


class WorkflowError(Exception):
    """Base error for a workflow run. `state` is attached once the engine has finalised the run."""

    def __init__(self, message: str, state=None):
        super().__init__(message)
        self.message = message
        self.state = state


class NoEntryNode(WorkflowError):
    def __init__(self, message: str = "No starting node found in workflow"):
        super().__init__(message)


class ToolNotFound(WorkflowError):
    def __init__(self, name: str):
        super().__init__(f"Tool {name} not found")
        self.tool_name = name


class ToolExecutionError(WorkflowError):
    def __init__(self, name: str, reason: str):
        super().__init__(f"Tool {name} failed: {reason}")
        self.tool_name = name
        self.reason = reason


class ModelGatewayFailure(WorkflowError):
    pass


class ToolLoopExceeded(WorkflowError):
    def __init__(self, node_id: str, max_rounds: int):
        super().__init__(f"node {node_id} exceeded {max_rounds} tool-call rounds without a final answer")
        self.node_id = node_id
        self.max_rounds = max_rounds


class StepLimitExceeded(WorkflowError):
    def __init__(self, max_steps: int):
        super().__init__(f"max steps reached ({max_steps}); aborting")
        self.max_steps = max_steps


class RunCancelled(WorkflowError):
    def __init__(self, message: str = "execution cancelled"):
        super().__init__(message)


class WorkflowRunError(WorkflowError):
    """Wraps an unexpected exception raised while walking the graph."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
