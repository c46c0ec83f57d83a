# agent_workflow/step_loop.py
import inspect
import json
import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from .errors import RunCancelled, ToolExecutionError, ToolLoopExceeded, ToolNotFound
from .gateway import FinalAnswer, ModelGateway, ToolRequest, ToolRequests
from .models import Node, ToolCallRecord
from .tools import ToolRegistry

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an AI agent executing a workflow. "
    "Process each step carefully and use tools when appropriate."
)
MISSING_ANSWER = "No response generated"


class CancellationToken:
    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self):
        if self._cancelled:
            raise RunCancelled()


class StepOutcome(BaseModel):
    output: str
    tool_calls: List[ToolCallRecord] = Field(default_factory=list)


def build_prompt(node: Node, step_input: str) -> str:
    return "\n".join([
        "You are executing a step in an AI agent workflow.",
        "",
        f"**Current Node**: {node.label}",
        f"**Node Description**: {node.description}",
        f"**Node Purpose**: {node.instruction_content}",
        "",
        f"**Input from Previous Step**: {step_input}",
        "",
        "Please process this input according to the node's purpose and provide the output for the next step.",
        "If you need to use any tools, use them appropriately.",
    ])


def _assistant_message(reply: ToolRequests) -> Dict[str, Any]:
    return {
        "role": "assistant",
        "content": reply.text,
        "tool_calls": [
            {
                "id": call.call_id,
                "type": "function",
                "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
            }
            for call in reply.calls
        ],
    }


class StepRunner:
    """Drives the model/tool conversation for a single node."""

    def __init__(self, gateway: ModelGateway, registry: ToolRegistry, max_tool_rounds: int = 10,
                 system_prompt: str = SYSTEM_PROMPT):
        self.gateway = gateway
        self.registry = registry
        self.max_tool_rounds = max_tool_rounds
        self.system_prompt = system_prompt

    async def _call_tool(self, call: ToolRequest) -> Any:
        # tool failures go back to the model as an error payload
        try:
            return await self.registry.invoke(call.name, call.arguments)
        except (ToolNotFound, ToolExecutionError) as e:
            logger.warning("tool call %s (%s) failed: %s", call.call_id, call.name, e)
            return {"error": str(e)}

    async def run(self, node: Node, step_input: str, on_tool_call: Optional[Callable] = None,
                  cancel_token: Optional[CancellationToken] = None) -> StepOutcome:
        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": build_prompt(node, step_input)},
        ]
        declarations = self.registry.list_declarations()
        tool_calls: List[ToolCallRecord] = []
        rounds = 0

        while True:
            if cancel_token:
                cancel_token.raise_if_cancelled()
            reply = await self.gateway.complete(messages, declarations)
            if isinstance(reply, FinalAnswer):
                break

            rounds += 1
            if rounds > self.max_tool_rounds:
                raise ToolLoopExceeded(node.id, self.max_tool_rounds)

            messages.append(_assistant_message(reply))
            for call in reply.calls:
                if cancel_token:
                    cancel_token.raise_if_cancelled()
                result = await self._call_tool(call)
                content = json.dumps(result, default=str)
                # the record keeps the JSON form the model saw, so snapshots stay copyable
                record = ToolCallRecord(name=call.name, arguments=call.arguments, result=json.loads(content))
                tool_calls.append(record)
                messages.append({"role": "tool", "tool_call_id": call.call_id, "content": content})
                if on_tool_call is not None:
                    res = on_tool_call(record)
                    if inspect.isawaitable(res):
                        await res

        output = reply.text
        if not output:
            logger.warning("node %s: model returned no answer; using placeholder output", node.id)
            output = MISSING_ANSWER
        return StepOutcome(output=output, tool_calls=tool_calls)
