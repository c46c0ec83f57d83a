"""Shared fixtures: a scripted model gateway, an isolated tool registry and graph builders."""

import copy
from typing import Any, Dict, List

import pytest
from pydantic import BaseModel, Field

from agent_workflow.gateway import FinalAnswer, ModelGateway, ToolRequest, ToolRequests
from agent_workflow.models import Graph
from agent_workflow.tools import ToolRegistry


def _current_label(messages: List[Dict[str, Any]]) -> str:
    for message in messages:
        if message["role"] != "user":
            continue
        for line in message["content"].splitlines():
            if line.startswith("**Current Node**: "):
                return line[len("**Current Node**: "):]
    return "?"


class ScriptedGateway(ModelGateway):
    """Replays queued replies; once the queue is empty answers "<label> output".

    A queued exception is raised instead of returned.
    """

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls: List[Dict[str, Any]] = []

    async def complete(self, messages, tools):
        self.calls.append({"messages": copy.deepcopy(messages), "tools": list(tools)})
        if self.replies:
            reply = self.replies.pop(0)
            if isinstance(reply, BaseException):
                raise reply
            return reply
        return FinalAnswer(text=f"{_current_label(messages)} output")


def tool_request(name, call_id="call_1", **arguments):
    return ToolRequests(calls=[ToolRequest(call_id=call_id, name=name, arguments=arguments)])


class EchoArgs(BaseModel):
    text: str = Field(description="Text to echo back")


class BoomArgs(BaseModel):
    pass


@pytest.fixture
def scripted_gateway():
    return ScriptedGateway


@pytest.fixture
def make_tool_request():
    return tool_request


@pytest.fixture
def registry():
    reg = ToolRegistry()

    @reg.tool("echo", "Echo the given text", EchoArgs)
    def echo(args: EchoArgs):
        return {"echo": args.text}

    @reg.tool("boom", "Always fails", BoomArgs)
    async def boom(args: BoomArgs):
        raise RuntimeError("kaboom")

    return reg


@pytest.fixture
def make_graph():
    """make_graph(["A", "B"], [("A", "B")]) -> Graph with labels equal to ids."""

    def _make(node_ids, pairs=()):
        nodes = [
            {"id": n, "label": n, "description": f"{n} stage", "instruction_content": f"do {n}"}
            for n in node_ids
        ]
        edges = [
            {"id": f"e{i}", "source": s, "target": t}
            for i, (s, t) in enumerate(pairs, start=1)
        ]
        return Graph(nodes=nodes, edges=edges)

    return _make
