# agent_workflow/models.py
import time
import uuid
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator
from pydantic.alias_generators import to_camel

StepStatus = Literal["pending", "running", "completed", "error"]
RunStatus = Literal["initializing", "running", "completed", "error"]


def now_ms() -> int:
    return int(time.time() * 1000)


def new_step_id() -> str:
    return f"step_{now_ms()}_{uuid.uuid4().hex[:9]}"


def new_execution_id() -> str:
    return f"exec_{now_ms()}_{uuid.uuid4().hex[:9]}"


class WireModel(BaseModel):
    # snake_case in python, camelCase on the wire; both accepted on input
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Node(WireModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str = ""
    description: str = ""
    instruction_content: str = ""


class Edge(WireModel):
    model_config = ConfigDict(frozen=True)

    id: str
    source: str
    target: str
    # descriptive only (e.g. "primary", "conditional"); routing looks at existence
    kind: str = "default"


def _pick(*values, default=None):
    for v in values:
        if v is not None:
            return v
    return default


class Graph(WireModel):
    nodes: List[Node]
    edges: List[Edge] = Field(default_factory=list)

    _index: Dict[str, Node] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def check_references(self) -> "Graph":
        index: Dict[str, Node] = {}
        for node in self.nodes:
            if node.id in index:
                raise ValueError(f"duplicate node id: {node.id}")
            index[node.id] = node
        for edge in self.edges:
            if edge.source not in index:
                raise ValueError(f"edge {edge.id} has unknown source {edge.source}")
            if edge.target not in index:
                raise ValueError(f"edge {edge.id} has unknown target {edge.target}")
        self._index = index
        return self

    @classmethod
    def from_flow(cls, nodes: List[Dict[str, Any]], edges: List[Dict[str, Any]]) -> "Graph":
        """Build a graph from canvas-shaped dicts.

        Canvas nodes keep their text under `data` (`label`, `description`, `content`)
        and canvas edges name their kind `type`. Flat dicts are accepted as well.
        """
        flat_nodes = []
        for raw in nodes:
            data = raw.get("data") or {}
            flat_nodes.append({
                "id": raw.get("id"),
                "label": _pick(data.get("label"), raw.get("label"), default=""),
                "description": _pick(data.get("description"), raw.get("description"), default=""),
                "instruction_content": _pick(
                    data.get("content"),
                    raw.get("instructionContent"),
                    raw.get("instruction_content"),
                    default="",
                ),
            })
        flat_edges = []
        for raw in edges:
            source, target = raw.get("source"), raw.get("target")
            flat_edges.append({
                "id": _pick(raw.get("id"), default=f"{source}->{target}"),
                "source": source,
                "target": target,
                "kind": _pick(raw.get("kind"), raw.get("type"), default="default"),
            })
        return cls(nodes=flat_nodes, edges=flat_edges)

    def node(self, node_id: str) -> Node:
        return self._index[node_id]

    def incoming(self, node_id: str) -> List[Edge]:
        return [e for e in self.edges if e.target == node_id]

    def outgoing(self, node_id: str) -> List[Edge]:
        # declaration order is preserved
        return [e for e in self.edges if e.source == node_id]

    def entry_nodes(self) -> List[Node]:
        targets = {e.target for e in self.edges}
        return [n for n in self.nodes if n.id not in targets]


class ToolCallRecord(WireModel):
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    result: Any = None


class Step(WireModel):
    id: str = Field(default_factory=new_step_id)
    node_id: str
    node_label: str = ""
    status: StepStatus = "pending"
    input: str = ""
    output: Optional[str] = None
    tool_calls: List[ToolCallRecord] = Field(default_factory=list)
    timestamp: int = Field(default_factory=now_ms)
    error: Optional[str] = None


class ExecutionState(WireModel):
    execution_id: str = Field(default_factory=new_execution_id)
    status: RunStatus = "initializing"
    steps: List[Step] = Field(default_factory=list)
    current_node_id: Optional[str] = None
    final_output: Optional[str] = None
    error: Optional[str] = None

    def running_steps(self) -> List[Step]:
        return [s for s in self.steps if s.status == "running"]


class ExecutionSnapshot(ExecutionState):
    """Point-in-time copy of an ExecutionState handed to observers."""

    done: bool = False

    @classmethod
    def of(cls, state: ExecutionState, done: bool = False) -> "ExecutionSnapshot":
        data = state.model_dump()
        data["done"] = done
        return cls.model_validate(data)

    def to_line(self) -> str:
        return self.model_dump_json(by_alias=True) + "\n"
