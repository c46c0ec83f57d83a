# agent_workflow/workflows/research_digest.py
from typing import Any, Dict, List

from ..models import Graph

# Example canvas export for a small research-digest pipeline:
# intake -> research -> sentiment -> digest

EXAMPLE_INPUT = "Summarise this week's news about electric vehicle batteries for the team."

NODES: List[Dict[str, Any]] = [
    {
        "id": "intake",
        "type": "workflow",
        "data": {
            "label": "Request Intake",
            "description": "Clarifies the topic and the audience",
            "content": "Restate the request as a short research brief: topic, audience, desired length.",
        },
    },
    {
        "id": "research",
        "type": "workflow",
        "data": {
            "label": "Web Research",
            "description": "Gathers current facts on the topic",
            "content": "Use web_search to collect three or more relevant sources and list the key facts with their URLs.",
        },
    },
    {
        "id": "sentiment",
        "type": "workflow",
        "data": {
            "label": "Tone Check",
            "description": "Gauges the overall tone of the findings",
            "content": "Run analyze_sentiment on the collected facts and note whether coverage is positive, negative or neutral.",
        },
    },
    {
        "id": "digest",
        "type": "workflow",
        "data": {
            "label": "Digest Writer",
            "description": "Writes the final digest",
            "content": "Write a concise digest with a headline, three bullet points and the overall tone.",
        },
    },
]

EDGES: List[Dict[str, Any]] = [
    {"id": "e1", "source": "intake", "target": "research", "type": "animated"},
    {"id": "e2", "source": "research", "target": "sentiment", "type": "animated"},
    {"id": "e3", "source": "sentiment", "target": "digest", "type": "animated"},
]


def build_graph() -> Graph:
    return Graph.from_flow(NODES, EDGES)
