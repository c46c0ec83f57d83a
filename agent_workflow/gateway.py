# agent_workflow/gateway.py
import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

import openai
from pydantic import BaseModel, Field

from .errors import ModelGatewayFailure
from .tools import ToolDeclaration

logger = logging.getLogger(__name__)


class ToolRequest(BaseModel):
    call_id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class FinalAnswer(BaseModel):
    text: Optional[str] = None


class ToolRequests(BaseModel):
    calls: List[ToolRequest]
    text: Optional[str] = None


ModelReply = Union[FinalAnswer, ToolRequests]


def tool_schema(declaration: ToolDeclaration) -> Dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": declaration.name,
            "description": declaration.description,
            "parameters": declaration.parameters,
        },
    }


def parse_arguments(name: str, raw: Optional[str]) -> Dict[str, Any]:
    try:
        args = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        raise ModelGatewayFailure(f"malformed arguments for tool {name}: {e}") from e
    if not isinstance(args, dict):
        raise ModelGatewayFailure(f"malformed arguments for tool {name}: expected a JSON object")
    return args


class ModelGateway:
    """Sends a conversation plus the tool catalog to a model provider."""

    async def complete(self, messages: List[Dict[str, Any]], tools: Sequence[ToolDeclaration]) -> ModelReply:
        raise NotImplementedError


class OpenAIGateway(ModelGateway):
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.7,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: int = 0,
        client=None,
    ):
        self.model = model
        self.temperature = temperature
        if client is None:
            kwargs = {"api_key": api_key, "max_retries": max_retries}
            if base_url:
                kwargs["base_url"] = base_url
            if timeout:
                kwargs["timeout"] = timeout
            client = openai.AsyncOpenAI(**kwargs)
        self.client = client

    async def complete(self, messages: List[Dict[str, Any]], tools: Sequence[ToolDeclaration]) -> ModelReply:
        request = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
        }
        if tools:
            request["tools"] = [tool_schema(t) for t in tools]
            request["tool_choice"] = "auto"
        try:
            response = await self.client.chat.completions.create(**request)
        except openai.OpenAIError as e:
            raise ModelGatewayFailure(f"LLM API error: {e}") from e

        if not response.choices:
            raise ModelGatewayFailure("LLM API returned no choices")
        message = response.choices[0].message
        if message.tool_calls:
            calls = [
                ToolRequest(
                    call_id=call.id,
                    name=call.function.name,
                    arguments=parse_arguments(call.function.name, call.function.arguments),
                )
                for call in message.tool_calls
            ]
            logger.debug("model requested %d tool call(s)", len(calls))
            return ToolRequests(calls=calls, text=message.content)
        return FinalAnswer(text=message.content)
