# agent_workflow/tools.py
import ast
import inspect
import logging
import operator
import uuid
from typing import Any, Callable, Dict, List, Literal, Optional, Type, Union, get_args, get_origin

from pydantic import BaseModel, Field, ValidationError

from .errors import ToolExecutionError, ToolNotFound

logger = logging.getLogger(__name__)


class ToolDeclaration(BaseModel):
    name: str
    description: str
    parameters: Dict[str, Any]


class RegisteredTool(BaseModel):
    name: str
    description: str
    args_model: Type[BaseModel]
    fn: Callable


def _field_schema(annotation) -> Dict[str, Any]:
    origin = get_origin(annotation)
    if origin is Union:
        # Optional[X] -> X
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return _field_schema(args[0])
    if origin is Literal:
        return {"type": "string", "enum": [str(v) for v in get_args(annotation)]}
    if annotation in (int, float):
        return {"type": "number"}
    return {"type": "string"}


def parameter_schema(args_model: Type[BaseModel]) -> Dict[str, Any]:
    """Model-facing JSON schema: primitive types, enums and the required list."""
    properties = {}
    required = []
    for name, field in args_model.model_fields.items():
        prop = _field_schema(field.annotation)
        prop["description"] = field.description or ""
        properties[name] = prop
        if field.is_required():
            required.append(name)
    return {"type": "object", "properties": properties, "required": required}


class ToolRegistry:
    def __init__(self):
        self.tools: Dict[str, RegisteredTool] = {}

    def register(self, name: str, description: str, args_model: Type[BaseModel], fn: Callable) -> Callable:
        if name in self.tools:
            logger.warning("tool %s registered twice; replacing", name)
        self.tools[name] = RegisteredTool(name=name, description=description, args_model=args_model, fn=fn)
        return fn

    def tool(self, name: str, description: str, args_model: Type[BaseModel]):
        def decorator(fn):
            return self.register(name, description, args_model, fn)
        return decorator

    def names(self) -> List[str]:
        return list(self.tools.keys())

    def get(self, name: str) -> RegisteredTool:
        if name not in self.tools:
            raise ToolNotFound(name)
        return self.tools[name]

    def list_declarations(self) -> List[ToolDeclaration]:
        return [
            ToolDeclaration(name=t.name, description=t.description, parameters=parameter_schema(t.args_model))
            for t in self.tools.values()
        ]

    async def invoke(self, name: str, arguments: Dict[str, Any]) -> Any:
        tool = self.get(name)
        try:
            args = tool.args_model.model_validate(arguments)
        except ValidationError as e:
            raise ToolExecutionError(name, f"invalid arguments: {e.errors(include_url=False)}") from e
        logger.info("invoking tool %s", name)
        try:
            res = tool.fn(args)
            if inspect.isawaitable(res):
                res = await res
        except Exception as e:
            raise ToolExecutionError(name, str(e) or e.__class__.__name__) from e
        return res


# default catalog offered to the model
registry = ToolRegistry()
register_tool = registry.tool


class WebSearchArgs(BaseModel):
    query: str = Field(description="The search query")
    num_results: Optional[int] = Field(default=None, description="Number of results to return (default: 5)")


@register_tool(
    "web_search",
    "Search the web for information. Use this when you need current information or facts.",
    WebSearchArgs,
)
async def web_search(args: WebSearchArgs) -> Dict[str, Any]:
    # placeholder results; a search provider plugs in here
    logger.info("searching web for: %s", args.query)
    return {
        "results": [
            {
                "title": "Example Result",
                "url": "https://example.com",
                "snippet": f"Information about {args.query}...",
            }
        ][: args.num_results or 5],
        "message": f'Found results for "{args.query}"',
    }


# bound on intermediate integer size; keeps every operation fast
MAX_INT_BITS = 4096


def _checked_pow(base, exponent):
    if isinstance(base, int) and isinstance(exponent, int) and exponent > 0 and abs(base) > 1:
        if abs(base).bit_length() * exponent > MAX_INT_BITS:
            raise ValueError("result too large")
    result = operator.pow(base, exponent)
    if isinstance(result, complex):
        raise ValueError("complex result")
    return result


def _checked(value):
    if isinstance(value, int) and value.bit_length() > MAX_INT_BITS:
        raise ValueError("result too large")
    return value


_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: _checked_pow,
}
_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}


def evaluate_expression(expression: str) -> float:
    """Evaluate plain arithmetic. Anything other than numbers and operators is rejected."""

    def _eval(node):
        if isinstance(node, ast.Expression):
            return _eval(node.body)
        if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
            return _checked(node.value)
        if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
            return _checked(_BIN_OPS[type(node.op)](_eval(node.left), _eval(node.right)))
        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
            return _UNARY_OPS[type(node.op)](_eval(node.operand))
        raise ValueError(f"unsupported expression element: {type(node).__name__}")

    return _eval(ast.parse(expression, mode="eval"))


class CalculateArgs(BaseModel):
    expression: str = Field(description="The mathematical expression to evaluate")


@register_tool(
    "calculate",
    "Perform mathematical calculations. Supports basic arithmetic and complex expressions.",
    CalculateArgs,
)
def calculate(args: CalculateArgs) -> Dict[str, Any]:
    try:
        result = evaluate_expression(args.expression)
        message = f"{args.expression} = {result}"
    except (SyntaxError, ValueError, ZeroDivisionError, OverflowError):
        return {"error": "Invalid expression", "message": "Could not evaluate expression"}
    return {"result": result, "message": message}


class WeatherArgs(BaseModel):
    location: str = Field(description="City name or location")
    units: Optional[Literal["celsius", "fahrenheit"]] = Field(default=None, description="Temperature units")


@register_tool("get_weather", "Get current weather information for a location.", WeatherArgs)
async def get_weather(args: WeatherArgs) -> Dict[str, Any]:
    logger.info("getting weather for: %s", args.location)
    if args.units == "celsius":
        temperature, unit = 22, "C"
    else:
        temperature, unit = 72, "F"
    return {
        "location": args.location,
        "temperature": temperature,
        "conditions": "Partly cloudy",
        "humidity": 65,
        "message": f"Weather in {args.location}: {temperature}°{unit}, Partly cloudy",
    }


class EmailArgs(BaseModel):
    to: str = Field(description="Recipient email address", pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    subject: str = Field(description="Email subject")
    body: str = Field(description="Email body content")


@register_tool(
    "send_email",
    "Send an email to a recipient. Use this for notifications or communications.",
    EmailArgs,
)
async def send_email(args: EmailArgs) -> Dict[str, Any]:
    logger.info("sending email to: %s", args.to)
    return {"success": True, "message": f'Email sent to {args.to} with subject "{args.subject}"'}


class CalendarEventArgs(BaseModel):
    title: str = Field(description="Event title")
    date: str = Field(description="Event date (YYYY-MM-DD format)")
    time: str = Field(description="Event time (HH:MM format)")
    duration: Optional[int] = Field(default=None, description="Duration in minutes")


@register_tool("create_calendar_event", "Create a calendar event or reminder.", CalendarEventArgs)
async def create_calendar_event(args: CalendarEventArgs) -> Dict[str, Any]:
    logger.info("creating calendar event: %s", args.title)
    return {
        "success": True,
        "event_id": f"evt_{uuid.uuid4().hex[:9]}",
        "message": f'Created event "{args.title}" on {args.date} at {args.time}',
    }


POSITIVE_WORDS = ("good", "great", "excellent", "happy", "love", "amazing")
NEGATIVE_WORDS = ("bad", "terrible", "hate", "angry", "sad", "awful")


class SentimentArgs(BaseModel):
    text: str = Field(description="Text to analyze")


@register_tool("analyze_sentiment", "Analyze the sentiment of text (positive, negative, or neutral).", SentimentArgs)
def analyze_sentiment(args: SentimentArgs) -> Dict[str, Any]:
    # keyword heuristic
    text = args.text.lower()
    positive = sum(1 for w in POSITIVE_WORDS if w in text)
    negative = sum(1 for w in NEGATIVE_WORDS if w in text)
    sentiment, score = "neutral", 0.0
    if positive > negative:
        sentiment, score = "positive", 0.7
    elif negative > positive:
        sentiment, score = "negative", -0.7
    return {
        "sentiment": sentiment,
        "score": score,
        "confidence": 0.85,
        "message": f"Sentiment: {sentiment} (score: {score})",
    }
