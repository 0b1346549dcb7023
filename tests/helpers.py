"""Test doubles shared by unit and integration tests."""

from typing import Any, Dict, List, Optional

from langchain_core.messages import AIMessage
from langchain_core.tools import tool

from reflectAgent.models.gateway import ModelResponse


class FakeGateway:
    """Scripted stand-in for ModelGateway.

    Each queued item is returned (ModelResponse), raised (Exception) or called
    with the request (callable) in order.
    """

    def __init__(self, responses: Optional[List[Any]] = None, role: str = "fake"):
        self.responses = list(responses or [])
        self.role = role
        self.calls: List[Dict[str, Any]] = []

    def queue(self, *responses: Any) -> None:
        self.responses.extend(responses)

    async def complete(self, messages, *, tools=None, schema=None, temperature=None, max_tokens=None):
        request = {"messages": list(messages), "tools": tools, "schema": schema}
        self.calls.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected {self.role} model call")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        return item


def text_response(text: str) -> ModelResponse:
    return ModelResponse(text=text, message=AIMessage(content=text))


def structured_response(model) -> ModelResponse:
    return ModelResponse(text="", structured=model)


def tool_call_response(*calls: Dict[str, Any], text: str = "") -> ModelResponse:
    """Response requesting tools; each call is {"name", "args", "id"}."""
    tool_calls = [
        {"name": call["name"], "args": call.get("args", {}), "id": call.get("id", f"call_{i}")}
        for i, call in enumerate(calls)
    ]
    message = AIMessage(content=text, tool_calls=tool_calls)
    return ModelResponse(text=text, tool_calls=list(message.tool_calls), message=message)


class ScriptedReviewer:
    """Approval prompt returning queued answers and recording requests."""

    def __init__(self, *answers: Any):
        self.answers = list(answers)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.answers.pop(0) if self.answers else "n"


SHELL_RUNS: List[str] = []


@tool
def echo(text: str) -> str:
    """Echo the given text back."""
    return f"echo: {text}"


@tool
def explode(reason: str) -> str:
    """Always fails."""
    raise RuntimeError(reason)


@tool
def shell_command(command: str) -> str:
    """Run a shell command (test double)."""
    SHELL_RUNS.append(command)
    return f"ran: {command}"
