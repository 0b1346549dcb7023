"""Single entry point for language model calls.

Every node talks to the model through a ``ModelGateway`` bound to one role
(planner, executor, reflector, summarizer, chat). The gateway owns:
- lazy model construction through the resolver
- per-call sampling overrides
- tool binding and structured output
- the request timeout
- conversion of provider failures into ``ModelInvocationError``
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type

from langchain_core.messages import AIMessage, BaseMessage
from langchain_core.tools import BaseTool
from pydantic import BaseModel

from reflectAgent.models.registry import ModelSpec
from reflectAgent.utils.error_handler import ModelInvocationError, OperationTimeoutError, handle_model_error

LOGGER = logging.getLogger("reflectAgent.models")

ModelFactory = Callable[..., Any]


@dataclass
class ModelResponse:
    """Normalized model output."""

    text: str = ""
    structured: Optional[BaseModel] = None
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)
    message: Optional[AIMessage] = None


def message_text(message: Any) -> str:
    """Flatten message content (str or list of content blocks) to text."""

    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    return "" if content is None else str(content)


class ModelGateway:
    """Role-bound wrapper around a LangChain chat model."""

    def __init__(self, resolver: ModelFactory, spec: ModelSpec, *, timeout: Optional[float] = None) -> None:
        self._resolver = resolver
        self.spec = spec
        self.timeout = timeout
        self._models: Dict[Tuple[float, int], Any] = {}

    @property
    def role(self) -> str:
        return self.spec.key

    def _get_model(self, temperature: Optional[float] = None, max_tokens: Optional[int] = None):
        """Chat model for the role sampling, or for per-call overrides of it."""
        key = (
            self.spec.temperature if temperature is None else temperature,
            self.spec.max_tokens if max_tokens is None else max_tokens,
        )
        if key not in self._models:
            self._models[key] = self._resolver(self.spec.model_id, temperature=key[0], max_tokens=key[1])
        return self._models[key]

    async def _await(self, coro):
        if self.timeout:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        return await coro

    async def complete(
        self,
        messages: Sequence[BaseMessage],
        *,
        tools: Optional[Sequence[BaseTool]] = None,
        schema: Optional[Type[BaseModel]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ModelResponse:
        """Send one request to the model.

        Args:
            messages: Prompt messages
            tools: Tools the model may request (omitted or empty binds none)
            schema: Pydantic model for structured output
            temperature: Per-call override of the role temperature
            max_tokens: Per-call override of the role output cap

        Returns:
            ModelResponse with text, optional structured value and tool calls

        Raises:
            OperationTimeoutError: No answer within the request timeout
            ModelInvocationError: Provider failure or missing credentials
        """
        try:
            model = self._get_model(temperature, max_tokens)
            if schema is not None:
                return await self._complete_structured(model, list(messages), schema)

            runnable = model.bind_tools(list(tools)) if tools else model
            message = await self._await(runnable.ainvoke(list(messages)))
        except ModelInvocationError:
            raise
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError as e:
            LOGGER.error(f"{self.role} model call timed out after {self.timeout}s")
            raise OperationTimeoutError(
                f"{self.role} model call timed out after {self.timeout}s", handle_model_error(e)
            ) from e
        except Exception as e:
            LOGGER.error(f"{self.role} model call failed: {type(e).__name__}: {e}")
            raise ModelInvocationError(f"{self.role} model call failed: {e}", handle_model_error(e)) from e

        return ModelResponse(
            text=message_text(message),
            tool_calls=list(getattr(message, "tool_calls", None) or []),
            message=message if isinstance(message, AIMessage) else AIMessage(content=message_text(message)),
        )

    async def _complete_structured(self, model, messages: List[BaseMessage], schema: Type[BaseModel]) -> ModelResponse:
        try:
            structured_model = model.with_structured_output(schema, include_raw=True)
        except NotImplementedError:
            # Provider without structured output support: caller parses the text
            message = await self._await(model.ainvoke(messages))
            return ModelResponse(text=message_text(message), message=message)

        result = await self._await(structured_model.ainvoke(messages))
        raw = result.get("raw") if isinstance(result, dict) else None
        parsed = result.get("parsed") if isinstance(result, dict) else result
        if isinstance(result, dict) and result.get("parsing_error"):
            LOGGER.warning(f"{self.role} structured output parse error: {result['parsing_error']}")

        structured = parsed if isinstance(parsed, BaseModel) else None
        if structured is None and isinstance(parsed, dict):
            try:
                structured = schema.model_validate(parsed)
            except ValueError:
                structured = None

        return ModelResponse(
            text=message_text(raw) if raw is not None else "",
            structured=structured,
            message=raw if isinstance(raw, AIMessage) else None,
        )
