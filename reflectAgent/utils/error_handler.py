"""Unified error handling for reflectAgent nodes and tools."""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Callable, Dict, Optional

LOGGER = logging.getLogger(__name__)


class ReflectAgentError(Exception):
    """Base exception for reflectAgent errors."""

    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message


class ToolExecutionError(ReflectAgentError):
    """Error during tool execution."""
    pass


class ModelInvocationError(ReflectAgentError):
    """Error during model invocation."""
    pass


class OperationTimeoutError(ModelInvocationError):
    """The model did not answer within the request timeout."""
    pass


class SessionBusyError(ReflectAgentError):
    """A second message arrived while a turn is still in flight."""

    def __init__(self, session_id: str):
        super().__init__(
            f"Session {session_id} already has a turn in progress",
            "This session is still working on the previous message.",
        )
        self.session_id = session_id


Fallback = Callable[[Dict[str, Any], str], Dict[str, Any]]


def _default_fallback(state: Dict[str, Any], error_text: str) -> Dict[str, Any]:
    return {"error": error_text}


def with_error_boundary(node_name: str, fallback: Optional[Fallback] = None):
    """Decorator to add an error boundary to orchestration nodes.

    Catches exceptions and converts them into a state update produced by
    ``fallback(state, error_text)``. The default fallback records the error
    on the session so the driver terminates the turn.

    Args:
        node_name: Name of the node for logging and error messages
        fallback: Builds the state update for a caught exception

    Example:
        @with_error_boundary("reflector")
        async def reflector_node(state: AgentState) -> dict:
            ...
    """
    fallback = fallback or _default_fallback

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(state: Dict[str, Any]) -> Dict[str, Any]:
            try:
                return await func(state)
            except OperationTimeoutError as e:
                LOGGER.error(f"{node_name} timeout: {e}")
                return fallback(state, f"{node_name} timed out: {e.user_message}")
            except ModelInvocationError as e:
                LOGGER.error(f"{node_name} model error: {e}")
                return fallback(state, e.user_message)
            except ToolExecutionError as e:
                LOGGER.error(f"{node_name} tool error: {e}")
                return fallback(state, e.user_message)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                LOGGER.exception(f"{node_name} unexpected error", exc_info=e)
                return fallback(state, str(e) or type(e).__name__)

        return async_wrapper

    return decorator


def handle_model_error(error: Exception) -> str:
    """Convert model invocation errors to user-friendly messages.

    Args:
        error: Exception raised during model invocation

    Returns:
        User-friendly error message
    """
    error_str = str(error).lower()

    if isinstance(error, (asyncio.TimeoutError, TimeoutError)) or "timeout" in error_str or "timed out" in error_str:
        return "The model did not respond in time, please retry"

    if "rate_limit" in error_str or "429" in error_str:
        return "Too many requests, please try again later"

    if "context_length" in error_str or "maximum context" in error_str:
        return "Conversation is too long for the model, please start a new session"

    if "invalid_api_key" in error_str or "authentication" in error_str or "401" in error_str:
        return "Invalid API key, check MODEL_API_KEY"

    if "quota" in error_str or "insufficient" in error_str:
        return "Model quota exhausted"

    return f"Model service unavailable: {str(error)}"
