"""Utilities for reflectAgent."""

from .logging_utils import (
    log_agent_response,
    log_error,
    log_tool_call,
    log_tool_result,
    log_user_message,
    setup_logging,
)
from .error_handler import (
    with_error_boundary,
    handle_model_error,
    ReflectAgentError,
    ToolExecutionError,
    ModelInvocationError,
    OperationTimeoutError,
    SessionBusyError,
)

__all__ = [
    "setup_logging",
    "log_tool_call",
    "log_tool_result",
    "log_error",
    "log_user_message",
    "log_agent_response",
    "with_error_boundary",
    "handle_model_error",
    "ReflectAgentError",
    "ToolExecutionError",
    "ModelInvocationError",
    "OperationTimeoutError",
    "SessionBusyError",
]
