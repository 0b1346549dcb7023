"""Node factories for the orchestration state machine."""

from .approval import build_approval_node
from .chat_agent import build_chat_agent_node, build_tool_node
from .executor import build_executor_node
from .planner import build_planner_node
from .reflector import build_reflector_node

__all__ = [
    "build_approval_node",
    "build_chat_agent_node",
    "build_executor_node",
    "build_planner_node",
    "build_reflector_node",
    "build_tool_node",
]
