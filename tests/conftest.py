"""Pytest configuration and fixtures for all tests.

This file is automatically loaded by pytest and ensures proper test environment setup.
"""

import sys
from pathlib import Path

import pytest

# Ensure project root is in PYTHONPATH for imports to work
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from reflectAgent.context import ConversationStore, ConversationSummarizer, SlidingWindowManager  # noqa: E402
from reflectAgent.graph.nodes import (  # noqa: E402
    build_approval_node,
    build_chat_agent_node,
    build_executor_node,
    build_planner_node,
    build_reflector_node,
    build_tool_node,
)
from reflectAgent.hitl import ApprovalChecker, ApprovalGate  # noqa: E402
from reflectAgent.persistence import SessionStore  # noqa: E402
from reflectAgent.session import SessionManager, SessionNodes  # noqa: E402
from reflectAgent.tools import ToolMeta, ToolRegistry  # noqa: E402
from tests.helpers import SHELL_RUNS, FakeGateway, ScriptedReviewer, echo, explode, shell_command  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_shell_runs():
    SHELL_RUNS.clear()
    yield
    SHELL_RUNS.clear()


@pytest.fixture
def tool_registry():
    registry = ToolRegistry(tools=[echo, explode, shell_command], dangerous_tools=["shell_command"])
    registry.register_meta(ToolMeta(name="echo", risk="safe"))
    registry.register_meta(ToolMeta(name="explode", risk="safe"))
    registry.register_meta(ToolMeta(name="shell_command", risk="dangerous"))
    return registry


@pytest.fixture
def conversation_store(tmp_path):
    return ConversationStore(str(tmp_path / "memory.db"))


@pytest.fixture
def session_store(tmp_path):
    return SessionStore(str(tmp_path / "sessions.db"))


@pytest.fixture
def window(conversation_store):
    return SlidingWindowManager(conversation_store, window_size=10)


@pytest.fixture
def harness(tool_registry, conversation_store, session_store, window):
    """Build a SessionManager over fake gateways; call it with optional overrides.

    Returns:
        (manager, gateways by role, reviewer) tuple
    """

    def build(
        *,
        reviewer=None,
        max_iterations: int = 10,
        max_retries: int = 3,
        window_size: int = 10,
        threshold: int = 20,
        summarization: bool = True,
        approval_timeout=None,
    ):
        gateways = {role: FakeGateway(role=role) for role in ("planner", "executor", "reflector", "summarizer", "chat")}
        reviewer = reviewer or ScriptedReviewer()
        gate = ApprovalGate(reviewer, timeout=approval_timeout)
        window.window_size = window_size
        summarizer = ConversationSummarizer(
            conversation_store,
            gateways["summarizer"],
            threshold=threshold,
            keep_recent=window_size,
            enabled=summarization,
        )
        nodes = SessionNodes(
            planner=build_planner_node(gateway=gateways["planner"], tool_registry=tool_registry),
            executor=build_executor_node(gateway=gateways["executor"], tool_registry=tool_registry),
            approval=build_approval_node(gate=gate, checker=ApprovalChecker(), tool_registry=tool_registry),
            reflector=build_reflector_node(gateway=gateways["reflector"]),
            chat_agent=build_chat_agent_node(gateway=gateways["chat"], tool_registry=tool_registry),
            tools=build_tool_node(tool_registry=tool_registry),
        )
        manager = SessionManager(
            nodes=nodes,
            window=window,
            summarizer=summarizer,
            session_store=session_store,
            max_iterations=max_iterations,
            max_retries=max_retries,
        )
        return manager, gateways, reviewer

    return build
