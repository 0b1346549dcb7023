"""Runtime assembly: settings → registries → nodes → SessionManager."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, Optional

from reflectAgent.config import Settings, get_settings
from reflectAgent.context import ConversationStore, ConversationSummarizer, SlidingWindowManager
from reflectAgent.graph.nodes import (
    build_approval_node,
    build_chat_agent_node,
    build_executor_node,
    build_planner_node,
    build_reflector_node,
    build_tool_node,
)
from reflectAgent.hitl import ApprovalChecker, ApprovalGate
from reflectAgent.hitl.approval_gate import PromptFn
from reflectAgent.models import ModelGateway, build_default_registry
from reflectAgent.persistence import SessionStore
from reflectAgent.session import SessionManager, SessionNodes
from reflectAgent.tools import ToolRegistry, build_default_tool_registry
from .model_resolver import build_model_resolver, resolve_model_configs

LOGGER = logging.getLogger("reflectAgent.runtime")

DEFAULT_APPROVAL_RULES = Path(__file__).resolve().parent.parent / "config" / "hitl_rules.yaml"


def build_gateways(settings: Settings, model_resolver: Optional[Callable] = None) -> Dict[str, ModelGateway]:
    """One gateway per role, all sharing the resolver."""

    resolver = model_resolver or build_model_resolver(resolve_model_configs(settings))
    registry = build_default_registry(settings.models)
    return {
        role: ModelGateway(resolver, registry.get(role), timeout=settings.models.request_timeout)
        for role in registry.roles()
    }


def build_application(
    *,
    settings: Optional[Settings] = None,
    model_resolver: Optional[Callable] = None,
    prompt_fn: Optional[PromptFn] = None,
    tool_registry: Optional[ToolRegistry] = None,
) -> SessionManager:
    """Return a SessionManager wired from settings.

    Args:
        settings: Application settings (defaults to the cached ``get_settings()``)
        model_resolver: Optional custom model resolver (tests inject fakes here)
        prompt_fn: Reviewer callback for the approval gate (defaults to a console prompt)
        tool_registry: Optional tool registry replacing the builtin tools

    Returns:
        SessionManager ready to serve ``chat()`` calls
    """
    settings = settings or get_settings()
    governance = settings.governance
    memory = settings.memory

    tool_registry = tool_registry or build_default_tool_registry(governance.dangerous_tools)
    LOGGER.info(f"Registered tools: {', '.join(tool_registry.tool_names())}")

    gateways = build_gateways(settings, model_resolver)

    rules_path = Path(governance.approval_rules_path) if governance.approval_rules_path else DEFAULT_APPROVAL_RULES
    checker = ApprovalChecker(config_path=rules_path)
    gate = ApprovalGate(prompt_fn, timeout=governance.approval_timeout)
    LOGGER.info(f"Approval gate ready (rules: {rules_path}, timeout: {governance.approval_timeout or 'none'})")

    conversation_store = ConversationStore(memory.memory_db_path)
    window = SlidingWindowManager(conversation_store, window_size=memory.window_size)
    summarizer = ConversationSummarizer(
        conversation_store,
        gateways["summarizer"],
        threshold=memory.summarization_threshold,
        keep_recent=memory.window_size,
        enabled=memory.enable_summarization,
    )

    nodes = SessionNodes(
        planner=build_planner_node(gateway=gateways["planner"], tool_registry=tool_registry),
        executor=build_executor_node(
            gateway=gateways["executor"],
            tool_registry=tool_registry,
            tool_timeout=governance.tool_timeout,
            retry_backoff_seconds=governance.retry_backoff_seconds,
        ),
        approval=build_approval_node(
            gate=gate,
            checker=checker,
            tool_registry=tool_registry,
            tool_timeout=governance.tool_timeout,
        ),
        reflector=build_reflector_node(gateway=gateways["reflector"]),
        chat_agent=build_chat_agent_node(gateway=gateways["chat"], tool_registry=tool_registry),
        tools=build_tool_node(tool_registry=tool_registry, tool_timeout=governance.tool_timeout),
    )

    return SessionManager(
        nodes=nodes,
        window=window,
        summarizer=summarizer,
        session_store=SessionStore(settings.observability.session_db_path),
        max_iterations=governance.max_iterations,
        max_retries=governance.max_retries,
    )
