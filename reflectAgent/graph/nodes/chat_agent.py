"""Chat mode: a tool-augmented reply loop without planning."""

from __future__ import annotations

import logging
from typing import Any, Dict

from langchain_core.messages import AIMessage, SystemMessage

from reflectAgent.graph.nodes.executor import first_dangerous_call, run_tool_calls
from reflectAgent.graph.prompts import build_chat_prompt
from reflectAgent.graph.state import AgentState, PendingToolCall
from reflectAgent.models.gateway import ModelGateway
from reflectAgent.tools.registry import ToolRegistry
from reflectAgent.utils.error_handler import with_error_boundary
from reflectAgent.utils.logging_utils import log_node_entry, log_node_exit, log_prompt
from reflectAgent.utils.message_utils import clean_message_history

LOGGER = logging.getLogger("reflectAgent.chat")

ITERATION_LIMIT_MESSAGE = "I've reached the maximum number of steps for this request. Please try a simpler request."


def build_chat_agent_node(*, gateway: ModelGateway, tool_registry: ToolRegistry):
    """Create the chat-mode agent node (all tools bound, one model call per visit)."""

    system_prompt = build_chat_prompt(tool_registry.describe())

    @with_error_boundary("chat_agent")
    async def chat_agent_node(state: AgentState) -> Dict[str, Any]:
        log_node_entry(LOGGER, "chat_agent", state)

        iterations = state.get("iterations", 0)
        max_iterations = state.get("max_iterations", 10)
        if iterations >= max_iterations:
            LOGGER.warning(f"Chat loop reached iteration ceiling ({iterations}/{max_iterations})")
            updates = {
                "messages": [AIMessage(content=ITERATION_LIMIT_MESSAGE)],
                "error": "Maximum iterations reached",
            }
            log_node_exit(LOGGER, "chat_agent", updates)
            return updates

        log_prompt(LOGGER, "chat", system_prompt)
        history = clean_message_history(state.get("messages", []))
        response = await gateway.complete(
            [SystemMessage(content=system_prompt), *history],
            tools=tool_registry.list_tools(),
        )

        ai_message = response.message or AIMessage(content=response.text, tool_calls=response.tool_calls)
        updates: Dict[str, Any] = {
            "iterations": iterations + 1,
            "total_iterations": state.get("total_iterations", 0) + 1,
        }

        dangerous = first_dangerous_call(tool_registry, list(response.tool_calls))
        if dangerous is not None:
            LOGGER.info(f"Dangerous tool requested: {dangerous['name']}, waiting for approval")
            updates["messages"] = [ai_message.model_copy(update={"tool_calls": [dangerous]})]
            updates["pending_tool_call"] = PendingToolCall(
                id=dangerous.get("id") or dangerous["name"],
                name=dangerous["name"],
                args=dict(dangerous.get("args") or {}),
                step_id=None,
            )
        else:
            updates["messages"] = [ai_message]

        log_node_exit(LOGGER, "chat_agent", updates)
        return updates

    return chat_agent_node


def build_tool_node(*, tool_registry: ToolRegistry, tool_timeout: float | None = None):
    """Create the node that runs the safe tool calls of the last AI message."""

    @with_error_boundary("tools")
    async def tool_node(state: AgentState) -> Dict[str, Any]:
        messages = state.get("messages") or []
        last = messages[-1] if messages else None
        if not isinstance(last, AIMessage) or not last.tool_calls:
            return {}
        tool_messages = await run_tool_calls(tool_registry, list(last.tool_calls), timeout=tool_timeout)
        updates = {"messages": tool_messages}
        log_node_exit(LOGGER, "tools", updates)
        return updates

    return tool_node
