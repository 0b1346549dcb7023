"""Approval node: resolves the pending dangerous tool call."""

from __future__ import annotations

import logging
from typing import Any, Dict

from langchain_core.messages import ToolMessage

from reflectAgent.graph.state import AgentState, StepResult
from reflectAgent.hitl.approval_checker import ApprovalChecker
from reflectAgent.hitl.approval_gate import ApprovalGate, ApprovalRequest
from reflectAgent.tools.registry import ToolRegistry
from reflectAgent.utils.error_handler import ToolExecutionError, with_error_boundary
from reflectAgent.utils.logging_utils import log_node_entry, log_node_exit

LOGGER = logging.getLogger("reflectAgent.approval")

REJECTION_MESSAGE = "User rejected this action. Try a different approach."
REJECTED_ERROR = "User rejected the action"
EXPIRED_ERROR = "Approval request expired"
OUTPUT_MAX_CHARS = 500


def _approval_fallback(state: Dict[str, Any], error_text: str) -> Dict[str, Any]:
    return {"error": error_text, "pending_tool_call": None}


def build_approval_node(
    *,
    gate: ApprovalGate,
    checker: ApprovalChecker,
    tool_registry: ToolRegistry,
    tool_timeout: float | None = None,
):
    """Create the node that asks a reviewer about the pending call and applies the verdict."""

    @with_error_boundary("approval", fallback=_approval_fallback)
    async def approval_node(state: AgentState) -> Dict[str, Any]:
        log_node_entry(LOGGER, "approval", state)

        pending = state.get("pending_tool_call")
        if not pending:
            LOGGER.warning("Approval node entered without a pending tool call")
            return {}

        assessment = checker.assess(pending["name"], pending.get("args") or {})
        verdict = await gate.request(
            ApprovalRequest(
                tool_name=pending["name"],
                args=pending.get("args") or {},
                reason=assessment.reason,
                risk_level=assessment.risk_level,
                tool_call_id=pending["id"],
                step_id=pending.get("step_id"),
            )
        )

        if verdict.approved:
            try:
                output = await tool_registry.invoke(pending["name"], pending.get("args") or {}, timeout=tool_timeout)
            except ToolExecutionError as e:
                output = f"Error: {e.user_message}"
            tool_message = ToolMessage(content=output, tool_call_id=pending["id"], name=pending["name"])
            step_result = StepResult(success=True, output=output[:OUTPUT_MAX_CHARS], error=None)
        else:
            LOGGER.info(f"Tool {pending['name']} not approved ({verdict.reason})")
            tool_message = ToolMessage(content=REJECTION_MESSAGE, tool_call_id=pending["id"], name=pending["name"])
            step_result = StepResult(
                success=False,
                output=None,
                error=EXPIRED_ERROR if verdict.reason == "expired" else REJECTED_ERROR,
            )

        updates: Dict[str, Any] = {"messages": [tool_message], "pending_tool_call": None}

        step_id = pending.get("step_id")
        if state.get("mode") == "agent" and step_id is not None:
            previous = (state.get("step_results") or {}).get(step_id) or {}
            retries = previous.get("retries", 0)
            step_result["retries"] = retries if step_result["success"] else retries + 1
            updates["step_results"] = {step_id: step_result}

        log_node_exit(LOGGER, "approval", updates)
        return updates

    return approval_node
