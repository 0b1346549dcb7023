"""Executor node: runs the current plan step."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

from langchain_core.messages import AIMessage, SystemMessage, ToolMessage

from reflectAgent.graph.plan import get_current_step, with_step_status
from reflectAgent.graph.prompts import build_executor_prompt, build_simple_response_prompt, is_analysis_step
from reflectAgent.graph.state import AgentState, PendingToolCall, StepResult
from reflectAgent.models.gateway import ModelGateway
from reflectAgent.tools.registry import ToolRegistry
from reflectAgent.utils.error_handler import ToolExecutionError, with_error_boundary
from reflectAgent.utils.logging_utils import (
    log_error,
    log_node_entry,
    log_node_exit,
    log_prompt,
    log_step_execution,
)
from reflectAgent.utils.message_utils import clean_message_history, last_human_text

LOGGER = logging.getLogger("reflectAgent.executor")

OUTPUT_MAX_CHARS = 500


def _step_key(state: Dict[str, Any]) -> int:
    step = get_current_step(state)
    return step["id"] if step else state.get("current_step", 0) + 1


def _executor_fallback(state: Dict[str, Any], error_text: str) -> Dict[str, Any]:
    """Unexpected failures become a failed attempt, not a session error."""
    step_id = _step_key(state)
    previous = (state.get("step_results") or {}).get(step_id) or {}
    return {
        "step_results": {
            step_id: StepResult(success=False, output=None, error=error_text, retries=previous.get("retries", 0) + 1)
        },
        "pending_tool_call": None,
    }


async def run_tool_calls(tool_registry: ToolRegistry, tool_calls: List[Dict[str, Any]], timeout=None) -> List[ToolMessage]:
    """Execute safe tool calls in order; failures become ``Error: ...`` results."""

    results = []
    for call in tool_calls:
        try:
            output = await tool_registry.invoke(call["name"], call.get("args") or {}, timeout=timeout)
        except ToolExecutionError as e:
            output = f"Error: {e.user_message}"
        results.append(ToolMessage(content=output, tool_call_id=call.get("id") or call["name"], name=call["name"]))
    return results


def first_dangerous_call(tool_registry: ToolRegistry, tool_calls: List[Dict[str, Any]]):
    for call in tool_calls:
        if tool_registry.is_dangerous(call["name"]):
            return call
    return None


def build_executor_node(
    *,
    gateway: ModelGateway,
    tool_registry: ToolRegistry,
    tool_timeout: float | None = None,
    retry_backoff_seconds: float = 0.0,
):
    """Create the executor node."""

    @with_error_boundary("executor", fallback=_executor_fallback)
    async def executor_node(state: AgentState) -> Dict[str, Any]:
        log_node_entry(LOGGER, "executor", state)

        plan = state.get("plan") or {}
        step = get_current_step(state)
        if step is None:
            LOGGER.info("No step left to execute")
            return {}

        step_id = step["id"]
        step_results = state.get("step_results") or {}
        previous = step_results.get(step_id) or {}
        retries = previous.get("retries", 0)
        max_retries = state.get("max_retries", 3)

        if previous and not previous.get("success") and retries >= max_retries:
            message = f"Step {step_id} failed after {retries} retries"
            LOGGER.error(message)
            updates = {"error": message, "plan": with_step_status(plan, step_id, "failed")}
            log_node_exit(LOGGER, "executor", updates)
            return updates

        log_step_execution(LOGGER, state.get("current_step", 0), step, retries, max_retries)

        if previous and not previous.get("success") and retry_backoff_seconds > 0:
            delay = retry_backoff_seconds * (2 ** max(retries - 1, 0))
            LOGGER.info(f"Backing off {delay:.2f}s before retrying step {step_id}")
            await asyncio.sleep(delay)

        plan = with_step_status(plan, step_id, "in_progress")
        history = clean_message_history(state.get("messages", []))

        try:
            if plan.get("query_type") == "simple":
                prompt = build_simple_response_prompt(last_human_text(history) or plan.get("goal", ""))
                log_prompt(LOGGER, "executor", prompt)
                response = await gateway.complete([SystemMessage(content=prompt), *history])
                updates = {
                    "plan": plan,
                    "messages": [response.message or AIMessage(content=response.text)],
                    "step_results": {
                        step_id: StepResult(success=True, output=response.text, error=None, retries=retries)
                    },
                }
                log_node_exit(LOGGER, "executor", updates)
                return updates

            analysis = is_analysis_step(step)
            reflection = state.get("reflection") or {}
            prompt = build_executor_prompt(
                goal=plan.get("goal", ""),
                step=step,
                step_results=step_results,
                tool_descriptions="" if analysis else tool_registry.describe(),
                analysis_step=analysis,
                modification=reflection.get("modification") if reflection.get("decision") == "retry" else None,
            )
            log_prompt(LOGGER, "executor", prompt)

            tools = None if analysis else tool_registry.list_tools()
            response = await gateway.complete([SystemMessage(content=prompt), *history], tools=tools)
        except Exception as e:
            log_error(LOGGER, e, f"executing step {step_id}")
            error_text = getattr(e, "user_message", None) or str(e) or type(e).__name__
            updates = {
                "plan": plan,
                "step_results": {
                    step_id: StepResult(success=False, output=None, error=error_text, retries=retries + 1)
                },
            }
            log_node_exit(LOGGER, "executor", updates)
            return updates

        ai_message = response.message or AIMessage(content=response.text, tool_calls=response.tool_calls)
        tool_calls = list(response.tool_calls)

        if not tool_calls:
            updates = {
                "plan": plan,
                "messages": [ai_message],
                "step_results": {
                    step_id: StepResult(success=True, output=response.text, error=None, retries=retries)
                },
            }
            log_node_exit(LOGGER, "executor", updates)
            return updates

        dangerous = first_dangerous_call(tool_registry, tool_calls)
        if dangerous is not None:
            LOGGER.info(f"Dangerous tool requested: {dangerous['name']}, waiting for approval")
            # Only the gated call stays on the message so the history has no unanswered calls
            updates = {
                "plan": plan,
                "messages": [ai_message.model_copy(update={"tool_calls": [dangerous]})],
                "pending_tool_call": PendingToolCall(
                    id=dangerous.get("id") or dangerous["name"],
                    name=dangerous["name"],
                    args=dict(dangerous.get("args") or {}),
                    step_id=step_id,
                ),
            }
            log_node_exit(LOGGER, "executor", updates)
            return updates

        tool_messages = await run_tool_calls(tool_registry, tool_calls, timeout=tool_timeout)
        combined = "\n".join(f"{msg.name}: {msg.content}" for msg in tool_messages)
        updates = {
            "plan": plan,
            "messages": [ai_message, *tool_messages],
            "step_results": {
                step_id: StepResult(success=True, output=combined[:OUTPUT_MAX_CHARS], error=None, retries=retries)
            },
        }
        log_node_exit(LOGGER, "executor", updates)
        return updates

    return executor_node
