"""Planner node: turns the latest user request into an ordered plan."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict

from langchain_core.messages import SystemMessage

from reflectAgent.graph.plan import DegradedPlan, PlanModel, direct_answer_plan, parse_plan
from reflectAgent.graph.prompts import build_planner_prompt
from reflectAgent.graph.state import AgentState
from reflectAgent.models.gateway import ModelGateway
from reflectAgent.tools.registry import ToolRegistry
from reflectAgent.utils.error_handler import ModelInvocationError, with_error_boundary
from reflectAgent.utils.logging_utils import log_node_entry, log_node_exit, log_plan_created, log_prompt
from reflectAgent.utils.message_utils import clean_message_history, last_human_text

LOGGER = logging.getLogger("reflectAgent.planner")

# Messages answered directly, without asking the model for a plan
CONVERSATIONAL_PATTERNS = [
    re.compile(r"^\s*(hi|hello|hey|greetings|good (morning|afternoon|evening))\b[\s!.,?]*$", re.IGNORECASE),
    re.compile(r"^\s*(thanks|thank you|thx|cheers)\b.*$", re.IGNORECASE),
    re.compile(r"^\s*(who|what) are you\b.*$", re.IGNORECASE),
    re.compile(r"^\s*(ok|okay|got it|cool|great|nice|sure|bye|goodbye)\b[\s!.,?]*$", re.IGNORECASE),
]


def is_conversational(text: str) -> bool:
    return any(pattern.match(text) for pattern in CONVERSATIONAL_PATTERNS)


def _planner_fallback(state: Dict[str, Any], error_text: str) -> Dict[str, Any]:
    return {"error": f"Planner failed: {error_text}", "plan": None}


def _fresh_plan_updates(plan: PlanModel, state: AgentState) -> Dict[str, Any]:
    return {
        "plan": plan.model_dump(),
        "current_step": 0,
        "step_results": {},
        "reflection": None,
        "pending_tool_call": None,
        "error": None,
        "iterations": state.get("iterations", 0) + 1,
        "total_iterations": state.get("total_iterations", 0) + 1,
    }


def build_planner_node(*, gateway: ModelGateway, tool_registry: ToolRegistry):
    """Create a planner node bound to the planner model and the tool catalog."""

    @with_error_boundary("planner", fallback=_planner_fallback)
    async def planner_node(state: AgentState) -> Dict[str, Any]:
        log_node_entry(LOGGER, "planner", state)

        request = last_human_text(state.get("messages", []))
        if not request:
            LOGGER.warning("No user message to plan for")
            updates = {"error": "No user request found", "plan": None}
            log_node_exit(LOGGER, "planner", updates)
            return updates


        if is_conversational(request):
            LOGGER.info("Conversational message, skipping planning call")
            plan = direct_answer_plan(request)
            log_plan_created(LOGGER, plan.model_dump())
            updates = _fresh_plan_updates(plan, state)
            log_node_exit(LOGGER, "planner", updates)
            return updates

        system_prompt = build_planner_prompt(tool_registry.describe())
        log_prompt(LOGGER, "planner", system_prompt)

        history = clean_message_history(state.get("messages", []))
        try:
            response = await gateway.complete([SystemMessage(content=system_prompt), *history], schema=PlanModel)
        except ModelInvocationError as e:
            LOGGER.error(f"Planning call failed: {e}")
            updates = {"error": f"Planner failed: {e.user_message}", "plan": None}
            log_node_exit(LOGGER, "planner", updates)
            return updates

        result = parse_plan(response.structured if response.structured is not None else response.text, request)
        if isinstance(result, DegradedPlan):
            LOGGER.warning(f"Planner output unusable ({result.reason}), using single-step plan")

        plan = result.plan
        log_plan_created(LOGGER, plan.model_dump())

        updates = _fresh_plan_updates(plan, state)
        log_node_exit(LOGGER, "planner", updates)
        return updates

    return planner_node
