"""Reflector node: judges the last step and decides what happens next."""

from __future__ import annotations

import logging
from typing import Any, Dict

from langchain_core.messages import HumanMessage, SystemMessage

from reflectAgent.graph.plan import (
    DegradedReflection,
    ReflectionModel,
    get_current_step,
    is_all_steps_complete,
    parse_reflection,
    with_step_status,
)
from reflectAgent.graph.prompts import build_reflector_prompt
from reflectAgent.graph.state import AgentState
from reflectAgent.models.gateway import ModelGateway
from reflectAgent.utils.error_handler import with_error_boundary
from reflectAgent.utils.logging_utils import log_node_entry, log_node_exit, log_prompt, log_routing_decision

LOGGER = logging.getLogger("reflectAgent.reflector")


def _reflection(decision: str, reasoning: str, *, success: bool = False, assessment: str = "") -> Dict[str, Any]:
    return ReflectionModel(
        assessment=assessment or reasoning,
        success=success,
        decision=decision,
        reasoning=reasoning,
    ).model_dump()


def _reflector_fallback(state: Dict[str, Any], error_text: str) -> Dict[str, Any]:
    return {
        "reflection": _reflection("error", f"Reflection failed: {error_text}"),
        "error": f"Reflection failed: {error_text}",
    }


def _decide(state: AgentState, reflection: Dict[str, Any], extra: Dict[str, Any] | None = None) -> Dict[str, Any]:
    """Common bookkeeping for every decision the reflector takes."""

    updates: Dict[str, Any] = dict(extra or {})
    updates["reflection"] = reflection
    updates["reflections"] = [*state.get("reflections", []), reflection]
    if reflection["decision"] in ("continue", "retry"):
        iterations = state.get("iterations", 0) + 1
        updates["iterations"] = iterations
        updates["total_iterations"] = state.get("total_iterations", 0) + 1
    log_routing_decision(LOGGER, "reflector", reflection["decision"], reflection.get("reasoning", ""))
    return updates


def build_reflector_node(*, gateway: ModelGateway):
    """Create the reflector node."""

    @with_error_boundary("reflector", fallback=_reflector_fallback)
    async def reflector_node(state: AgentState) -> Dict[str, Any]:
        log_node_entry(LOGGER, "reflector", state)

        iterations = state.get("iterations", 0)
        max_iterations = state.get("max_iterations", 10)
        max_retries = state.get("max_retries", 3)
        plan = state.get("plan") or {}
        steps = plan.get("steps") or []
        index = state.get("current_step", 0)

        if iterations >= max_iterations:
            updates = _decide(
                state,
                _reflection("error", f"Reached iteration ceiling ({iterations}/{max_iterations})"),
                {"error": "Maximum iterations reached"},
            )
            log_node_exit(LOGGER, "reflector", updates)
            return updates

        if state.get("error"):
            updates = _decide(state, _reflection("error", state["error"]))
            log_node_exit(LOGGER, "reflector", updates)
            return updates

        if is_all_steps_complete(state):
            updates = _decide(state, _reflection("finish", "All steps completed", success=True))
            log_node_exit(LOGGER, "reflector", updates)
            return updates

        step = get_current_step(state)
        result = (state.get("step_results") or {}).get(step["id"]) if step else None

        if plan.get("query_type") == "simple" and result and result.get("success"):
            updates = _decide(
                state,
                _reflection("finish", "Simple query answered", success=True),
                {"plan": with_step_status(plan, step["id"], "completed")},
            )
            log_node_exit(LOGGER, "reflector", updates)
            return updates

        if step is None:
            updates = _decide(
                state,
                _reflection("error", "No step left but the plan has unfinished steps"),
                {"error": "Plan ended with unfinished steps"},
            )
            log_node_exit(LOGGER, "reflector", updates)
            return updates

        if not result:
            updates = _decide(state, _reflection("continue", "Step not attempted yet"))
            log_node_exit(LOGGER, "reflector", updates)
            return updates

        retries = result.get("retries", 0)
        if not result.get("success") and retries >= max_retries:
            message = "Exceeded maximum retry attempts"
            updates = _decide(
                state,
                _reflection("error", f"Step {step['id']} failed {retries} times: {result.get('error')}"),
                {"error": message, "plan": with_step_status(plan, step["id"], "failed")},
            )
            log_node_exit(LOGGER, "reflector", updates)
            return updates

        prompt = build_reflector_prompt(
            goal=plan.get("goal", ""),
            step_index=index,
            steps=steps,
            result=result,
            max_retries=max_retries,
        )
        log_prompt(LOGGER, "reflector", prompt)

        response = await gateway.complete(
            [SystemMessage(content=prompt), HumanMessage(content="Evaluate the step and decide the next action.")],
            schema=ReflectionModel,
        )
        parsed = parse_reflection(
            response.structured if response.structured is not None else response.text,
            bool(result.get("success")),
        )
        if isinstance(parsed, DegradedReflection):
            LOGGER.warning(f"Reflector output unusable ({parsed.reason}), using default decision")

        reflection = parsed.reflection.model_dump()
        decision = reflection["decision"]

        if decision in ("finish", "continue") and not result.get("success"):
            # A failed step is never finished or skipped
            reflection["reasoning"] = f"{reflection['reasoning']} (step failed, retrying instead of {decision})"
            decision = "retry"
            reflection["decision"] = "retry"

        extra: Dict[str, Any] = {}
        if decision == "continue":
            extra["current_step"] = index + 1
            extra["error"] = None
            extra["plan"] = with_step_status(plan, step["id"], "completed")
        elif decision == "retry":
            if retries >= max_retries:
                reflection["decision"] = "error"
                extra["error"] = "Exceeded maximum retry attempts"
                extra["plan"] = with_step_status(plan, step["id"], "failed")
            elif result.get("success"):
                # Failed attempts were already counted by the executor
                extra["step_results"] = {step["id"]: {**result, "success": False, "retries": retries + 1}}
        elif decision == "error":
            extra["error"] = reflection.get("reasoning") or "Reflector reported an error"

        updates = _decide(state, reflection, extra)
        log_node_exit(LOGGER, "reflector", updates)
        return updates

    return reflector_node
