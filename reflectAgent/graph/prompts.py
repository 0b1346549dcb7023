"""System prompts shared across nodes."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from reflectAgent.utils.prompt_builder import PromptBuilder

PREVIOUS_RESULT_MAX_CHARS = 1000

ANALYSIS_STEP_RE = re.compile(r"analyze|summarize|present|explain|synthesize|review", re.IGNORECASE)


def is_analysis_step(step: Dict[str, Any]) -> bool:
    """Synthesis steps get no tool descriptions and no bound tools."""
    if not step.get("tools_needed"):
        return True
    return bool(ANALYSIS_STEP_RE.search(step.get("description", "")))


def format_previous_results(step_results: Dict[int, Dict[str, Any]]) -> str:
    """Condense step results, truncating each to PREVIOUS_RESULT_MAX_CHARS."""
    blocks = []
    for step_id in sorted(step_results):
        result = step_results[step_id]
        status = "SUCCESS" if result.get("success") else "FAILED"
        output = result.get("output") or result.get("error") or "(no output)"
        blocks.append(f"Step {step_id} {status}:\n{output[:PREVIOUS_RESULT_MAX_CHARS]}")
    return "\n\n".join(blocks)


def build_planner_prompt(tool_descriptions: str) -> str:
    return PromptBuilder.render(PromptBuilder.PLANNER_TEMPLATE, tool_descriptions=tool_descriptions)


def build_simple_response_prompt(user_message: str) -> str:
    return PromptBuilder.render(PromptBuilder.SIMPLE_RESPONSE_TEMPLATE, user_message=user_message)


def build_executor_prompt(
    *,
    goal: str,
    step: Dict[str, Any],
    step_results: Dict[int, Dict[str, Any]],
    tool_descriptions: str,
    analysis_step: bool,
    modification: Optional[str] = None,
) -> str:
    return PromptBuilder.render(
        PromptBuilder.EXECUTOR_TEMPLATE,
        goal=goal or "Complete the user's request",
        step_id=step.get("id"),
        step_description=step.get("description", ""),
        previous_results=format_previous_results(step_results),
        tool_descriptions=tool_descriptions,
        analysis_step=analysis_step,
        modification=modification,
    )


def build_reflector_prompt(
    *,
    goal: str,
    step_index: int,
    steps: List[Dict[str, Any]],
    result: Dict[str, Any],
    max_retries: int,
) -> str:
    step = steps[step_index] if 0 <= step_index < len(steps) else {}
    remaining = "\n".join(f"- {s.get('description', '')}" for s in steps[step_index + 1:])
    return PromptBuilder.render(
        PromptBuilder.REFLECTOR_TEMPLATE,
        goal=goal or "Complete the user's request",
        step_number=step_index + 1,
        total_steps=len(steps) or 1,
        step_description=step.get("description", "Unknown step"),
        success=bool(result.get("success")),
        output=result.get("output"),
        error=result.get("error"),
        retries=result.get("retries", 0),
        max_retries=max_retries,
        remaining_steps=remaining,
    )


def build_chat_prompt(tool_descriptions: str) -> str:
    return PromptBuilder.render(PromptBuilder.CHAT_TEMPLATE, tool_descriptions=tool_descriptions)
