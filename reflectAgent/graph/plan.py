"""Plan and reflection schemas plus tolerant parsers.

Model output is parsed strictly first. When that fails the parsers return an
explicit degraded variant instead of raising, so callers can tell a real
plan/reflection from a fallback.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

StepStatus = Literal["pending", "in_progress", "completed", "failed"]
Decision = Literal["continue", "retry", "finish", "error"]

DECISIONS = ("continue", "retry", "finish", "error")


class StepModel(BaseModel):
    """Single executable step."""

    id: int = Field(ge=1)
    description: str = Field(min_length=1)
    tools_needed: List[str] = Field(default_factory=list)
    status: StepStatus = "pending"

    @field_validator("tools_needed", mode="before")
    @classmethod
    def _coerce_tools(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        return value


class PlanModel(BaseModel):
    """Structured plan with ordered steps."""

    goal: str = Field(min_length=1)
    query_type: Literal["simple", "complex"] = "complex"
    steps: List[StepModel] = Field(min_length=1)
    estimated_complexity: Literal["simple", "moderate", "complex"] = "moderate"


class ReflectionModel(BaseModel):
    """Reflector verdict on the step that just ran."""

    assessment: str = ""
    success: bool = False
    decision: Decision = "continue"
    reasoning: str = ""
    modification: Optional[str] = None


@dataclass(frozen=True)
class ParsedPlan:
    plan: PlanModel


@dataclass(frozen=True)
class DegradedPlan:
    plan: PlanModel
    reason: str


PlanParseResult = Union[ParsedPlan, DegradedPlan]


@dataclass(frozen=True)
class ParsedReflection:
    reflection: ReflectionModel


@dataclass(frozen=True)
class DegradedReflection:
    reflection: ReflectionModel
    reason: str


ReflectionParseResult = Union[ParsedReflection, DegradedReflection]


_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Pull the first JSON object out of model text (bare, fenced or embedded)."""

    if not text:
        return None
    candidates = [text.strip()]
    fenced = _FENCE_RE.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())
    embedded = _OBJECT_RE.search(text)
    if embedded:
        candidates.append(embedded.group(0))

    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except (json.JSONDecodeError, ValueError):
            continue
        if isinstance(value, dict):
            return value
    return None


def fallback_plan(request: str) -> PlanModel:
    """One-step plan whose only step is the raw request."""

    request = request.strip() or "Respond to the user"
    return PlanModel(
        goal=request,
        query_type="complex",
        steps=[StepModel(id=1, description=request, tools_needed=[], status="pending")],
        estimated_complexity="simple",
    )


def direct_answer_plan(request: str) -> PlanModel:
    """Plan for conversational messages that need no tools or planning call."""

    return PlanModel(
        goal=request.strip() or "Respond to the user",
        query_type="simple",
        steps=[StepModel(id=1, description="Provide a direct answer", tools_needed=[], status="pending")],
        estimated_complexity="simple",
    )


def normalize_plan_payload(payload: Dict[str, Any], request: str) -> Dict[str, Any]:
    """Fill defaults and renumber steps 1..n in order."""

    raw_steps = payload.get("steps") or []
    steps = []
    for raw in raw_steps:
        if isinstance(raw, str):
            raw = {"description": raw}
        if not isinstance(raw, dict):
            continue
        description = str(raw.get("description") or raw.get("task") or raw.get("action") or "").strip()
        if not description:
            continue
        steps.append(
            {
                "id": len(steps) + 1,
                "description": description,
                "tools_needed": raw.get("tools_needed") or raw.get("tools") or [],
                "status": "pending",
            }
        )

    query_type = str(payload.get("query_type") or "complex").lower()
    complexity = str(payload.get("estimated_complexity") or payload.get("complexity") or "moderate").lower()
    return {
        "goal": str(payload.get("goal") or request).strip() or request,
        "query_type": query_type if query_type in ("simple", "complex") else "complex",
        "steps": steps,
        "estimated_complexity": complexity if complexity in ("simple", "moderate", "complex") else "moderate",
    }


def parse_plan(output: Union[str, BaseModel, Dict[str, Any], None], request: str) -> PlanParseResult:
    """Parse planner output, degrading to ``fallback_plan(request)``."""

    if isinstance(output, BaseModel):
        payload = output.model_dump()
    elif isinstance(output, dict):
        payload = output
    else:
        payload = extract_json_object(output or "")

    if payload is None:
        return DegradedPlan(plan=fallback_plan(request), reason="no JSON object in planner output")

    try:
        plan = PlanModel.model_validate(normalize_plan_payload(payload, request))
    except ValidationError as e:
        return DegradedPlan(plan=fallback_plan(request), reason=f"invalid plan: {e.error_count()} errors")
    return ParsedPlan(plan=plan)


def parse_reflection(output: Union[str, BaseModel, Dict[str, Any], None], step_succeeded: bool) -> ReflectionParseResult:
    """Parse reflector output.

    Malformed output degrades to ``continue`` for a successful step and
    ``retry`` otherwise. An unknown decision value becomes ``continue``.
    """

    default_decision = "continue" if step_succeeded else "retry"
    if isinstance(output, ReflectionModel):
        return ParsedReflection(reflection=output)
    if isinstance(output, BaseModel):
        payload = output.model_dump()
    elif isinstance(output, dict):
        payload = output
    else:
        payload = extract_json_object(output or "")

    if payload is None:
        return DegradedReflection(
            reflection=ReflectionModel(
                assessment="Step completed" if step_succeeded else "Step failed",
                success=step_succeeded,
                decision=default_decision,
                reasoning="Could not parse reflector output, using default logic",
            ),
            reason="no JSON object in reflector output",
        )

    decision = str(payload.get("decision") or default_decision).strip().lower()
    if decision not in DECISIONS:
        decision = "continue"

    success = payload.get("success")
    reflection = ReflectionModel(
        assessment=str(payload.get("assessment") or "Unknown"),
        success=step_succeeded if success is None else bool(success),
        decision=decision,
        reasoning=str(payload.get("reasoning") or "No reasoning provided"),
        modification=payload.get("modification") or None,
    )
    return ParsedReflection(reflection=reflection)


# ========== Progress helpers ==========

def get_current_step(state: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    plan = state.get("plan") or {}
    steps = plan.get("steps") or []
    index = state.get("current_step", 0)
    if 0 <= index < len(steps):
        return steps[index]
    return None


def is_all_steps_complete(state: Dict[str, Any]) -> bool:
    """True when every step of the plan has a successful result."""

    plan = state.get("plan") or {}
    steps = plan.get("steps") or []
    if not steps:
        return False
    results = state.get("step_results") or {}
    return all((results.get(step["id"]) or {}).get("success") for step in steps)


def get_progress_string(state: Dict[str, Any]) -> str:
    plan = state.get("plan") or {}
    total = len(plan.get("steps") or [])
    if not total:
        return "No plan"
    current = min(state.get("current_step", 0) + 1, total)
    return f"Step {current}/{total}"


def with_step_status(plan: Dict[str, Any], step_id: int, status: str) -> Dict[str, Any]:
    """Return a copy of ``plan`` with one step's status replaced."""

    steps = [
        {**step, "status": status} if step.get("id") == step_id else step
        for step in plan.get("steps", [])
    ]
    return {**plan, "steps": steps}
