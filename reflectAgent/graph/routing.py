"""Transition tables for the orchestration state machine."""

from __future__ import annotations

import logging
from enum import Enum

from langchain_core.messages import AIMessage

from reflectAgent.graph.state import AgentState

LOGGER = logging.getLogger("reflectAgent.routing")


class Phase(str, Enum):
    PLANNING = "planning"
    EXECUTING = "executing"
    AWAITING_APPROVAL = "awaiting_approval"
    REFLECTING = "reflecting"
    TOOLS = "tools"
    TERMINAL = "terminal"


CONTINUE_DECISIONS = {"continue", "retry"}


def route_agent(phase: Phase, state: AgentState) -> Phase:
    """Plan → Execute → (Approve) → Reflect.

    - PLANNING → EXECUTING if a plan was produced without error, else TERMINAL
    - EXECUTING → AWAITING_APPROVAL if a call is pending, else REFLECTING
    - AWAITING_APPROVAL → REFLECTING whatever the verdict
    - REFLECTING → EXECUTING on continue/retry, TERMINAL on finish/error
    """
    if phase is Phase.PLANNING:
        if state.get("plan") and not state.get("error"):
            return Phase.EXECUTING
        return Phase.TERMINAL

    if phase is Phase.EXECUTING:
        if state.get("pending_tool_call"):
            return Phase.AWAITING_APPROVAL
        return Phase.REFLECTING

    if phase is Phase.AWAITING_APPROVAL:
        return Phase.REFLECTING

    if phase is Phase.REFLECTING:
        decision = (state.get("reflection") or {}).get("decision")
        if decision in CONTINUE_DECISIONS:
            return Phase.EXECUTING
        return Phase.TERMINAL

    return Phase.TERMINAL


def route_chat(phase: Phase, state: AgentState) -> Phase:
    """Tool-augmented reply loop without planning.

    - EXECUTING → AWAITING_APPROVAL for a dangerous call, TOOLS for safe calls,
      TERMINAL for a plain answer or an error
    - TOOLS and AWAITING_APPROVAL → EXECUTING
    """
    if phase is Phase.EXECUTING:
        if state.get("error"):
            return Phase.TERMINAL
        if state.get("pending_tool_call"):
            return Phase.AWAITING_APPROVAL
        messages = state.get("messages") or []
        last = messages[-1] if messages else None
        if isinstance(last, AIMessage) and last.tool_calls:
            return Phase.TOOLS
        return Phase.TERMINAL

    if phase in (Phase.TOOLS, Phase.AWAITING_APPROVAL):
        return Phase.EXECUTING

    return Phase.TERMINAL


def start_phase(mode: str) -> Phase:
    return Phase.PLANNING if mode == "agent" else Phase.EXECUTING
