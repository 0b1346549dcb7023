"""Orchestration state machine: state, plans, nodes and the driver."""

from .builder import Driver, build_driver
from .routing import Phase
from .state import AgentState, PendingToolCall, StepResult

__all__ = ["AgentState", "Driver", "PendingToolCall", "Phase", "StepResult", "build_driver"]
