"""Explicit state machine driving one turn of a session.

Agent mode::

    PLANNING → EXECUTING → REFLECTING → EXECUTING ... → TERMINAL
                   ↓            ↑
           AWAITING_APPROVAL ───┘

Chat mode::

    EXECUTING ⇄ TOOLS
        ↓  ↑
    AWAITING_APPROVAL        (no tool calls → TERMINAL)

Every transition is followed by a checkpoint so a crash while waiting for
approval can re-present the same pending call.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from reflectAgent.graph.routing import Phase, route_agent, route_chat, start_phase
from reflectAgent.graph.state import AgentState, apply_updates
from reflectAgent.utils.logging_utils import log_routing_decision

LOGGER = logging.getLogger("reflectAgent.driver")

Node = Callable[[AgentState], Awaitable[Dict[str, Any]]]
Router = Callable[[Phase, AgentState], Phase]
Checkpoint = Callable[[AgentState], Any]


class Driver:
    """Runs nodes until the router reaches TERMINAL."""

    def __init__(
        self,
        *,
        mode: str,
        nodes: Dict[Phase, Node],
        router: Router,
        max_iterations: int,
        checkpoint: Optional[Checkpoint] = None,
    ) -> None:
        self.mode = mode
        self.nodes = nodes
        self.router = router
        self.checkpoint = checkpoint
        # Each iteration visits at most three phases; the slack covers planning and the final reflection
        self.max_transitions = 3 * max_iterations + 5

    async def _checkpoint(self, state: AgentState) -> None:
        if self.checkpoint is None:
            return
        result = self.checkpoint(state)
        if inspect.isawaitable(result):
            await result

    async def run(self, state: AgentState, start: Optional[Phase] = None) -> AgentState:
        phase = start or start_phase(self.mode)
        transitions = 0

        while phase is not Phase.TERMINAL:
            if transitions >= self.max_transitions:
                LOGGER.error(f"Turn exceeded {self.max_transitions} transitions, stopping")
                state = apply_updates(state, {"error": state.get("error") or "Maximum iterations reached"})
                break

            node = self.nodes.get(phase)
            if node is None:
                raise KeyError(f"No node registered for phase {phase.value}")

            state = apply_updates(state, {"phase": phase.value})
            updates = await node(state)
            state = apply_updates(state, updates or {})

            next_phase = self.router(phase, state)
            log_routing_decision(LOGGER, phase.value, next_phase.value)
            state = apply_updates(state, {"phase": next_phase.value})
            await self._checkpoint(state)

            phase = next_phase
            transitions += 1

        return state


def build_driver(
    *,
    mode: str,
    executor: Node,
    approval: Node,
    planner: Optional[Node] = None,
    reflector: Optional[Node] = None,
    tools: Optional[Node] = None,
    max_iterations: int = 10,
    checkpoint: Optional[Checkpoint] = None,
) -> Driver:
    """Assemble the driver for a session mode.

    In chat mode ``executor`` is the chat agent node and ``tools`` runs safe
    tool calls; in agent mode ``planner`` and ``reflector`` are required.
    """
    if mode == "agent":
        if planner is None or reflector is None:
            raise ValueError("agent mode needs a planner and a reflector")
        nodes = {
            Phase.PLANNING: planner,
            Phase.EXECUTING: executor,
            Phase.AWAITING_APPROVAL: approval,
            Phase.REFLECTING: reflector,
        }
        router = route_agent
    elif mode == "chat":
        if tools is None:
            raise ValueError("chat mode needs a tool node")
        nodes = {
            Phase.EXECUTING: executor,
            Phase.AWAITING_APPROVAL: approval,
            Phase.TOOLS: tools,
        }
        router = route_chat
    else:
        raise ValueError(f"Unknown mode: {mode}")

    return Driver(mode=mode, nodes=nodes, router=router, max_iterations=max_iterations, checkpoint=checkpoint)
