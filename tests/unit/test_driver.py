"""Tests for the transition tables and the driver loop."""

import pytest
from langchain_core.messages import AIMessage, HumanMessage

from reflectAgent.graph import Phase, build_driver
from reflectAgent.graph.routing import route_agent, route_chat, start_phase
from reflectAgent.graph.state import apply_updates, build_snapshot, initial_turn_state, restore_step_results


def _state(**overrides):
    state = initial_turn_state(
        session_id="s1",
        mode="agent",
        history=[],
        user_message=HumanMessage(content="hi"),
        max_iterations=3,
        max_retries=2,
    )
    return apply_updates(state, overrides)


class TestRouting:
    def test_planning(self):
        assert route_agent(Phase.PLANNING, _state(plan={"steps": [{}]})) is Phase.EXECUTING
        assert route_agent(Phase.PLANNING, _state(plan=None, error="No user request found")) is Phase.TERMINAL

    def test_executing(self):
        pending = {"id": "c1", "name": "shell_command", "args": {}, "step_id": 1}
        assert route_agent(Phase.EXECUTING, _state(pending_tool_call=pending)) is Phase.AWAITING_APPROVAL
        assert route_agent(Phase.EXECUTING, _state()) is Phase.REFLECTING
        assert route_agent(Phase.AWAITING_APPROVAL, _state()) is Phase.REFLECTING

    @pytest.mark.parametrize(
        "decision, expected",
        [("continue", Phase.EXECUTING), ("retry", Phase.EXECUTING), ("finish", Phase.TERMINAL), ("error", Phase.TERMINAL)],
    )
    def test_reflecting(self, decision, expected):
        assert route_agent(Phase.REFLECTING, _state(reflection={"decision": decision})) is expected

    def test_chat_routes(self):
        with_calls = _state(messages=[AIMessage(content="", tool_calls=[{"id": "c", "name": "echo", "args": {}}])])
        assert route_chat(Phase.EXECUTING, with_calls) is Phase.TOOLS
        assert route_chat(Phase.EXECUTING, _state(messages=[AIMessage(content="hello")])) is Phase.TERMINAL
        assert route_chat(Phase.TOOLS, _state()) is Phase.EXECUTING
        assert route_chat(Phase.AWAITING_APPROVAL, _state()) is Phase.EXECUTING

    def test_start_phase(self):
        assert start_phase("agent") is Phase.PLANNING
        assert start_phase("chat") is Phase.EXECUTING


class TestState:
    def test_messages_are_appended_to_turn_log(self):
        state = _state()
        state = apply_updates(state, {"messages": [AIMessage(content="a")]})
        assert len(state["messages"]) == 2
        assert [m.content for m in state["turn_messages"]] == ["hi", "a"]

    def test_step_results_merge(self):
        state = _state(step_results={1: {"success": True, "retries": 0}})
        state = apply_updates(state, {"step_results": {2: {"success": False, "retries": 1}}})
        assert set(state["step_results"]) == {1, 2}

    def test_snapshot_and_restore(self):
        state = _state(step_results={1: {"success": True}}, base_message_count=4)
        snapshot = build_snapshot(state)
        assert snapshot["message_count"] == 5
        assert restore_step_results({"1": {"success": True}}) == {1: {"success": True}}


class TestDriver:
    @pytest.mark.asyncio
    async def test_runs_until_terminal_and_checkpoints(self):
        visited = []
        checkpoints = []

        async def planner(state):
            visited.append("planner")
            return {"plan": {"steps": [{"id": 1}]}, "iterations": 1}

        async def executor(state):
            visited.append("executor")
            return {"step_results": {1: {"success": True, "retries": 0}}}

        async def reflector(state):
            visited.append("reflector")
            return {"reflection": {"decision": "finish"}}

        async def approval(state):
            raise AssertionError("approval should not run")

        driver = build_driver(
            mode="agent",
            planner=planner,
            executor=executor,
            reflector=reflector,
            approval=approval,
            checkpoint=lambda state: checkpoints.append(state["phase"]),
        )
        final = await driver.run(_state())

        assert visited == ["planner", "executor", "reflector"]
        assert checkpoints == ["executing", "reflecting", "terminal"]
        assert final["phase"] == "terminal"

    @pytest.mark.asyncio
    async def test_transition_cap_stops_runaway_loops(self):
        async def planner(state):
            return {"plan": {"steps": [{"id": 1}]}}

        async def executor(state):
            return {}

        async def reflector(state):
            # Misbehaving reflector that never ends the turn
            return {"reflection": {"decision": "continue"}}

        async def approval(state):
            return {}

        driver = build_driver(
            mode="agent",
            planner=planner,
            executor=executor,
            reflector=reflector,
            approval=approval,
            max_iterations=2,
        )
        final = await driver.run(_state())
        assert final["error"] == "Maximum iterations reached"
        assert driver.max_transitions == 11

    @pytest.mark.asyncio
    async def test_async_checkpoint_is_awaited(self):
        saved = []

        async def checkpoint(state):
            saved.append(state["phase"])

        async def chat_agent(state):
            return {"messages": [AIMessage(content="hello")]}

        async def noop(state):
            return {}

        driver = build_driver(mode="chat", executor=chat_agent, approval=noop, tools=noop, checkpoint=checkpoint)
        await driver.run(_state(mode="chat"))
        assert saved == ["terminal"]

    def test_agent_mode_requires_planner_and_reflector(self):
        async def node(state):
            return {}

        with pytest.raises(ValueError):
            build_driver(mode="agent", executor=node, approval=node)
        with pytest.raises(ValueError):
            build_driver(mode="unknown", executor=node, approval=node, tools=node)
