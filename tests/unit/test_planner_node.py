"""Tests for the planner node."""

import pytest
from langchain_core.messages import AIMessage, HumanMessage

from reflectAgent.graph.nodes import build_planner_node
from reflectAgent.graph.nodes.planner import is_conversational
from reflectAgent.graph.plan import PlanModel
from reflectAgent.utils.error_handler import ModelInvocationError
from tests.helpers import FakeGateway, structured_response, text_response


def _state(*messages):
    return {"messages": list(messages), "iterations": 0, "max_iterations": 10}


@pytest.mark.parametrize("text", ["hello", "Hi!", "thanks a lot", "who are you?", "ok", "Good morning"])
def test_conversational_patterns(text):
    assert is_conversational(text)


@pytest.mark.parametrize("text", ["hello, list my files", "what is 2+2", "okay now delete foo.txt"])
def test_task_requests_are_not_conversational(text):
    assert not is_conversational(text)


@pytest.mark.asyncio
async def test_greeting_skips_model_call(tool_registry):
    gateway = FakeGateway()
    node = build_planner_node(gateway=gateway, tool_registry=tool_registry)

    updates = await node(_state(HumanMessage(content="hello")))

    assert gateway.calls == []
    assert updates["plan"]["query_type"] == "simple"
    assert updates["plan"]["steps"][0]["description"] == "Provide a direct answer"
    assert updates["iterations"] == 1


@pytest.mark.asyncio
async def test_structured_plan(tool_registry):
    plan = PlanModel(
        goal="Echo twice",
        steps=[
            {"id": 1, "description": "Echo a", "tools_needed": ["echo"]},
            {"id": 2, "description": "Echo b", "tools_needed": ["echo"]},
        ],
    )
    gateway = FakeGateway([structured_response(plan)])
    node = build_planner_node(gateway=gateway, tool_registry=tool_registry)

    updates = await node(_state(HumanMessage(content="echo a then b")))

    assert len(updates["plan"]["steps"]) == 2
    assert updates["current_step"] == 0
    assert updates["step_results"] == {}
    assert updates["error"] is None
    assert gateway.calls[0]["schema"] is PlanModel
    system_prompt = gateway.calls[0]["messages"][0].content
    assert "shell_command (requires approval)" in system_prompt


@pytest.mark.asyncio
async def test_unparseable_output_degrades(tool_registry):
    gateway = FakeGateway([text_response("Sure, I'll do that.")])
    node = build_planner_node(gateway=gateway, tool_registry=tool_registry)

    updates = await node(_state(HumanMessage(content="count the files")))

    assert updates["plan"]["steps"] == [
        {"id": 1, "description": "count the files", "tools_needed": [], "status": "pending"}
    ]
    assert updates["error"] is None


@pytest.mark.asyncio
async def test_no_user_message(tool_registry):
    node = build_planner_node(gateway=FakeGateway(), tool_registry=tool_registry)
    updates = await node(_state(AIMessage(content="orphan")))
    assert updates == {"error": "No user request found", "plan": None}


@pytest.mark.asyncio
async def test_model_failure_aborts_with_planning_error(tool_registry):
    gateway = FakeGateway([ModelInvocationError("boom", "Model service unavailable: boom")])
    node = build_planner_node(gateway=gateway, tool_registry=tool_registry)

    updates = await node(_state(HumanMessage(content="do something")))

    assert updates["plan"] is None
    assert updates["error"] == "Planner failed: Model service unavailable: boom"


@pytest.mark.asyncio
async def test_unexpected_exception_is_contained(tool_registry):
    gateway = FakeGateway([RuntimeError("kaput")])
    node = build_planner_node(gateway=gateway, tool_registry=tool_registry)

    updates = await node(_state(HumanMessage(content="do something")))

    assert updates["plan"] is None
    assert updates["error"].startswith("Planner failed")
