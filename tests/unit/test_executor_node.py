"""Tests for the executor node."""

import pytest
from langchain_core.messages import AIMessage, HumanMessage, ToolMessage

from reflectAgent.graph.nodes import build_executor_node
from reflectAgent.graph.prompts import format_previous_results, is_analysis_step
from reflectAgent.utils.error_handler import ModelInvocationError
from tests.helpers import SHELL_RUNS, FakeGateway, text_response, tool_call_response


def _plan(*steps, query_type="complex"):
    return {
        "goal": "test goal",
        "query_type": query_type,
        "steps": [
            {"id": i + 1, "description": description, "tools_needed": tools, "status": "pending"}
            for i, (description, tools) in enumerate(steps)
        ],
        "estimated_complexity": "moderate",
    }


def _state(plan, current_step=0, step_results=None, **extra):
    state = {
        "mode": "agent",
        "messages": [HumanMessage(content="please do it")],
        "plan": plan,
        "current_step": current_step,
        "step_results": step_results or {},
        "max_retries": 3,
        "iterations": 1,
        "max_iterations": 10,
    }
    state.update(extra)
    return state


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def executor(gateway, tool_registry):
    return build_executor_node(gateway=gateway, tool_registry=tool_registry)


class TestHeuristics:
    def test_analysis_step_detection(self):
        assert is_analysis_step({"description": "Summarize the findings", "tools_needed": ["echo"]})
        assert is_analysis_step({"description": "Fetch data", "tools_needed": []})
        assert not is_analysis_step({"description": "Fetch data", "tools_needed": ["echo"]})

    def test_previous_results_are_truncated(self):
        text = format_previous_results({1: {"success": True, "output": "x" * 5000}})
        assert text.startswith("Step 1 SUCCESS:")
        assert len(text) < 1100


@pytest.mark.asyncio
async def test_index_past_end_is_noop(executor, gateway):
    updates = await executor(_state(_plan(("a", [])), current_step=1))
    assert updates == {}
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_exhausted_retries_is_terminal(executor, gateway):
    results = {1: {"success": False, "error": "bad", "retries": 3}}
    updates = await executor(_state(_plan(("a", ["echo"])), step_results=results))
    assert updates["error"] == "Step 1 failed after 3 retries"
    assert updates["plan"]["steps"][0]["status"] == "failed"
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_simple_plan_answers_without_tools(executor, gateway):
    gateway.queue(text_response("Hello there!"))
    updates = await executor(_state(_plan(("Provide a direct answer", []), query_type="simple")))

    assert updates["step_results"][1] == {"success": True, "output": "Hello there!", "error": None, "retries": 0}
    assert gateway.calls[0]["tools"] is None
    assert isinstance(updates["messages"][0], AIMessage)


@pytest.mark.asyncio
async def test_analysis_step_binds_no_tools(executor, gateway):
    gateway.queue(text_response("The total is 4."))
    plan = _plan(("Compute", ["echo"]), ("Summarize the results", ["echo"]))
    results = {1: {"success": True, "output": "2+2=4", "retries": 0}}

    updates = await executor(_state(plan, current_step=1, step_results=results))

    assert gateway.calls[0]["tools"] is None
    prompt = gateway.calls[0]["messages"][0].content
    assert "ANALYSIS step" in prompt
    assert "2+2=4" in prompt
    assert updates["step_results"][2]["output"] == "The total is 4."


@pytest.mark.asyncio
async def test_safe_tools_run_and_results_are_combined(executor, gateway):
    gateway.queue(
        tool_call_response(
            {"name": "echo", "args": {"text": "a"}, "id": "c1"},
            {"name": "explode", "args": {"reason": "nope"}, "id": "c2"},
        )
    )
    updates = await executor(_state(_plan(("Echo things", ["echo"]))))

    ai, first, second = updates["messages"]
    assert isinstance(first, ToolMessage) and first.content == "echo: a"
    assert second.content.startswith("Error:")
    result = updates["step_results"][1]
    assert result["success"] is True
    assert "echo: a" in result["output"]
    assert len(gateway.calls[0]["tools"]) == 3


@pytest.mark.asyncio
async def test_dangerous_call_suspends_before_any_tool_runs(executor, gateway):
    gateway.queue(
        tool_call_response(
            {"name": "echo", "args": {"text": "a"}, "id": "c1"},
            {"name": "shell_command", "args": {"command": "rm -rf build"}, "id": "c2"},
        )
    )
    updates = await executor(_state(_plan(("Clean up", ["shell_command"]))))

    assert updates["pending_tool_call"] == {
        "id": "c2",
        "name": "shell_command",
        "args": {"command": "rm -rf build"},
        "step_id": 1,
    }
    assert "step_results" not in updates
    assert SHELL_RUNS == []
    (message,) = updates["messages"]
    assert [call["id"] for call in message.tool_calls] == ["c2"]


@pytest.mark.asyncio
async def test_model_failure_records_failed_attempt(executor, gateway):
    gateway.queue(ModelInvocationError("boom", "Model service unavailable: boom"))
    results = {1: {"success": False, "error": "earlier", "retries": 1}}

    updates = await executor(_state(_plan(("a", ["echo"])), step_results=results))

    assert updates["step_results"][1] == {
        "success": False,
        "output": None,
        "error": "Model service unavailable: boom",
        "retries": 2,
    }
    assert "error" not in updates


@pytest.mark.asyncio
async def test_success_after_retry_keeps_retry_count(executor, gateway):
    gateway.queue(text_response("worked"))
    results = {1: {"success": False, "error": "earlier", "retries": 2}}

    updates = await executor(_state(_plan(("a", ["echo"])), step_results=results))

    assert updates["step_results"][1]["success"] is True
    assert updates["step_results"][1]["retries"] == 2


@pytest.mark.asyncio
async def test_retry_passes_reviewer_hint(executor, gateway):
    gateway.queue(text_response("ok"))
    reflection = {"decision": "retry", "modification": "Use a shorter text"}
    results = {1: {"success": False, "error": "too long", "retries": 1}}

    await executor(_state(_plan(("a", ["echo"])), step_results=results, reflection=reflection))

    assert "Use a shorter text" in gateway.calls[0]["messages"][0].content


@pytest.mark.asyncio
async def test_backoff_before_retry(gateway, tool_registry, mocker):
    sleep = mocker.patch("reflectAgent.graph.nodes.executor.asyncio.sleep", new=mocker.AsyncMock())
    node = build_executor_node(gateway=gateway, tool_registry=tool_registry, retry_backoff_seconds=0.5)
    gateway.queue(text_response("ok"))
    results = {1: {"success": False, "error": "x", "retries": 2}}

    await node(_state(_plan(("a", ["echo"])), step_results=results))

    sleep.assert_awaited_once_with(1.0)
