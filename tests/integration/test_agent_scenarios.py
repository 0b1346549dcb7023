"""End-to-end agent-mode turns through SessionManager with scripted models."""

import pytest
from langchain_core.messages import AIMessage, HumanMessage

from reflectAgent.graph.plan import PlanModel, ReflectionModel
from reflectAgent.utils.error_handler import ModelInvocationError
from tests.helpers import SHELL_RUNS, ScriptedReviewer, structured_response, text_response, tool_call_response


def _plan(*steps):
    return PlanModel(
        goal="test goal",
        query_type="complex",
        steps=[{"id": i + 1, "description": d, "tools_needed": t} for i, (d, t) in enumerate(steps)],
    )


@pytest.mark.asyncio
async def test_greeting_finishes_in_one_iteration(harness, conversation_store):
    manager, gateways, _ = harness()
    gateways["executor"].queue(text_response("Hello! How can I help you today?"))

    result = await manager.chat("s1", "agent", "hello")

    assert result["response"] == "Hello! How can I help you today?"
    assert result["iterations"] == 1
    assert result["error"] is None
    assert result["plan"]["query_type"] == "simple"
    assert gateways["planner"].calls == []
    assert gateways["reflector"].calls == []
    assert [m.role for m in conversation_store.get_messages("s1")] == ["user", "assistant"]


@pytest.mark.asyncio
async def test_rejected_dangerous_command_is_retried_not_finished(harness):
    reviewer = ScriptedReviewer("n")
    manager, gateways, _ = harness(reviewer=reviewer)
    gateways["planner"].queue(structured_response(_plan(("Delete the build directory", ["shell_command"]))))
    gateways["executor"].queue(
        tool_call_response({"name": "shell_command", "args": {"command": "rm -rf build"}, "id": "c1"}),
        text_response("I could not delete the directory because the action was not approved."),
    )
    # The reflector asks to finish on a failed step; that must not end the turn
    gateways["reflector"].queue(structured_response(ReflectionModel(decision="finish", reasoning="done")))

    result = await manager.chat("s1", "agent", "delete the build directory")

    assert SHELL_RUNS == []
    assert len(reviewer.requests) == 1
    assert reviewer.requests[0].args == {"command": "rm -rf build"}
    assert result["step_results"][1]["success"] is True
    assert result["step_results"][1]["retries"] == 1
    assert result["error"] is None
    assert "not approved" in result["response"]


@pytest.mark.asyncio
async def test_rejection_at_retry_ceiling_is_error(harness):
    manager, gateways, _ = harness(reviewer=ScriptedReviewer("no"), max_retries=1)
    gateways["planner"].queue(structured_response(_plan(("Delete the build directory", ["shell_command"]))))
    gateways["executor"].queue(
        tool_call_response({"name": "shell_command", "args": {"command": "rm -rf build"}, "id": "c1"})
    )

    result = await manager.chat("s1", "agent", "delete the build directory")

    assert result["error"] == "Exceeded maximum retry attempts"
    assert result["step_results"][1] == {
        "success": False,
        "output": None,
        "error": "User rejected the action",
        "retries": 1,
    }
    assert gateways["reflector"].calls == []


@pytest.mark.asyncio
async def test_continue_after_rejection_never_finishes(harness):
    manager, gateways, _ = harness(reviewer=ScriptedReviewer("n", "n"), max_retries=2)
    gateways["planner"].queue(structured_response(_plan(("Delete the build directory", ["shell_command"]))))
    gateways["executor"].queue(
        tool_call_response({"name": "shell_command", "args": {"command": "rm -rf build"}, "id": "c1"}),
        tool_call_response({"name": "shell_command", "args": {"command": "rm -rf build"}, "id": "c2"}),
    )
    # The reflector wants to move past the rejected step
    gateways["reflector"].queue(structured_response(ReflectionModel(decision="continue", reasoning="skip it")))

    result = await manager.chat("s1", "agent", "delete the build directory")

    assert SHELL_RUNS == []
    assert result["step_results"][1]["success"] is False
    assert result["step_results"][1]["retries"] == 2
    assert result["error"] == "Exceeded maximum retry attempts"
    assert result["plan"]["steps"][0]["status"] == "failed"


@pytest.mark.asyncio
async def test_approved_command_runs(harness, session_store):
    manager, gateways, reviewer = harness(reviewer=ScriptedReviewer("yes"))
    gateways["planner"].queue(structured_response(_plan(("List files", ["shell_command"]))))
    gateways["executor"].queue(tool_call_response({"name": "shell_command", "args": {"command": "ls"}, "id": "c1"}))

    result = await manager.chat("s1", "agent", "list the files with ls")

    assert SHELL_RUNS == ["ls"]
    assert result["response"] == "ran: ls"
    assert result["step_results"][1]["success"] is True
    assert session_store.load("s1")["pending_tool_call"] is None


@pytest.mark.asyncio
async def test_step_recovers_after_failures(harness):
    manager, gateways, _ = harness(max_retries=3)
    gateways["planner"].queue(structured_response(_plan(("Echo hello", ["echo"]))))
    gateways["executor"].queue(
        ModelInvocationError("timeout", "The model did not respond in time, please retry"),
        ModelInvocationError("timeout", "The model did not respond in time, please retry"),
        tool_call_response({"name": "echo", "args": {"text": "hello"}, "id": "c1"}),
    )
    gateways["reflector"].queue(
        structured_response(ReflectionModel(decision="retry", reasoning="transient")),
        structured_response(ReflectionModel(decision="retry", reasoning="transient")),
    )

    result = await manager.chat("s1", "agent", "echo hello")

    assert result["step_results"][1]["success"] is True
    assert result["step_results"][1]["retries"] == 2
    assert result["error"] is None
    assert result["iterations"] == 3
    assert result["response"] == "echo: hello"


@pytest.mark.asyncio
async def test_multi_step_plan(harness):
    manager, gateways, _ = harness()
    gateways["planner"].queue(structured_response(_plan(("Echo a", ["echo"]), ("Summarize the results", []))))
    gateways["executor"].queue(
        tool_call_response({"name": "echo", "args": {"text": "a"}, "id": "c1"}),
        text_response("The echo returned 'a'."),
    )
    gateways["reflector"].queue(structured_response(ReflectionModel(success=True, decision="continue", reasoning="ok")))

    result = await manager.chat("s1", "agent", "echo a and tell me what happened")

    assert result["response"] == "The echo returned 'a'."
    assert result["iterations"] == 2
    assert result["plan"]["steps"][0]["status"] == "completed"
    assert gateways["executor"].calls[1]["tools"] is None
    assert "echo: a" in gateways["executor"].calls[1]["messages"][0].content


@pytest.mark.asyncio
async def test_iteration_ceiling_terminates(harness):
    manager, gateways, _ = harness(max_iterations=2)
    gateways["planner"].queue(structured_response(_plan(("a", ["echo"]), ("b", ["echo"]), ("c", ["echo"]))))
    gateways["executor"].queue(text_response("did a"), text_response("did b"))
    gateways["reflector"].queue(structured_response(ReflectionModel(decision="continue", reasoning="ok")))

    result = await manager.chat("s1", "agent", "do a, b and c")

    assert result["error"] == "Maximum iterations reached"
    assert result["iterations"] == 2


@pytest.mark.asyncio
async def test_planner_failure_ends_turn(harness, conversation_store):
    manager, gateways, _ = harness()
    gateways["planner"].queue(ModelInvocationError("down", "Model service unavailable: down"))

    result = await manager.chat("s1", "agent", "do something hard")

    assert result["plan"] is None
    assert result["error"] == "Planner failed: Model service unavailable: down"
    assert result["response"] == result["error"]
    assert gateways["executor"].calls == []
    # The user message is kept even when planning fails
    assert conversation_store.get_message_count("s1") == 1


@pytest.mark.asyncio
async def test_second_turn_sees_first_turn(harness):
    manager, gateways, _ = harness()
    gateways["executor"].queue(text_response("Hi there!"), text_response("You said hello earlier."))

    await manager.chat("s1", "agent", "hello")
    await manager.chat("s1", "agent", "thanks")

    history = gateways["executor"].calls[1]["messages"]
    assert any(isinstance(m, AIMessage) and m.content == "Hi there!" for m in history)
    assert isinstance(history[-1], HumanMessage) and history[-1].content == "thanks"
