"""Tests for the conversation store, sliding window and summarizer."""

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

from reflectAgent.context import ConversationSummarizer, estimate_tokens
from reflectAgent.context.window import SUMMARY_HEADER
from reflectAgent.utils.error_handler import ModelInvocationError
from tests.helpers import FakeGateway, text_response


def _fill(store, session_id, count):
    ids = []
    for i in range(count):
        role = "user" if i % 2 == 0 else "assistant"
        ids.append(store.append_message(session_id, role, f"message {i + 1}").id)
    return ids


class TestConversationStore:
    def test_append_and_order(self, conversation_store):
        _fill(conversation_store, "s1", 5)
        asc = conversation_store.get_messages("s1")
        desc = conversation_store.get_messages("s1", order="desc", limit=2)
        assert [m.content for m in asc] == [f"message {i}" for i in range(1, 6)]
        assert [m.content for m in desc] == ["message 5", "message 4"]

    def test_offset(self, conversation_store):
        _fill(conversation_store, "s1", 5)
        page = conversation_store.get_messages("s1", limit=2, offset=2)
        assert [m.content for m in page] == ["message 3", "message 4"]

    def test_sessions_are_isolated(self, conversation_store):
        _fill(conversation_store, "a", 3)
        _fill(conversation_store, "b", 2)
        assert conversation_store.get_message_count("a") == 3
        assert conversation_store.get_message_count("b") == 2

    def test_list_conversations_most_recent_first(self, conversation_store):
        _fill(conversation_store, "a", 3)
        _fill(conversation_store, "b", 2)
        conversation_store.append_message("a", "user", "again")
        rows = conversation_store.list_conversations()
        assert [(row[0], row[1]) for row in rows] == [("a", 4), ("b", 2)]

    def test_tool_call_fields_round_trip(self, conversation_store):
        conversation_store.append_message(
            "s1", "assistant", "", tool_calls=[{"id": "c1", "name": "echo", "args": {"text": "x"}}]
        )
        conversation_store.append_message("s1", "tool", "echo: x", tool_call_id="c1", name="echo")
        ai, tool_msg = conversation_store.get_messages("s1")
        assert ai.tool_calls == [{"id": "c1", "name": "echo", "args": {"text": "x"}}]
        assert tool_msg.tool_call_id == "c1"

    def test_unknown_role_rejected(self, conversation_store):
        with pytest.raises(ValueError):
            conversation_store.append_message("s1", "robot", "hi")

    def test_mark_summarized_and_counts(self, conversation_store):
        ids = _fill(conversation_store, "s1", 6)
        assert conversation_store.mark_summarized(ids[:4]) == 4
        assert conversation_store.get_message_count("s1") == 6
        assert conversation_store.get_message_count("s1", exclude_summarized=True) == 2
        remaining = conversation_store.get_messages("s1", exclude_summarized=True)
        assert [m.id for m in remaining] == ids[4:]

    def test_summary_is_upserted(self, conversation_store):
        conversation_store.save_summary("s1", "first", 4, 4)
        conversation_store.save_summary("s1", "second", 8, 8)
        summary = conversation_store.get_summary("s1")
        assert summary.content == "second"
        assert summary.messages_count == 8
        assert summary.last_message_id == 8

    def test_delete_conversation(self, conversation_store):
        _fill(conversation_store, "s1", 3)
        conversation_store.save_summary("s1", "x", 1, 1)
        conversation_store.delete_conversation("s1")
        assert conversation_store.get_message_count("s1") == 0
        assert conversation_store.get_summary("s1") is None

    def test_token_estimate(self, conversation_store):
        stored = conversation_store.append_message("s1", "user", "a" * 40)
        assert stored.token_count == estimate_tokens("a" * 40) == 10


class TestSlidingWindow:
    def test_returns_last_n_in_order(self, conversation_store, window):
        window.window_size = 3
        _fill(conversation_store, "s1", 7)
        context = window.get_recent_messages("s1")
        assert [m.content for m in context.messages] == ["message 5", "message 6", "message 7"]
        assert context.total_count == 7
        assert context.summary is None

    def test_replay_is_idempotent(self, conversation_store, window):
        _fill(conversation_store, "s1", 12)
        conversation_store.save_summary("s1", "older stuff", 2, 2)
        first = window.get_recent_messages("s1")
        second = window.get_recent_messages("s1")
        assert [r.id for r in first.records] == [r.id for r in second.records]
        assert first.summary == second.summary

    def test_window_never_overlaps_summary(self, conversation_store, window):
        window.window_size = 10
        ids = _fill(conversation_store, "s1", 8)
        conversation_store.save_summary("s1", "covered", 5, ids[4])
        conversation_store.mark_summarized(ids[:5])

        context = window.get_recent_messages("s1")
        assert [r.id for r in context.records] == ids[5:]

    def test_build_context_layout(self, conversation_store, window):
        _fill(conversation_store, "s1", 2)
        conversation_store.save_summary("s1", "User likes tea.", 4, None)
        context = window.build_context("s1", system_prompt="You are helpful.")
        assert isinstance(context[0], SystemMessage) and context[0].content == "You are helpful."
        assert SUMMARY_HEADER in context[1].content and "User likes tea." in context[1].content
        assert isinstance(context[2], HumanMessage)
        assert isinstance(context[3], AIMessage)

    def test_orphan_tool_results_are_dropped(self, conversation_store, window):
        window.window_size = 2
        window.persist_messages(
            "s1",
            [
                HumanMessage(content="run echo"),
                AIMessage(content="", tool_calls=[{"id": "c1", "name": "echo", "args": {"text": "x"}}]),
                ToolMessage(content="echo: x", tool_call_id="c1", name="echo"),
                AIMessage(content="done"),
            ],
        )
        # The window starts at the tool result, whose request was cut off
        context = window.build_context("s1")
        assert [type(m) for m in context] == [AIMessage]
        assert context[0].content == "done"

    def test_persisted_messages_round_trip(self, window):
        window.persist_messages(
            "s1",
            [
                HumanMessage(content="hi"),
                AIMessage(content="", tool_calls=[{"id": "c1", "name": "echo", "args": {"text": "x"}}]),
                ToolMessage(content="echo: x", tool_call_id="c1", name="echo"),
            ],
        )
        messages = window.get_recent_messages("s1").messages
        assert messages[1].tool_calls[0]["name"] == "echo"
        assert messages[2].tool_call_id == "c1"


class TestSummarizer:
    @pytest.mark.asyncio
    async def test_summarizes_all_but_recent(self, conversation_store, window):
        window.window_size = 4
        ids = _fill(conversation_store, "s1", 10)
        gateway = FakeGateway([text_response("They talked about numbers.")])
        summarizer = ConversationSummarizer(conversation_store, gateway, threshold=10, keep_recent=4)

        summary = await summarizer.summarize("s1")

        assert summary.content == "They talked about numbers."
        assert summary.messages_count == 6
        assert summary.last_message_id == ids[5]
        assert conversation_store.get_message_count("s1", exclude_summarized=True) == 4
        context = window.get_recent_messages("s1")
        assert [r.id for r in context.records] == ids[6:]

    @pytest.mark.asyncio
    async def test_below_threshold_does_nothing(self, conversation_store):
        _fill(conversation_store, "s1", 3)
        gateway = FakeGateway()
        summarizer = ConversationSummarizer(conversation_store, gateway, threshold=10, keep_recent=2)
        assert await summarizer.summarize("s1") is None
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_second_pass_merges_previous_summary(self, conversation_store):
        _fill(conversation_store, "s1", 6)
        gateway = FakeGateway([text_response("first summary"), text_response("merged summary")])
        summarizer = ConversationSummarizer(conversation_store, gateway, threshold=6, keep_recent=2)
        await summarizer.summarize("s1")

        _fill(conversation_store, "s1", 4)
        summary = await summarizer.summarize("s1")

        assert summary.content == "merged summary"
        assert summary.messages_count == 8
        prompt = gateway.calls[1]["messages"][0].content
        assert "first summary" in prompt

    @pytest.mark.asyncio
    async def test_model_failure_leaves_store_untouched(self, conversation_store):
        _fill(conversation_store, "s1", 6)
        gateway = FakeGateway([ModelInvocationError("down")])
        summarizer = ConversationSummarizer(conversation_store, gateway, threshold=6, keep_recent=2)
        with pytest.raises(ModelInvocationError):
            await summarizer.summarize("s1")
        assert conversation_store.get_summary("s1") is None
        assert conversation_store.get_message_count("s1", exclude_summarized=True) == 6

    @pytest.mark.asyncio
    async def test_background_failure_is_logged_not_raised(self, conversation_store):
        _fill(conversation_store, "s1", 6)
        gateway = FakeGateway([ModelInvocationError("down")])
        summarizer = ConversationSummarizer(conversation_store, gateway, threshold=6, keep_recent=2)
        task = summarizer.summarize_in_background("s1")
        await summarizer.wait_idle()
        assert task.done() and task.exception() is None

    def test_disabled_summarizer_schedules_nothing(self, conversation_store):
        summarizer = ConversationSummarizer(conversation_store, FakeGateway(), enabled=False)
        assert summarizer.summarize_in_background("s1") is None
