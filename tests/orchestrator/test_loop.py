"""Tests for casaflow.orchestrator.loop.AgenticLoop"""

import asyncio
import json

import pytest

from conftest import RecordingDispatcher, ScriptedLLMClient, gate_context, make_gateway, text_response, tool_response

from casaflow.constants import ORCHESTRATOR_EXHAUSTED_RESPONSE
from casaflow.errors import PersistenceError
from casaflow.gate import AutonomyGate, AutonomyPreset
from casaflow.orchestrator.loop import AgenticLoop, assistant_message_from_response
from casaflow.orchestrator.loop_config import LoopConfig

USER_TURN = [{"role": "user", "content": "How is Elm St going?"}]


def _loop(gate, *responses, config=None):
    client = ScriptedLLMClient(responses)
    return AgenticLoop(make_gateway(client=client), gate, config or LoopConfig()), client


# =========================================================================
# Termination
# =========================================================================


class TestTermination:

    @pytest.mark.asyncio
    async def test_text_reply_ends_loop(self, gate):
        loop, client = _loop(gate, text_response("All good at Elm St."))
        result = await loop.run("system", USER_TURN, [], gate_context())
        assert result.response == "All good at Elm St."
        assert result.turns == 1
        assert result.tool_calls == []
        assert result.token_usage.input_tokens == 10
        assert result.token_usage.output_tokens == 10
        assert result.model == "fake-model"
        assert not result.exhausted
        assert client.calls[0]["max_tokens"] == 2048

    @pytest.mark.asyncio
    async def test_partial_text_is_joined(self, gate):
        loop, _ = _loop(
            gate,
            tool_response(("get_property", {"property_id": "p1"}), text="Let me check the property."),
            text_response("Rent is up to date."),
        )
        result = await loop.run("system", USER_TURN, [], gate_context())
        assert result.response == "Let me check the property.\n\nRent is up to date."
        assert result.turns == 2

    @pytest.mark.asyncio
    async def test_iteration_limit(self, gate):
        loop, client = _loop(
            gate,
            tool_response(("get_property", {"property_id": "p1"})),
            tool_response(("get_tenancy", {"tenancy_id": "t1"})),
            config=LoopConfig(max_iterations=2),
        )
        result = await loop.run("system", USER_TURN, [], gate_context())
        assert result.exhausted
        assert result.response == ORCHESTRATOR_EXHAUSTED_RESPONSE
        assert result.turns == 2
        assert len(client.calls) == 2

    @pytest.mark.asyncio
    async def test_custom_exhausted_reply(self, gate):
        loop, _ = _loop(gate, tool_response(("get_property", {})), config=LoopConfig(max_iterations=1))
        result = await loop.run("s", USER_TURN, [], gate_context(), exhausted_response="Try again later.")
        assert result.response == "Try again later."


# =========================================================================
# Tool rounds
# =========================================================================


class TestToolRounds:

    @pytest.mark.asyncio
    async def test_tool_results_appended_to_transcript(self, gate, dispatcher):
        loop, client = _loop(
            gate,
            tool_response(("get_property", {"property_id": "p1"}), ("get_tenancy", {"tenancy_id": "t1"})),
            text_response("Done."),
        )
        result = await loop.run("system", USER_TURN, [], gate_context())

        assert sorted(dispatcher.called) == ["get_property", "get_tenancy"]
        assert result.tools_used == ["get_property", "get_tenancy"]
        assert result.actions_taken == 2

        second = client.calls[1]["messages"]
        assistant = second[-3]
        assert assistant["role"] == "assistant"
        assert [tc["id"] for tc in assistant["tool_calls"]] == ["call_0", "call_1"]
        assert [m["tool_call_id"] for m in second[-2:]] == ["call_0", "call_1"]
        assert json.loads(second[-1]["content"])["success"] is True

    @pytest.mark.asyncio
    async def test_deferred_action_collected(self, gate, store):
        loop, _ = _loop(
            gate,
            tool_response(("create_work_order", {"request_id": "m1", "trade_id": "tr1"})),
            text_response("I've asked for your approval."),
        )
        result = await loop.run("s", USER_TURN, [], gate_context(preset=AutonomyPreset.BALANCED))
        assert len(result.pending_action_ids) == 1
        assert result.pending_action_ids[0] in store.pending_actions.rows
        assert result.tool_calls[0].outcome == "deferred"
        assert result.actions_taken == 0
        assert not result.had_tool_errors

    @pytest.mark.asyncio
    async def test_notifications_counted(self, gate):
        loop, _ = _loop(gate, tool_response(("send_rent_reminder", {"tenancy_id": "t1"})), text_response("Sent."))
        result = await loop.run("s", USER_TURN, [], gate_context(preset=AutonomyPreset.HANDS_OFF))
        assert result.notifications_sent == 1

    @pytest.mark.asyncio
    async def test_tool_failure_recorded(self, registry, store, background):
        dispatcher = RecordingDispatcher({"get_property": {"success": False, "error": "Property not found"}})
        gate = AutonomyGate(registry, store, dispatcher, background=background)
        loop, _ = _loop(gate, tool_response(("get_property", {"property_id": "p9"})), text_response("Not found."))
        result = await loop.run("s", USER_TURN, [], gate_context())
        assert result.had_tool_errors
        assert result.tool_calls[0].error == "Property not found"

    @pytest.mark.asyncio
    async def test_long_tool_result_truncated(self, registry, store, background):
        dispatcher = RecordingDispatcher({"get_property": {"success": True, "data": "x" * 500}})
        gate = AutonomyGate(registry, store, dispatcher, background=background)
        loop, client = _loop(
            gate,
            tool_response(("get_property", {})),
            text_response("ok"),
            config=LoopConfig(max_tool_result_chars=50),
        )
        await loop.run("s", USER_TURN, [], gate_context())
        tool_message = client.calls[1]["messages"][-1]
        assert tool_message["content"].endswith("[...truncated]")
        assert len(tool_message["content"]) < 100


class _RaisingGate:

    def __init__(self, exc):
        self.exc = exc

    async def evaluate(self, tool_name, params, ctx):
        raise self.exc


class TestGateFailures:

    @pytest.mark.asyncio
    async def test_unexpected_gate_error_becomes_tool_failure(self):
        loop, client = _loop(_RaisingGate(RuntimeError("boom")), tool_response(("get_property", {})), text_response("Sorry."))
        result = await loop.run("s", USER_TURN, [], gate_context())
        assert result.response == "Sorry."
        assert result.tool_calls[0].success is False
        assert "boom" in result.tool_calls[0].error
        assert "Tool execution failed" in client.calls[1]["messages"][-1]["content"]

    @pytest.mark.asyncio
    async def test_persistence_error_propagates(self, gate, store):
        store.pending_actions.fail_create = True
        loop, _ = _loop(gate, tool_response(("terminate_lease", {"tenancy_id": "t1"})))
        with pytest.raises(PersistenceError):
            await loop.run("s", USER_TURN, [], gate_context())


def test_assistant_message_serializes_arguments():
    message = assistant_message_from_response(tool_response(("get_property", {"property_id": "p1"})))
    assert message["content"] is None
    assert message["tool_calls"][0]["function"] == {"name": "get_property", "arguments": '{"property_id": "p1"}'}


# =========================================================================
# Concurrency
# =========================================================================


class SlowDispatcher(RecordingDispatcher):
    """Tracks how many tool calls are in flight at once."""

    def __init__(self, delay: float = 0.02):
        super().__init__()
        self.delay = delay
        self.in_flight = 0
        self.peak = 0

    async def execute(self, tool_name, params, user_id):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            return await super().execute(tool_name, params, user_id)
        finally:
            self.in_flight -= 1


class TestToolConcurrency:

    @pytest.mark.asyncio
    async def test_round_is_bounded_by_semaphore(self, registry, store, background):
        dispatcher = SlowDispatcher()
        gate = AutonomyGate(registry, store, dispatcher, background=background)
        calls = [("get_property", {"property_id": f"p{i}"}) for i in range(6)]
        loop, _ = _loop(gate, tool_response(*calls), text_response("Checked all six."))

        result = await loop.run("s", USER_TURN, [], gate_context())

        assert len(dispatcher.calls) == 6
        assert dispatcher.peak == 3
        assert [tc.turn for tc in result.tool_calls] == [1] * 6

    @pytest.mark.asyncio
    async def test_custom_concurrency(self, registry, store, background):
        dispatcher = SlowDispatcher()
        gate = AutonomyGate(registry, store, dispatcher, background=background)
        calls = [("get_property", {"property_id": f"p{i}"}) for i in range(4)]
        loop, _ = _loop(gate, tool_response(*calls), text_response("Done."), config=LoopConfig(tool_concurrency=1))

        await loop.run("s", USER_TURN, [], gate_context())

        assert dispatcher.peak == 1

    @pytest.mark.asyncio
    async def test_unknown_tool_counts_as_error(self, gate):
        loop, _ = _loop(gate, tool_response(("get_rent_magic", {})), text_response("Sorry."))
        result = await loop.run("s", USER_TURN, [], gate_context())
        assert result.tool_calls[0].outcome == "unknown_tool"
        assert result.had_tool_errors
