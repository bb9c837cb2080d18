"""Unit tests for the action dispatcher."""
import asyncio
import json

import pytest
from pydantic import TypeAdapter

from parlance.blocks import ExecutionState
from parlance.conversation import (
    Action,
    ActionDispatcher,
    ConversationOrchestrator,
    CopyText,
    EditMessage,
    ExecuteCode,
    RateMessage,
    Regenerate,
    Role,
    TurnState,
)
from parlance.errors import ErrorKind
from parlance.execution import ExecutionStateMachine

CODE_ANSWER = "Try:\n```python exec\nprint(1)\n```\n```text\nnot runnable\n```"


def result(text: str) -> str:
    return json.dumps({"result": text})


@pytest.fixture
def provider(make_provider):
    return make_provider([result(CODE_ANSWER)])


@pytest.fixture
def orchestrator(provider, settings):
    return ConversationOrchestrator(provider, settings)


@pytest.fixture
def machine(orchestrator, fake_executor):
    return ExecutionStateMachine(fake_executor, events=orchestrator.events)


@pytest.fixture
def copied():
    return []


@pytest.fixture
def dispatcher(orchestrator, machine, copied):
    return ActionDispatcher(orchestrator, machine, clipboard=copied.append)


class TestActionModels:
    """Tests for action validation."""

    def test_actions_are_tagged(self):
        """Test that actions deserialize by their type tag."""
        adapter = TypeAdapter(Action)

        action = adapter.validate_python({"type": "rate_message", "message_id": "msg-2", "positive": True})

        assert action == RateMessage(message_id="msg-2", positive=True)

    def test_negative_block_index_fails(self):
        with pytest.raises(ValueError):
            ExecuteCode(message_id="msg-2", block_index=-1)

    def test_empty_edit_fails(self):
        with pytest.raises(ValueError):
            EditMessage(message_id="msg-1", content="")


class TestActionDispatcher:
    """Tests for ActionDispatcher.dispatch."""

    def test_copy_text(self, dispatcher, copied):
        """Test that copy hands text to the clipboard without state changes."""
        ack = dispatcher.dispatch(CopyText(text="hello"))

        assert ack.accepted
        assert copied == ["hello"]

    @pytest.mark.asyncio
    async def test_rate_message(self, dispatcher, orchestrator):
        """Test that the last rating wins."""
        outcome = await orchestrator.submit("Hello")
        message_id = outcome.message.id

        dispatcher.dispatch(RateMessage(message_id=message_id, positive=True))
        ack = dispatcher.dispatch(RateMessage(message_id=message_id, positive=False))

        assert ack.accepted
        assert orchestrator.message(message_id).feedback is False

    def test_rate_unknown_message(self, dispatcher):
        ack = dispatcher.dispatch(RateMessage(message_id="msg-42", positive=True))

        assert not ack.accepted
        assert ack.error == ErrorKind.UNKNOWN_MESSAGE

    @pytest.mark.asyncio
    async def test_execute_code(self, dispatcher, orchestrator, fake_executor):
        """Test that an executable block runs as a task."""
        outcome = await orchestrator.submit("Hello")
        block_index = 1

        ack = dispatcher.dispatch(ExecuteCode(message_id=outcome.message.id, block_index=block_index))

        assert ack.accepted
        block = outcome.message.blocks[block_index]
        assert block.status.state == ExecutionState.RUNNING
        status = await ack.pending
        assert status.state == ExecutionState.SUCCESS
        assert block.status.output == "ok\n"
        assert fake_executor.calls == [("python", "print(1)")]

    @pytest.mark.asyncio
    async def test_execute_non_executable_block(self, dispatcher, orchestrator, fake_executor):
        """Test that a block without the exec tag is rejected."""
        outcome = await orchestrator.submit("Hello")

        ack = dispatcher.dispatch(ExecuteCode(message_id=outcome.message.id, block_index=2))

        assert not ack.accepted
        assert ack.error == ErrorKind.NOT_EXECUTABLE
        assert fake_executor.calls == []

    @pytest.mark.asyncio
    async def test_execute_text_block(self, dispatcher, orchestrator):
        outcome = await orchestrator.submit("Hello")

        ack = dispatcher.dispatch(ExecuteCode(message_id=outcome.message.id, block_index=0))

        assert ack.error == ErrorKind.NOT_EXECUTABLE

    @pytest.mark.asyncio
    async def test_execute_out_of_range(self, dispatcher, orchestrator):
        outcome = await orchestrator.submit("Hello")

        ack = dispatcher.dispatch(ExecuteCode(message_id=outcome.message.id, block_index=99))

        assert ack.error == ErrorKind.NOT_EXECUTABLE

    @pytest.mark.asyncio
    async def test_execute_running_block_is_busy(self, dispatcher, orchestrator, fake_executor):
        """Test that a block cannot run twice at once."""
        fake_executor.gate = asyncio.Event()
        outcome = await orchestrator.submit("Hello")
        action = ExecuteCode(message_id=outcome.message.id, block_index=1)

        first = dispatcher.dispatch(action)
        second = dispatcher.dispatch(action)

        assert first.accepted
        assert not second.accepted
        assert second.error == ErrorKind.BUSY

        fake_executor.gate.set()
        await first.pending
        assert len(fake_executor.calls) == 1

    @pytest.mark.asyncio
    async def test_execution_runs_while_processing(self, dispatcher, orchestrator, provider, fake_executor):
        """Test that code runs are independent of an in-flight turn."""
        outcome = await orchestrator.submit("Hello")
        provider.gate = asyncio.Event()
        turn = orchestrator.submit("Another")

        ack = dispatcher.dispatch(ExecuteCode(message_id=outcome.message.id, block_index=1))
        status = await ack.pending

        assert status.state == ExecutionState.SUCCESS
        provider.gate.set()
        await turn

    @pytest.mark.asyncio
    async def test_regenerate_assistant_message(self, dispatcher, orchestrator):
        """Test that regenerate re-submits the originating prompt as a branch."""
        first = await orchestrator.submit("Hello")

        ack = dispatcher.dispatch(Regenerate(message_id=first.message.id))
        outcome = await ack.pending

        assert ack.accepted
        assert outcome.state == TurnState.COMPLETED
        prompts = [m for m in orchestrator.history if m.role == Role.USER]
        assert [p.full_text() for p in prompts] == ["Hello", "Hello"]
        assert prompts[1].branch_of == prompts[0].id
        assert len(orchestrator.history) == 4
        assert orchestrator.conversation.branches(prompts[0].id) == prompts

    @pytest.mark.asyncio
    async def test_regenerate_failed_prompt(self, dispatcher, orchestrator, provider):
        """Test that regenerating a user message retries that prompt."""
        provider.error = RuntimeError("dropped")
        provider.fragments = []
        failed = await orchestrator.submit("Hello")
        assert failed.state == TurnState.FAILED

        provider.error = None
        provider.fragments = [result("Hi")]
        ack = dispatcher.dispatch(Regenerate(message_id=orchestrator.history[0].id))
        outcome = await ack.pending

        assert outcome.state == TurnState.COMPLETED
        assert outcome.message.in_reply_to == "msg-2"
        assert orchestrator.message("msg-2").branch_of == "msg-1"

    @pytest.mark.asyncio
    async def test_regenerate_while_processing_is_busy(self, dispatcher, orchestrator, provider):
        first = await orchestrator.submit("Hello")
        provider.gate = asyncio.Event()
        turn = orchestrator.submit("Another")

        ack = dispatcher.dispatch(Regenerate(message_id=first.message.id))

        assert not ack.accepted
        assert ack.error == ErrorKind.BUSY
        provider.gate.set()
        await turn

    def test_regenerate_unknown_message(self, dispatcher):
        ack = dispatcher.dispatch(Regenerate(message_id="msg-7"))

        assert not ack.accepted
        assert ack.error == ErrorKind.UNKNOWN_MESSAGE

    @pytest.mark.asyncio
    async def test_edit_message(self, dispatcher, orchestrator, provider):
        """Test that an edit appends a new branch without touching the original."""
        first = await orchestrator.submit("Helo")

        ack = dispatcher.dispatch(EditMessage(message_id=first.message.id, content="Hello"))
        await ack.pending

        original, _, edited, _ = orchestrator.history
        assert original.full_text() == "Helo"
        assert edited.full_text() == "Hello"
        assert edited.branch_of == original.id
        assert provider.requests[-1][-1].content == "Hello"
