"""Unit tests for the execution module."""
import asyncio
import gc
import sys

import pytest

from parlance.blocks import CodeBlock, ExecutionState
from parlance.conversation import EventStream, ExecutionStatusChanged
from parlance.errors import BlockBusyError, ErrorKind, NotExecutableError
from parlance.execution import CodeExecutor, ExecutionResult, ExecutionStateMachine, SubprocessExecutor

KEY = ("msg-2", 1)


def executable(code: str = "print(1)", language: str = "python") -> CodeBlock:
    return CodeBlock(language=language, code=code, is_executable=True)


class TestExecutionResult:
    """Tests for ExecutionResult."""

    def test_error_text_prefers_message(self):
        assert ExecutionResult(ok=False, error="boom", exit_code=2).error_text == "boom"

    def test_error_text_from_exit_code(self):
        assert ExecutionResult(ok=False, exit_code=3).error_text == "Exited with status 3"


class TestExecutionStateMachine:
    """Tests for ExecutionStateMachine transitions."""

    def test_code_executor_is_abstract(self):
        """Test that CodeExecutor cannot be instantiated directly."""
        with pytest.raises(TypeError):
            CodeExecutor()  # type: ignore

    def test_begin_moves_to_running(self, fake_executor):
        machine = ExecutionStateMachine(fake_executor)
        block = executable()

        machine.begin(KEY, block)

        assert block.status.state == ExecutionState.RUNNING
        assert machine.is_running(KEY)

    def test_non_executable_block_is_rejected(self, fake_executor):
        """Test that blocks without the exec tag never run."""
        machine = ExecutionStateMachine(fake_executor)
        block = CodeBlock(language="python", code="print(1)")

        with pytest.raises(NotExecutableError) as exc_info:
            machine.begin(KEY, block)

        assert exc_info.value.kind == ErrorKind.NOT_EXECUTABLE
        assert block.status.state == ExecutionState.IDLE

    def test_running_block_is_rejected(self, fake_executor):
        """Test that a second begin while running leaves state unchanged."""
        machine = ExecutionStateMachine(fake_executor)
        block = executable()
        machine.begin(KEY, block)

        with pytest.raises(BlockBusyError) as exc_info:
            machine.begin(KEY, block)

        assert exc_info.value.kind == ErrorKind.BUSY
        assert block.status.state == ExecutionState.RUNNING

    def test_complete_and_fail(self, fake_executor):
        machine = ExecutionStateMachine(fake_executor)
        block = executable()

        machine.begin(KEY, block)
        machine.complete(KEY, "1\n")
        assert block.status.state == ExecutionState.SUCCESS
        assert block.status.output == "1\n"

        machine.begin(KEY, block)
        machine.fail(KEY, "boom")
        assert block.status.state == ExecutionState.ERROR
        assert block.status.message == "boom"

    def test_complete_requires_running(self, fake_executor):
        """Test that results cannot be recorded for idle blocks."""
        machine = ExecutionStateMachine(fake_executor)

        with pytest.raises(ValueError):
            machine.complete(KEY, "x")

    def test_unknown_block_status_is_idle(self, fake_executor):
        machine = ExecutionStateMachine(fake_executor)

        assert machine.status(("nope", 0)).state == ExecutionState.IDLE

    @pytest.mark.asyncio
    async def test_run_success(self, fake_executor):
        """Test a full run through the executor."""
        machine = ExecutionStateMachine(fake_executor)
        block = executable("print('hi')")

        status = await machine.run(KEY, block)

        assert status.state == ExecutionState.SUCCESS
        assert status.output == "ok\n"
        assert fake_executor.calls == [("python", "print('hi')")]

    @pytest.mark.asyncio
    async def test_finished_blocks_are_not_retained(self, fake_executor):
        """Test that the machine lets go of blocks once nothing else holds them."""
        machine = ExecutionStateMachine(fake_executor)
        block = executable()

        await machine.run(KEY, block)
        assert machine.status(KEY).state == ExecutionState.SUCCESS

        del block
        gc.collect()

        assert machine.status(KEY).state == ExecutionState.IDLE

    @pytest.mark.asyncio
    async def test_running_block_is_kept_alive(self, make_executor):
        """Test that a running block survives even if the caller drops it."""
        executor = make_executor()
        executor.gate = asyncio.Event()
        machine = ExecutionStateMachine(executor)

        machine.begin(KEY, executable())
        gc.collect()
        task = asyncio.create_task(machine.execute(KEY))
        await asyncio.sleep(0)
        assert machine.is_running(KEY)

        executor.gate.set()
        status = await task

        assert status.state == ExecutionState.SUCCESS

    @pytest.mark.asyncio
    async def test_run_failure_result(self, make_executor):
        """Test that a failed result becomes an Error status."""
        machine = ExecutionStateMachine(make_executor(ExecutionResult(ok=False, error="NameError", exit_code=1)))
        block = executable()

        status = await machine.run(KEY, block)

        assert status.state == ExecutionState.ERROR
        assert status.message == "NameError"

    @pytest.mark.asyncio
    async def test_executor_exception_stays_on_block(self, make_executor):
        """Test that an executor exception fails only the affected block."""
        machine = ExecutionStateMachine(make_executor(error=RuntimeError("sandbox down")))
        failing = executable()
        other = executable("print(2)")
        other_key = ("msg-2", 3)
        machine.begin(other_key, other)

        status = await machine.run(KEY, failing)

        assert status.state == ExecutionState.ERROR
        assert status.message == "sandbox down"
        assert other.status.state == ExecutionState.RUNNING

    @pytest.mark.asyncio
    async def test_rerun_after_error(self, make_executor):
        """Test that an errored block can run again."""
        executor = make_executor(error=RuntimeError("first"))
        machine = ExecutionStateMachine(executor)
        block = executable()
        await machine.run(KEY, block)

        executor.error = None
        status = await machine.run(KEY, block)

        assert status.state == ExecutionState.SUCCESS

    @pytest.mark.asyncio
    async def test_concurrent_blocks(self, make_executor):
        """Test that different blocks run independently."""
        executor = make_executor()
        executor.gate = asyncio.Event()
        machine = ExecutionStateMachine(executor)
        first, second = executable("a"), executable("b")

        tasks = [
            asyncio.create_task(machine.run(("m", 0), first)),
            asyncio.create_task(machine.run(("m", 1), second)),
        ]
        await asyncio.sleep(0)
        assert first.status.is_running and second.status.is_running

        executor.gate.set()
        results = await asyncio.gather(*tasks)

        assert [r.state for r in results] == [ExecutionState.SUCCESS, ExecutionState.SUCCESS]

    @pytest.mark.asyncio
    async def test_cancelled_run_is_an_error(self, make_executor):
        """Test that cancelling a run leaves the block in Error."""
        executor = make_executor()
        executor.gate = asyncio.Event()
        machine = ExecutionStateMachine(executor)
        block = executable()

        task = asyncio.create_task(machine.run(KEY, block))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert block.status.state == ExecutionState.ERROR

    @pytest.mark.asyncio
    async def test_transitions_are_published(self, fake_executor):
        """Test that each transition publishes a status event."""
        events = EventStream()
        subscription = events.subscribe()
        machine = ExecutionStateMachine(fake_executor, events=events)

        await machine.run(KEY, executable())

        published = subscription.drain()
        assert all(isinstance(e, ExecutionStatusChanged) for e in published)
        assert [e.status.state for e in published] == [ExecutionState.RUNNING, ExecutionState.SUCCESS]
        assert {(e.message_id, e.block_index) for e in published} == {KEY}


class TestSubprocessExecutor:
    """Tests for the local subprocess executor."""

    def test_supports(self):
        executor = SubprocessExecutor()

        assert executor.supports("Python")
        assert not executor.supports("cobol")

    @pytest.mark.asyncio
    async def test_unsupported_language(self):
        """Test that unknown languages fail without starting a process."""
        result = await SubprocessExecutor().execute("cobol", "DISPLAY 'HI'.")

        assert not result.ok
        assert "Unsupported language" in result.error

    @pytest.mark.asyncio
    async def test_python_output(self):
        """Test running a python block with the current interpreter."""
        result = await SubprocessExecutor(timeout=30).execute("python", "print(6 * 7)")

        assert result.ok
        assert result.output.strip() == "42"
        assert result.exit_code == 0

    @pytest.mark.asyncio
    async def test_python_error(self):
        """Test that a non-zero exit is reported with stderr."""
        result = await SubprocessExecutor(timeout=30).execute("python", "raise SystemExit('bad input')")

        assert not result.ok
        assert result.exit_code == 1
        assert "bad input" in result.error

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self):
        """Test that long runs are killed after the timeout."""
        result = await SubprocessExecutor(timeout=0.5).execute("python", "import time; time.sleep(30)")

        assert not result.ok
        assert "timed out" in result.error

    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.platform == "win32", reason="requires sh")
    async def test_shell_output(self):
        result = await SubprocessExecutor(timeout=30).execute("sh", "echo hello")

        assert result.ok
        assert result.output == "hello\n"
