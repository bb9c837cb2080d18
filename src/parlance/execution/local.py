"""Local subprocess executor.

Runs code blocks with the matching interpreter on this machine. This is
NOT a sandbox: code runs with the permissions of the current user.
"""

import asyncio
import logging
import sys

from .base import CodeExecutor, ExecutionResult

logger = logging.getLogger(__name__)

MAX_OUTPUT_LENGTH = 10000

# Language tag -> argv prefix; the code is passed as the final argument
INTERPRETERS: dict[str, list[str]] = {
    "python": [sys.executable, "-c"],
    "py": [sys.executable, "-c"],
    "bash": ["bash", "-c"],
    "sh": ["sh", "-c"],
    "javascript": ["node", "-e"],
    "js": ["node", "-e"],
    "node": ["node", "-e"],
}


def _truncate(text: str) -> str:
    if len(text) <= MAX_OUTPUT_LENGTH:
        return text
    return text[:MAX_OUTPUT_LENGTH] + f"\n... [truncated {len(text) - MAX_OUTPUT_LENGTH} chars]"


class SubprocessExecutor(CodeExecutor):
    """Runs code with a local interpreter subprocess."""

    def __init__(self, timeout: float = 30.0, cwd: str | None = None):
        self._timeout = timeout
        self._cwd = cwd

    def supports(self, language: str) -> bool:
        return language.lower() in INTERPRETERS

    async def execute(self, language: str, code: str) -> ExecutionResult:
        command = INTERPRETERS.get(language.lower())
        if command is None:
            return ExecutionResult(ok=False, error=f"Unsupported language: {language or '(none)'}")

        try:
            logger.debug("Running %s block with %s", language, command[0])
            process = await asyncio.create_subprocess_exec(
                *command,
                code,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._cwd,
            )
        except FileNotFoundError:
            return ExecutionResult(ok=False, error=f"Interpreter not found: {command[0]}")
        except OSError as e:
            return ExecutionResult(ok=False, error=f"Failed to start interpreter: {e}")

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return ExecutionResult(ok=False, error=f"Execution timed out after {self._timeout:g}s")
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise

        output = _truncate(stdout.decode("utf-8", errors="replace"))
        errors = _truncate(stderr.decode("utf-8", errors="replace"))

        if process.returncode != 0:
            return ExecutionResult(
                ok=False,
                output=output,
                error=errors.strip() or f"Exited with status {process.returncode}",
                exit_code=process.returncode,
            )
        return ExecutionResult(ok=True, output=output, error=errors, exit_code=0)
