from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of running a code block."""

    ok: bool
    output: str = ""
    error: str = ""
    exit_code: int | None = None

    @property
    def error_text(self) -> str:
        """Human-readable failure description."""
        if self.error:
            return self.error
        if self.exit_code is not None:
            return f"Exited with status {self.exit_code}"
        return "Execution failed"


class CodeExecutor(ABC):
    """Abstract base class for code executors.

    This module hides the design decision of where and how code runs.
    The state machine only sees a language, a code string and a result.
    """

    @abstractmethod
    async def execute(self, language: str, code: str) -> ExecutionResult:
        """Run code and capture its output.

        Args:
            language: Language tag from the code fence
            code: Source to run

        Returns:
            ExecutionResult; failures of the code itself are reported here
            rather than raised
        """
        pass

    def supports(self, language: str) -> bool:
        """Whether this executor can run the given language."""
        return True
