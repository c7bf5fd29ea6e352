"""
Reasoning oracle capability.

The engine only ever calls complete(context, prompt). Backends raise
OracleError for transport failures; callers map that to a conservative
decision.
"""

from abc import ABC, abstractmethod

from patchwright.exceptions import OracleError


class ReasoningOracle(ABC):
    """External text-completion service."""

    name = "oracle"

    @abstractmethod
    def complete(self, context: str, prompt: str) -> str:
        """
        Args:
            context: Background material (system prompt)
            prompt: The question

        Returns:
            Raw completion text

        Raises:
            OracleError: backend unreachable or reply empty
        """

    def is_available(self) -> bool:
        return True


class NullOracle(ReasoningOracle):
    """Oracle for backend='none'; every call fails so callers use heuristics."""

    name = "none"

    def complete(self, context: str, prompt: str) -> str:
        raise OracleError("oracle disabled (backend='none')", backend=self.name)

    def is_available(self) -> bool:
        return False
