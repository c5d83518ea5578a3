"""
Protocols (interfaces) for logtags components.

This module defines abstract contracts for the two external collaborators
the engine depends on: the sequential line reader and the script evaluator.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from logtags.models import Interval

__all__ = [
    'LineReaderProtocol',
    'ScriptEvaluatorProtocol',
]


class LineReaderProtocol(ABC):
    """Protocol for sequential access to a line-oriented file."""

    @abstractmethod
    def read(self, interval: Interval) -> List[str]:
        """
        Read the raw lines of `interval` in ascending index order.

        Args:
            interval: Closed-open range of line indices

        Returns:
            The lines found, fewer than requested when the file ends early

        Raises:
            SourceUnavailable: If the file cannot be opened or read
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the underlying file handle."""
        pass


class ScriptEvaluatorProtocol(ABC):
    """Protocol for evaluating user-supplied script snippets."""

    @abstractmethod
    def check(self, source: str) -> None:
        """
        Validate script syntax without running it.

        Raises:
            InvalidTagRule: If the source does not compile
        """
        pass

    @abstractmethod
    def evaluate(self, source: str, bindings: Dict[str, Any], scope: Any) -> Any:
        """
        Evaluate `source` with `bindings` placed into the persistent `scope`.

        Returns:
            The value of the script

        Raises:
            ScriptError: If evaluation fails
        """
        pass

    @abstractmethod
    def execute(self, source: str, scope: Any) -> None:
        """Run setup code for its side effects on `scope`."""
        pass
