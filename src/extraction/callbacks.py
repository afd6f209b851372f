"""
Callback interface for extraction progress reporting.
"""

from typing import Protocol


class ExtractionCallbacks(Protocol):
    """
    Callback interface for extraction progress reporting.

    The pipeline calls these methods while it walks and copies.
    Implementations can be silent (for testing) or print to a terminal.
    """

    def on_step(self, step_name: str) -> None:
        """
        Report entering a new processing step.

        Example:
            callbacks.on_step("Resolving pattern")
        """
        ...

    def on_progress(self, current: int, total: int, message: str = "") -> None:
        """
        Report progress.

        Args:
            current: Current item (1-based match index)
            total: Total items
            message: Optional status message
        """
        ...

    def on_log(self, message: str, level: str = "info") -> None:
        """
        Emit a user-facing message.

        Args:
            message: Message text
            level: "debug" | "info" | "warning" | "error"
        """
        ...


class NullCallbacks:
    """Callbacks that ignore everything."""

    def on_step(self, step_name: str) -> None:
        pass

    def on_progress(self, current: int, total: int, message: str = "") -> None:
        pass

    def on_log(self, message: str, level: str = "info") -> None:
        pass
