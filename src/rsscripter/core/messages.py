"""Message sink interface used by the scripter to report what it is doing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol


class MessageSink(Protocol):
    """Receives progress, output, warning and error messages synchronously."""

    def progress(self, message: str) -> None:
        """Report the file currently being written."""
        ...

    def output(self, message: str) -> None:
        """Report general output (reconciliation findings and outcomes)."""
        ...

    def warning(self, message: str) -> None:
        """Report a condition that skips work but does not stop the run."""
        ...

    def error(self, message: str) -> None:
        """Report a non-fatal error."""
        ...


@dataclass
class RecordingSink:
    """Sink that keeps every message in memory."""

    progress_messages: list[str] = field(default_factory=list)
    output_messages: list[str] = field(default_factory=list)
    warning_messages: list[str] = field(default_factory=list)
    error_messages: list[str] = field(default_factory=list)

    def progress(self, message: str) -> None:
        self.progress_messages.append(message)

    def output(self, message: str) -> None:
        self.output_messages.append(message)

    def warning(self, message: str) -> None:
        self.warning_messages.append(message)

    def error(self, message: str) -> None:
        self.error_messages.append(message)
