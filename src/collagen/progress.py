from __future__ import annotations

from typing import Protocol

from loguru import logger


class ProgressReporter(Protocol):
    """Sink for ``(percent, message)`` progress updates.

    Reporters observe a run; they never influence placement.
    """

    def __call__(self, percent: int, message: str) -> None: ...


class LoggingProgressReporter:
    """Writes each update to the loguru logger at INFO level."""

    def __call__(self, percent: int, message: str) -> None:
        logger.info("[{:>3}%] {}", percent, message)


class RecordingProgressReporter:
    """Keeps every update in memory, in the order received."""

    def __init__(self) -> None:
        self.updates: list[tuple[int, str]] = []

    def __call__(self, percent: int, message: str) -> None:
        self.updates.append((percent, message))

    @property
    def percents(self) -> list[int]:
        return [percent for percent, _ in self.updates]
