"""
Retry helpers - bounded attempt loops with an injectable delay strategy.
"""
import asyncio
from abc import ABC, abstractmethod


class DelayStrategy(ABC):
    """Decides how long to wait between two attempts."""

    @abstractmethod
    async def wait(self, attempt: int) -> None:
        """Suspend the calling task after a failed `attempt` (1-based)."""
        pass


class FixedDelay(DelayStrategy):
    """Wait the same interval after every attempt."""

    def __init__(self, interval_seconds: float):
        if interval_seconds < 0:
            raise ValueError("interval_seconds cannot be negative")
        self.interval_seconds = interval_seconds

    async def wait(self, attempt: int) -> None:
        await asyncio.sleep(self.interval_seconds)

    def __repr__(self) -> str:
        return f"FixedDelay({self.interval_seconds}s)"


class NoDelay(DelayStrategy):
    """Retry immediately. Used in tests."""

    async def wait(self, attempt: int) -> None:
        return None

    def __repr__(self) -> str:
        return "NoDelay()"
