"""
Append-only reconciliation log.
"""
import asyncio
import logging
from datetime import datetime
from pathlib import Path

from .base import WarningSink


class FileWarningSink(WarningSink):
    """One timestamped line per record; never truncates."""

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = asyncio.Lock()
        self.count = 0
        self.logger = logging.getLogger(self.__class__.__name__)

    def _append(self, line: str):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(line)

    async def append_warning(self, message: str) -> None:
        line = f"{datetime.now().isoformat(timespec='seconds')}\t{' '.join(message.splitlines())}\n"
        async with self._lock:
            await asyncio.to_thread(self._append, line)
            self.count += 1
        self.logger.warning(f"Reconciliation record written: {message}")
