"""In-process owner of background scan tasks, keyed by scan id."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ScanProgress:
    status: str = "queued"
    processed: int = 0
    total: int = 0
    message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status, "processed": self.processed, "total": self.total, "message": self.message}


@dataclass(slots=True)
class _Entry:
    task: asyncio.Task
    progress: ScanProgress = field(default_factory=ScanProgress)


class ScanTaskRegistry:
    """Tracks running scan tasks and their in-memory progress.

    Tasks remove themselves once done, so `get` only ever returns live work.
    """

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}

    def spawn(
        self,
        scan_id: str,
        job: Callable[[Callable[[str, dict[str, Any]], None], Callable[[int, int], None]], Awaitable[Any]],
    ) -> asyncio.Task:
        """Start `job(on_status, on_progress)` as a task owned by the registry."""

        if scan_id in self._entries:
            raise ValueError(f"Scan {scan_id} already has a running task")

        progress = ScanProgress()

        def on_status(status: str, payload: dict[str, Any]) -> None:
            progress.status = status
            progress.message = payload.get("message")
            if isinstance(payload.get("total"), int):
                progress.total = payload["total"]

        def on_progress(processed: int, total: int) -> None:
            progress.processed = processed
            progress.total = total

        task = asyncio.create_task(job(on_status, on_progress), name=f"scan-{scan_id}")
        self._entries[scan_id] = _Entry(task=task, progress=progress)
        task.add_done_callback(lambda done: self._on_done(scan_id, done))
        return task

    def get(self, scan_id: str) -> Optional[asyncio.Task]:
        entry = self._entries.get(scan_id)
        return entry.task if entry else None

    def progress(self, scan_id: str) -> Optional[ScanProgress]:
        entry = self._entries.get(scan_id)
        return entry.progress if entry else None

    def cancel(self, scan_id: str) -> bool:
        entry = self._entries.get(scan_id)
        if entry is None or entry.task.done():
            return False
        return entry.task.cancel()

    async def wait(self, scan_id: str) -> Any:
        entry = self._entries.get(scan_id)
        if entry is None:
            return None
        return await entry.task

    async def shutdown(self) -> None:
        """Cancel every live task and wait for them to record their failure."""

        tasks = [entry.task for entry in self._entries.values()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Cancelled running scans on shutdown", extra={"count": len(tasks)})

    def _on_done(self, scan_id: str, task: asyncio.Task) -> None:
        entry = self._entries.get(scan_id)
        if entry is not None and entry.task is task:
            del self._entries[scan_id]
        if task.cancelled():
            logger.info("Scan task cancelled", extra={"scan_id": scan_id})
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Scan task raised", extra={"scan_id": scan_id, "error": str(exc)})
