from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Protocol


logger = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[object]]


class TaskRunner(Protocol):
    async def submit(self, name: str, factory: TaskFactory) -> None:
        ...


async def _run_logged(name: str, factory: TaskFactory) -> None:
    # Reindex work is best effort; failures never reach the triggering request.
    try:
        await factory()
    except Exception:  # noqa: BLE001 - background failures are logged, not retried
        logger.exception("background_task_failed name=%s", name)


class BackgroundTaskRunner:
    """Dispatch work onto the event loop after the caller returns."""

    def __init__(self) -> None:
        # Strong references keep pending tasks from being garbage collected.
        self._tasks: set[asyncio.Task[None]] = set()

    async def submit(self, name: str, factory: TaskFactory) -> None:
        task = asyncio.create_task(_run_logged(name, factory), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class InlineTaskRunner:
    """Await work before responding, for runtimes without deferred execution."""

    async def submit(self, name: str, factory: TaskFactory) -> None:
        await _run_logged(name, factory)


def build_task_runner(mode: str) -> TaskRunner:
    if (mode or "background").lower() == "inline":
        return InlineTaskRunner()
    return BackgroundTaskRunner()
