"""Keyed in-flight request tracking for duplicate-call suppression."""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Hashable, List, TypeVar

from ..config.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class InFlightRequests:
    """
    Map of operation key to the task currently serving it.

    A caller asking for a key that is already running awaits the same task
    instead of starting another one. Entries are removed when the task
    settles, whether it succeeded or failed.
    """

    def __init__(self, name: str = "default"):
        self.name = name
        self._tasks: Dict[Hashable, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._tasks

    def pending_keys(self) -> List[Hashable]:
        """Keys of calls that have not settled yet."""
        return list(self._tasks)

    async def run(self, key: Hashable, factory: Callable[[], Awaitable[T]]) -> T:
        """
        Join the in-flight call for ``key`` or start a new one.

        Args:
            key: Operation name plus the parameters that make calls identical
            factory: Zero-argument callable producing the awaitable to run

        Returns:
            The result shared by every caller of the same key
        """
        task = self._tasks.get(key)
        if task is not None:
            logger.debug("Joining in-flight request", guard=self.name, key=key)
            return await asyncio.shield(task)

        task = asyncio.ensure_future(factory())
        self._tasks[key] = task
        task.add_done_callback(lambda _t: self._release(key, task))

        return await asyncio.shield(task)

    def _release(self, key: Hashable, task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]

    def snapshot(self) -> Dict[str, Any]:
        """Summary used in health and debug output."""
        return {"name": self.name, "pending": len(self._tasks)}
