"""Coalescing of concurrent identical requests.

Callers asking for the same key while an operation for that key is still
running share its outcome instead of starting a second one. The shared
handle is an :class:`asyncio.Task`; the registry is bound to the event loop
that runs those tasks and is not meant to be shared across threads.

Ordering: the in-flight entry is removed inside the shared task, after the
optional ``on_success`` hook ran and before the task's result is published.
Every waiter therefore resumes after the entry is gone, and a caller that
arrives in between sees either the populated cache or no entry at all.

An operation only runs its ``on_success`` hook while it is still the
registered entry for its key. :meth:`InFlightRegistry.invalidate` and
:meth:`InFlightRegistry.clear` detach entries, so work that started before a
write or a reset never publishes its result.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from governor.core.logging import hash_key

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[Any]]
SuccessHook = Callable[[Any], None]


class InFlightRegistry:
    """Table of pending operations keyed by cache key.

    ``generation`` increases on every :meth:`clear`. A detached operation
    (cleared or invalidated while running) still resolves its own waiters but
    neither runs its success hook nor touches entries created after it.
    """

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Task[Any]] = {}
        self._generation = 0
        self._started = 0
        self._joined = 0
        self._detached = 0

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, key: str) -> bool:
        return key in self._pending

    @property
    def generation(self) -> int:
        return self._generation

    async def run(
        self,
        key: str,
        operation: Operation,
        *,
        on_success: SuccessHook | None = None,
    ) -> Any:
        """Await the in-flight operation for ``key`` or start ``operation``.

        Args:
            key: De-duplication key.
            operation: Zero-argument callable returning an awaitable. Called at
                most once, and only when nothing is in flight for ``key``.
            on_success: Called with the result inside the shared task before
                the entry is released (used to populate the cache once).

        Returns:
            The shared operation's result.

        Raises:
            Exception: Whatever the shared operation raised, re-raised for
                every waiter.
        """
        task = self._pending.get(key)
        if task is not None:
            self._joined += 1
            logger.debug("dedup.joined", extra={"cache_key": hash_key(key)})
        else:
            task = self._start(key, operation, on_success)

        # Shielded so a cancelled waiter stops waiting without aborting
        # the operation other waiters depend on.
        return await asyncio.shield(task)

    def _start(
        self,
        key: str,
        operation: Operation,
        on_success: SuccessHook | None,
    ) -> asyncio.Task[Any]:
        awaitable = operation()

        async def _settle() -> Any:
            try:
                result = await awaitable
                if on_success is not None and self._owns(key):
                    on_success(result)
                return result
            finally:
                if self._owns(key):
                    del self._pending[key]

        task = asyncio.ensure_future(_settle())
        self._pending[key] = task
        self._started += 1
        task.add_done_callback(_consume_exception)
        logger.debug("dedup.started", extra={"cache_key": hash_key(key)})
        return task

    def _owns(self, key: str) -> bool:
        return self._pending.get(key) is asyncio.current_task()

    def invalidate(self, key_or_prefix: str) -> int:
        """Detach the entry for ``key_or_prefix`` and every ``key_or_prefix:*``.

        Callers arriving afterwards start a fresh operation instead of joining
        one whose result may predate the change that triggered invalidation.

        Returns:
            Number of detached entries.
        """
        prefix = key_or_prefix + ":"
        doomed = [k for k in self._pending if k == key_or_prefix or k.startswith(prefix)]
        for k in doomed:
            del self._pending[k]
        self._detached += len(doomed)

        if doomed:
            logger.debug(
                "dedup.detached",
                extra={"cache_key": hash_key(key_or_prefix), "detached": len(doomed)},
            )
        return len(doomed)

    def clear(self) -> None:
        """Forget every pending entry. Running operations keep running."""
        self._detached += len(self._pending)
        self._pending.clear()
        self._generation += 1

    def stats(self) -> dict[str, int]:
        return {
            "in_flight": len(self._pending),
            "started": self._started,
            "joined": self._joined,
            "detached": self._detached,
            "generation": self._generation,
        }


def _consume_exception(task: asyncio.Task[Any]) -> None:
    # Every waiter already receives the exception through shield(); marking
    # it retrieved keeps asyncio from reporting it when all waiters left.
    if not task.cancelled():
        task.exception()
