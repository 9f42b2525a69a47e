"""Summary: Concurrency coordinator for mutating scheduling operations.

Importance: Serializes writes per key, bounds calls to the external calendar
provider, and coalesces bursts of identical sync triggers.
Alternatives: Use database row locks or a distributed lock service such as Redis.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from meetpilot.errors import LockTimeoutError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def pair_key(user_a: int | str, user_b: int | str) -> str:
    """Summary: Build the lock key for a pair of users.

    Importance: Sorting makes (A, B) and (B, A) contend for the same section.
    Alternatives: Lock on a relationship row ID, which does not exist before creation.
    """

    first, second = sorted([str(user_a), str(user_b)])
    return f"pair:{first}:{second}"


def user_key(namespace: str, user_id: int | str) -> str:
    return f"{namespace}:{user_id}"


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


@dataclass
class _PendingCall:
    future: asyncio.Future
    fn: Callable[[], Awaitable[Any]]
    handle: asyncio.TimerHandle | None = None


class ConcurrencyCoordinator:
    """Summary: Keyed critical sections, an external-call pool, and a debouncer.

    Importance: The only serialization point for shared relationship and proposal state.
    Alternatives: Serialize all writes through a single worker queue.
    """

    def __init__(self, external_pool_size: int = 5, default_lock_timeout: float | None = None) -> None:
        """Summary: Initialize the coordinator.

        Importance: One instance is built per process and shared by all services.
        Alternatives: Use module-level singletons.
        """

        if external_pool_size < 1:
            raise ValidationError("External call pool size must be at least 1")
        self._locks: dict[str, _LockEntry] = {}
        self._external = asyncio.Semaphore(external_pool_size)
        self._external_pool_size = external_pool_size
        self._default_lock_timeout = default_lock_timeout
        self._debounced: dict[str, _PendingCall] = {}
        self._debounce_tasks: set[asyncio.Task] = set()

    @property
    def external_pool_size(self) -> int:
        return self._external_pool_size

    def active_lock_keys(self) -> list[str]:
        """Keys that currently have a holder or a waiter."""

        return sorted(self._locks)

    async def with_lock(
        self,
        key: str,
        fn: Callable[[], Awaitable[T]],
        timeout: float | None = None,
    ) -> T:
        """Summary: Run fn while holding the critical section for key.

        Importance: Waiters queue in FIFO order and the section is released on every
        exit path, including errors raised by fn, which propagate unchanged.
        Alternatives: Retry with sleeps on a shared cache key.
        """

        wait = timeout if timeout is not None else self._default_lock_timeout
        entry = self._locks.setdefault(key, _LockEntry())
        entry.users += 1
        try:
            try:
                if wait is None:
                    await entry.lock.acquire()
                else:
                    await asyncio.wait_for(entry.lock.acquire(), wait)
            except asyncio.TimeoutError:
                logger.warning("Timed out after %ss waiting for lock %s.", wait, key)
                raise LockTimeoutError(f"Could not acquire lock {key} within {wait}s") from None
            try:
                return await fn()
            finally:
                entry.lock.release()
        finally:
            entry.users -= 1
            if entry.users == 0 and self._locks.get(key) is entry:
                del self._locks[key]

    async def with_external_limit(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Summary: Run fn inside the bounded external-provider pool.

        Importance: Keeps concurrent provider calls under quota; no retries here.
        Alternatives: Token-bucket rate limiting per second.
        """

        async with self._external:
            return await fn()

    async def debounce(
        self, key: str, fn: Callable[[], Awaitable[T]], window_ms: int
    ) -> T:
        """Summary: Collapse repeated triggers for key into one trailing execution.

        Importance: Every trigger restarts the quiet window; when it elapses the most
        recent fn runs once and all collapsed callers share its result or error.
        Alternatives: Leading-edge throttling that drops later triggers.
        """

        if window_ms < 0:
            raise ValidationError("Debounce window must not be negative")
        loop = asyncio.get_running_loop()
        pending = self._debounced.get(key)
        if pending is None:
            pending = _PendingCall(future=loop.create_future(), fn=fn)
            self._debounced[key] = pending
        else:
            if pending.handle is not None:
                pending.handle.cancel()
            pending.fn = fn
            logger.debug("Coalesced trigger for %s.", key)
        pending.handle = loop.call_later(window_ms / 1000, self._fire, key, pending)
        return await asyncio.shield(pending.future)

    def _fire(self, key: str, pending: _PendingCall) -> None:
        if self._debounced.get(key) is pending:
            del self._debounced[key]
        task = asyncio.ensure_future(self._run_pending(pending))
        self._debounce_tasks.add(task)
        task.add_done_callback(self._debounce_tasks.discard)

    @staticmethod
    async def _run_pending(pending: _PendingCall) -> None:
        try:
            result = await pending.fn()
        except Exception as exc:
            if not pending.future.done():
                pending.future.set_exception(exc)
        else:
            if not pending.future.done():
                pending.future.set_result(result)
