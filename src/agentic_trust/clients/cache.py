"""
Domain Client Cache: one live client per key, built at most once at a time.

Entry lifecycle per key::

    absent -> building -> ready
                       -> failed -> absent

Concurrent ``get`` calls for the same key share one build task, so they all
observe the same instance or the same exception. The pending task is
registered before the first suspension point, and callers await it through
``asyncio.shield`` so a cancelled caller leaves the shared build running.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Generic, Hashable, TypeVar

from agentic_trust.core.logging import get_logger

logger = get_logger("clients.cache")

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")


class DomainClientCache(Generic[K, T]):
    """
    Keyed cache of lazily built clients.

    Usage:
        cache = DomainClientCache("reputation", build_reputation_client)
        client = await cache.get(11155111)
    """

    def __init__(
        self,
        domain_type: str,
        build: Callable[[K, Any], Awaitable[T]],
    ) -> None:
        """
        Args:
            domain_type: Label used in logs (e.g. "providers", "identity")
            build: Coroutine function ``(key, init_arg) -> client``
        """
        self.domain_type = domain_type
        self._build = build
        self._ready: dict[K, T] = {}
        self._pending: dict[K, asyncio.Task[T]] = {}

    async def get(self, key: K, init_arg: Any = None) -> T:
        """
        Return the client for ``key``, building it if needed.

        ``init_arg`` is only used by the call that starts the build.
        """
        if key in self._ready:
            return self._ready[key]

        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run_build(key, init_arg))
            self._pending[key] = task

        return await asyncio.shield(task)

    async def _run_build(self, key: K, init_arg: Any) -> T:
        logger.debug(f"Building {self.domain_type} client for {key!r}")
        task = asyncio.current_task()
        try:
            client = await self._build(key, init_arg)
        except BaseException:
            if self._pending.get(key) is task:
                del self._pending[key]
            logger.debug(f"Building {self.domain_type} client for {key!r} failed")
            raise
        # A reset during the build orphans this task; its result is not kept.
        if self._pending.get(key) is task:
            del self._pending[key]
            self._ready[key] = client
        return client

    def is_initialized(self, key: K) -> bool:
        """Whether a ready client exists for ``key``."""
        return key in self._ready

    def is_building(self, key: K) -> bool:
        return key in self._pending

    def ready_items(self) -> list[tuple[K, T]]:
        return list(self._ready.items())

    def reset(self, key: K | None = None) -> None:
        """
        Forget clients (one key, or all) so the next ``get`` rebuilds.

        In-flight builds keep running for the callers already awaiting them,
        but their result is not stored.
        """
        if key is None:
            self._ready.clear()
            self._pending.clear()
        else:
            self._ready.pop(key, None)
            self._pending.pop(key, None)

    def __len__(self) -> int:
        return len(self._ready)


__all__ = ["DomainClientCache"]
