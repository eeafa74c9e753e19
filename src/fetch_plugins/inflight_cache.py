"""
In-flight request de-duplication (single-flight).

When identical requests overlap, only the first one reaches the transport;
every other caller awaits the same task and receives the same outcome.
"""
import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional, Set, TypeVar

from .config import InflightCacheConfig, merge_inflight_cache_config
from .request_key import encode_request_key
from .types import (
    InflightEntry,
    InflightEvent,
    InflightEventListener,
    InflightEventType,
    RequestDescriptor,
)

logger = logging.getLogger("fetch_plugins.inflight_cache")

T = TypeVar("T")


class InflightRequestCache:
    """
    Maps a request key to the one pending operation serving it.

    The pending map belongs to this instance (one per client). The task
    removes its own entry in its last step, so nobody can see a settled entry
    in the map, and a call made after settlement always starts a fresh
    attempt. An entry whose leader was cancelled may be replaced before it
    settles; the replaced task then leaves the new entry alone.

    Example:
        cache = InflightRequestCache()

        # 50 concurrent calls, 1 transport invocation
        results = await asyncio.gather(
            *[cache.acquire(descriptor, transport_send) for _ in range(50)]
        )
    """

    def __init__(
        self,
        config: Optional[InflightCacheConfig] = None,
        key_encoder: Callable[[RequestDescriptor], str] = encode_request_key,
    ) -> None:
        self._config = merge_inflight_cache_config(config)
        self._encode = key_encoder
        self._pending: Dict[str, InflightEntry] = {}
        self._listeners: Set[InflightEventListener] = set()

    def supports(self, descriptor: RequestDescriptor) -> bool:
        """Check if a request method is safe to de-duplicate."""
        return (descriptor.method or "GET").upper() in self._config.methods

    def key_for(self, descriptor: RequestDescriptor) -> str:
        """Request key for a descriptor."""
        return self._encode(descriptor)

    async def acquire(
        self,
        descriptor: RequestDescriptor,
        operation: Callable[[RequestDescriptor], Awaitable[T]],
    ) -> T:
        """
        Run ``operation(descriptor)`` unless the same request is pending.

        Followers await a shielded view of the leader's task, so a follower
        being cancelled never cancels the shared work. An entry whose leader
        cancelled its token is never joined; a fresh operation replaces it.
        """
        key = self._encode(descriptor)

        # No await between lookup and registration
        existing = self._pending.get(key)
        if existing is not None and existing.cancelled:
            logger.debug(f"acquire: leader of {key} was cancelled, starting a fresh request")
            existing = None

        if existing is not None:
            existing.subscribers += 1
            logger.debug(f"acquire: joining in-flight request {key} (subscribers={existing.subscribers})")
            self._emit(
                InflightEvent(
                    type=InflightEventType.JOIN,
                    key=key,
                    timestamp=time.time(),
                    metadata={"subscribers": existing.subscribers},
                )
            )
            return await asyncio.shield(existing.task)

        task = asyncio.ensure_future(self._run(key, operation, descriptor))
        self._pending[key] = InflightEntry(
            task=task,
            subscribers=1,
            started_at=time.time(),
            cancel_token=descriptor.cancel_token,
        )

        logger.debug(f"acquire: leading new request {key}")
        self._emit(
            InflightEvent(
                type=InflightEventType.LEAD,
                key=key,
                timestamp=time.time(),
            )
        )
        return await asyncio.shield(task)

    async def _run(
        self,
        key: str,
        operation: Callable[[RequestDescriptor], Awaitable[T]],
        descriptor: RequestDescriptor,
    ) -> T:
        entry: Optional[InflightEntry] = self._pending.get(key)
        if entry is not None and entry.task is not asyncio.current_task():
            # Replaced before this task got to run
            entry = None
        try:
            value = await operation(descriptor)
        except BaseException as error:
            entry = self._release(key) or entry
            self._emit(
                InflightEvent(
                    type=InflightEventType.ERROR,
                    key=key,
                    timestamp=time.time(),
                    metadata={
                        "error": str(error),
                        "subscribers": entry.subscribers if entry else 1,
                    },
                )
            )
            raise

        entry = self._release(key) or entry
        self._emit(
            InflightEvent(
                type=InflightEventType.COMPLETE,
                key=key,
                timestamp=time.time(),
                metadata={
                    "subscribers": entry.subscribers if entry else 1,
                    "duration_seconds": time.time() - entry.started_at if entry else 0.0,
                },
            )
        )
        return value

    def _release(self, key: str) -> Optional[InflightEntry]:
        """Remove the entry for ``key`` if it belongs to the running task."""
        entry = self._pending.get(key)
        if entry is not None and entry.task is asyncio.current_task():
            del self._pending[key]
            logger.debug(f"_release: settled {key} (subscribers={entry.subscribers})")
            return entry
        return None

    def is_in_flight(self, descriptor: RequestDescriptor) -> bool:
        """Check if a request is currently in-flight."""
        return self._encode(descriptor) in self._pending

    def get_subscribers(self, descriptor: RequestDescriptor) -> int:
        """Get the number of callers waiting on an in-flight request."""
        entry = self._pending.get(self._encode(descriptor))
        return entry.subscribers if entry else 0

    def keys(self) -> List[str]:
        """Snapshot of the in-flight request keys."""
        return list(self._pending)

    @property
    def size(self) -> int:
        """Number of in-flight requests."""
        return len(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, key: object) -> bool:
        return key in self._pending

    def get_stats(self) -> dict:
        """Get statistics about in-flight requests."""
        return {
            "in_flight": len(self._pending),
            "subscribers": sum(entry.subscribers for entry in self._pending.values()),
        }

    def get_config(self) -> InflightCacheConfig:
        """Get configuration."""
        return self._config

    def on(self, listener: InflightEventListener) -> Callable[[], None]:
        """Add event listener."""
        self._listeners.add(listener)
        return lambda: self._listeners.discard(listener)

    def off(self, listener: InflightEventListener) -> None:
        """Remove event listener."""
        self._listeners.discard(listener)

    def _emit(self, event: InflightEvent) -> None:
        """Emit an event to all listeners."""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as error:
                logger.warning(f"_emit: listener failed for {event.type.value}: {error!r}")
