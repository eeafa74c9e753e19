"""
Cooperative cancellation: tokens and supersession gates.

A ``CancellationToken`` is an explicit value passed down the call chain.
Operations observe it at their await points; ``run_with_token`` does that for
any awaitable by racing it against the token.

A ``CancellationGate`` wraps an operation so that starting it again cancels
the previous, still running, invocation.

Example:
    async def load(token: CancellationToken):
        return await client.get("/search", params={"q": query}, cancel_token=token)

    search = with_cancellation(load)

    first = search()
    second = search()   # first is told to stop
    await second
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar

from .errors import CancellationFailure

logger = logging.getLogger("fetch_plugins.cancellation")

T = TypeVar("T")


class CancellationToken:
    """Advisory cancellation signal."""

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: Any = None
        self._callbacks: List[Callable[[], None]] = []
        self._event: Optional[asyncio.Event] = None

    @property
    def cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        return self._cancelled

    @property
    def reason(self) -> Any:
        """Reason given to ``cancel``."""
        return self._reason

    def cancel(self, reason: Any = None) -> None:
        """Signal cancellation. Idempotent; only the first reason is kept."""
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason
        if self._event is not None:
            self._event.set()

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as error:
                logger.warning(f"cancel: callback raised {error!r}")

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Run ``callback`` when the token is cancelled.

        Runs immediately if already cancelled. Returns a function that removes
        the callback.
        """
        if self._cancelled:
            callback()
            return lambda: None

        self._callbacks.append(callback)

        def remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return remove

    def raise_if_cancelled(self) -> None:
        """Raise ``CancellationFailure`` if cancellation was requested."""
        if self._cancelled:
            raise CancellationFailure(self._reason)

    async def wait(self) -> None:
        """Wait until the token is cancelled."""
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        await self._event.wait()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancelled}, reason={self._reason!r})"


async def run_with_token(
    awaitable: Awaitable[T],
    token: Optional[CancellationToken],
) -> T:
    """
    Await ``awaitable`` unless ``token`` is cancelled first.

    Token cancellation cancels the underlying work and raises
    ``CancellationFailure``. Cancellation of the calling task itself is not
    converted and propagates as ``asyncio.CancelledError``.
    """
    if token is None:
        return await awaitable

    if token.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise CancellationFailure(token.reason)

    task = asyncio.ensure_future(awaitable)
    remove = token.add_callback(task.cancel)
    try:
        await asyncio.wait({task})
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        remove()

    if task.cancelled():
        if token.cancelled:
            raise CancellationFailure(token.reason)
        # Cancelled by someone other than the token
        raise asyncio.CancelledError()
    return task.result()


class CancellationGate(Generic[T]):
    """
    At most one live operation per gate.

    Each call cancels the token of the previous generation before starting
    ``callback`` with a fresh token, and returns the task running it. The gate
    itself never raises; it forwards whatever the callback produces.
    """

    def __init__(self, callback: Callable[[CancellationToken], Awaitable[T]]) -> None:
        self._callback = callback
        self._token: Optional[CancellationToken] = None
        self._generation = 0

    @property
    def active(self) -> bool:
        """Whether a generation is currently running."""
        return self._token is not None

    @property
    def token(self) -> Optional[CancellationToken]:
        """Token of the current generation, None when idle."""
        return self._token

    @property
    def generation(self) -> int:
        """Number of invocations so far."""
        return self._generation

    def __call__(self) -> "asyncio.Task[T]":
        if self._token is not None:
            self._token.cancel("superseded")

        token = CancellationToken()
        self._token = token
        self._generation += 1
        logger.debug(f"CancellationGate: starting generation {self._generation}")

        task = asyncio.ensure_future(self._callback(token))
        task.add_done_callback(lambda done: self._release(token, done))
        return task

    def cancel(self, reason: Any = "cancelled") -> None:
        """Cancel the current generation without starting a new one."""
        if self._token is not None:
            self._token.cancel(reason)
            self._token = None

    def _release(self, token: CancellationToken, task: "asyncio.Task[T]") -> None:
        # A superseded generation settling must not reset the current one
        if self._token is token:
            self._token = None
        elif not task.cancelled() and task.exception() is not None:
            # Marks the superseded generation's exception as retrieved
            logger.debug(f"CancellationGate: superseded generation ended with {task.exception()!r}")


def with_cancellation(
    callback: Callable[[CancellationToken], Awaitable[T]],
) -> CancellationGate[T]:
    """Wrap ``callback`` in a gate; the gate is a zero-argument invoker."""
    return CancellationGate(callback)
