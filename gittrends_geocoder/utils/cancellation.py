"""Cooperative cancellation tokens for geocoding requests.

A :class:`CancellationToken` is handed down through every decorator in the
pipeline.  Decorators check it at admission time (before reading the cache
or entering a queue) and again right before the expensive call, so work that
was cancelled while waiting never reaches the network.  Cancelling a token
never interrupts an HTTP call that is already in flight.

Tokens are plain objects driven by the event loop they are used in; they
are not thread-safe.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from gittrends_geocoder.utils.errors import RequestCancelledError

CancelCallback = Callable[["CancellationToken"], None]


class CancellationToken:
    """Signal that a caller is no longer interested in a result.

    Example::

        token = CancellationToken()
        task = asyncio.create_task(geocoder.search("brazil", cancellation=token))
        token.cancel("client disconnected")
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: str | None = None
        self._callbacks: list[CancelCallback] = []
        self._event: asyncio.Event | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """Fire the token.  Subsequent calls are no-ops."""
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason
        if self._event is not None:
            self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(self)

    def raise_if_cancelled(self, query: str | None = None) -> None:
        """Raise :class:`RequestCancelledError` if the token has fired."""
        if self._cancelled:
            raise RequestCancelledError(query=query, reason=self._reason)

    async def wait(self) -> None:
        """Suspend until the token is cancelled."""
        if self._cancelled:
            return
        if self._event is None:
            self._event = asyncio.Event()
        await self._event.wait()

    def add_callback(self, callback: CancelCallback) -> None:
        """Run *callback* on cancellation (immediately if already cancelled)."""
        if self._cancelled:
            callback(self)
            return
        self._callbacks.append(callback)

    def remove_callback(self, callback: CancelCallback) -> None:
        """Unregister *callback*; a no-op if it is not registered."""
        try:
            self._callbacks.remove(callback)
        except ValueError:
            pass

    def __repr__(self) -> str:
        state = f"cancelled, reason={self._reason!r}" if self._cancelled else "active"
        return f"<CancellationToken {state}>"


def is_cancelled(token: CancellationToken | None) -> bool:
    """Return ``True`` when *token* is present and has fired."""
    return token is not None and token.cancelled
