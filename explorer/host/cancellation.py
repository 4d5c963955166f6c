"""Cancellation tokens passed from the host into discovery calls.

A CancellationTokenSource owns one CancellationToken.  Calling ``cancel()``
on the source flips the token and invokes every registered callback once.
Callbacks registered after cancellation run immediately.
"""

from __future__ import annotations

from typing import Callable


class CancellationToken:
    """Read-only view of a cancellation signal."""

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []

    @classmethod
    def none(cls) -> CancellationToken:
        """Return a token that is never cancelled."""
        return cls()

    @property
    def is_cancellation_requested(self) -> bool:
        return self._cancelled

    def on_cancellation_requested(
        self, callback: Callable[[], None]
    ) -> Callable[[], None]:
        """Register *callback* to run when cancellation is requested.

        Returns:
            A callable that unsubscribes the callback.  Calling it more
            than once is harmless.
        """
        if self._cancelled:
            callback()
            return lambda: None

        self._callbacks.append(callback)

        def dispose() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return dispose

    def _cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()


class CancellationTokenSource:
    """Creates and controls a CancellationToken."""

    def __init__(self) -> None:
        self.token = CancellationToken()

    def cancel(self) -> None:
        """Request cancellation.  Only the first call has any effect."""
        self.token._cancel()

    def dispose(self) -> None:
        """Drop pending callbacks without cancelling."""
        self.token._callbacks.clear()
