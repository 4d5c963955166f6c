"""Host-side primitives consumed by discovery and execution."""

from explorer.host.cancellation import CancellationToken, CancellationTokenSource

__all__ = [
    "CancellationToken",
    "CancellationTokenSource",
]
