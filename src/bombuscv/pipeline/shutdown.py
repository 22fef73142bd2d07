"""Cooperative cancellation shared by the acquisition and processing loops."""

from __future__ import annotations

import logging
import signal
from collections.abc import Callable, Iterable
from types import FrameType

logger = logging.getLogger(__name__)


class ShutdownToken:
    """Process-wide shutdown flag.

    Becomes active at most once and is never reset. Triggering only assigns
    plain attributes, so it is safe to call from a signal handler.
    """

    def __init__(self) -> None:
        self._active = False
        self._reason: str | None = None

    def trigger(self, reason: str = "requested") -> bool:
        """Activate the token; returns False if it was already active."""
        if self._active:
            return False
        self._reason = reason
        self._active = True
        return True

    def is_set(self) -> bool:
        return self._active

    @property
    def reason(self) -> str | None:
        return self._reason


def install_signal_handlers(
    token: ShutdownToken,
    signals: Iterable[signal.Signals] = (signal.SIGINT, signal.SIGTERM),
) -> Callable[[], None]:
    """Route termination signals to `token`; returns a function restoring the old handlers."""

    def _handle_signal(signum: int, _frame: FrameType | None) -> None:
        token.trigger(signal.Signals(signum).name)

    previous: dict[signal.Signals, object] = {}
    for sig in signals:
        previous[sig] = signal.getsignal(sig)
        signal.signal(sig, _handle_signal)
    logger.debug("Installed shutdown handlers for %s", ", ".join(s.name for s in previous))

    def _restore() -> None:
        for sig, handler in previous.items():
            signal.signal(sig, handler)  # type: ignore[arg-type]

    return _restore
