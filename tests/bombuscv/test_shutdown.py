"""Tests for the shutdown token and signal wiring."""

from __future__ import annotations

import os
import signal
import time

from bombuscv.pipeline.shutdown import ShutdownToken, install_signal_handlers


def test_token_triggers_once() -> None:
    """The token activates once, keeps the first reason and never resets."""
    # Given: a fresh token
    token = ShutdownToken()
    assert token.is_set() is False

    # When: triggering twice
    first = token.trigger("SIGINT")
    second = token.trigger("SIGTERM")

    # Then: only the first trigger counts
    assert first is True
    assert second is False
    assert token.is_set() is True
    assert token.reason == "SIGINT"


def test_signal_handler_triggers_token() -> None:
    """A routed signal activates the token; restore reinstates the old handler."""
    # Given: SIGUSR1 routed to a token
    token = ShutdownToken()
    previous = signal.getsignal(signal.SIGUSR1)
    restore = install_signal_handlers(token, signals=(signal.SIGUSR1,))

    try:
        # When: the process receives the signal
        os.kill(os.getpid(), signal.SIGUSR1)
        deadline = time.monotonic() + 1.0
        while not token.is_set() and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        restore()

    # Then: the token is set with the signal name and the handler is restored
    assert token.is_set() is True
    assert token.reason == "SIGUSR1"
    assert signal.getsignal(signal.SIGUSR1) == previous
