"""Tests for the replace-oldest frame channel."""

from __future__ import annotations

import pytest

from bombuscv.pipeline.channel import FrameChannel
from tests.bombuscv.mocks import make_frame


def test_newest_frame_replaces_unconsumed_one() -> None:
    """At capacity 1 a new frame replaces the one not yet consumed."""
    # Given: a single-slot channel holding frame 0
    channel = FrameChannel(capacity=1)
    assert channel.send(make_frame(0)) is True

    # When: frame 1 arrives before the consumer took frame 0
    accepted = channel.send(make_frame(1))

    # Then: frame 0 was dropped and frame 1 is delivered
    assert accepted is False
    assert channel.dropped == 1
    frame = channel.recv(timeout_s=0.01)
    assert frame is not None
    assert frame.seq == 1
    assert channel.recv(timeout_s=0.01) is None


def test_capacity_two_keeps_two_most_recent() -> None:
    """A two-slot channel keeps the two newest frames in order."""
    # Given: a two-slot channel
    channel = FrameChannel(capacity=2)

    # When: three frames are sent without consumption
    for seq in range(3):
        channel.send(make_frame(seq))

    # Then: the oldest was dropped and the others arrive in order
    received = [channel.recv(timeout_s=0.01), channel.recv(timeout_s=0.01)]
    assert [frame.seq for frame in received if frame is not None] == [1, 2]
    assert channel.sent == 3
    assert channel.dropped == 1


def test_drained_only_after_close_and_empty() -> None:
    """The consumer sees drained() once the producer closed and nothing is left."""
    # Given: a channel with one pending frame
    channel = FrameChannel()
    channel.send(make_frame(0))

    # When: the producer closes
    channel.close()

    # Then: the pending frame is still delivered before drained() turns true
    assert channel.drained() is False
    assert channel.recv(timeout_s=0.01) is not None
    assert channel.drained() is True
    assert channel.recv(timeout_s=0.01) is None


def test_send_after_close_raises() -> None:
    """Sending on a closed channel is a programming error."""
    channel = FrameChannel()
    channel.close()

    with pytest.raises(RuntimeError):
        channel.send(make_frame(0))


@pytest.mark.parametrize("capacity", [0, 3])
def test_capacity_is_bounded(capacity: int) -> None:
    """Only capacities of one or two frames are allowed."""
    with pytest.raises(ValueError):
        FrameChannel(capacity=capacity)
