from __future__ import annotations

import logging
from queue import Empty, Full, Queue
from threading import Event

from bombuscv.capture.frame import Frame

logger = logging.getLogger(__name__)

MAX_CAPACITY = 2


class FrameChannel:
    """Single-producer/single-consumer frame handoff with replace-oldest backpressure.

    `send()` never blocks: when the channel is full the oldest unconsumed
    frame is discarded to make room for the new one.
    """

    def __init__(self, capacity: int = 1) -> None:
        if not 1 <= capacity <= MAX_CAPACITY:
            raise ValueError(f"Channel capacity must be between 1 and {MAX_CAPACITY}")
        self.capacity = capacity
        self._queue: Queue[Frame] = Queue(maxsize=capacity)
        self._closed = Event()
        self.sent = 0
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def drained(self) -> bool:
        """True once the producer closed the channel and every frame was taken."""
        return self._closed.is_set() and self._queue.empty()

    def send(self, frame: Frame) -> bool:
        """Hand a frame over; returns False if a stale frame had to be dropped."""
        if self._closed.is_set():
            raise RuntimeError("Cannot send on a closed channel")
        self.sent += 1
        try:
            self._queue.put_nowait(frame)
            return True
        except Full:
            pass

        try:
            stale = self._queue.get_nowait()
        except Empty:
            pass
        else:
            self.dropped += 1
            logger.debug("Dropped stale frame %s for frame %s", stale.seq, frame.seq)
        try:
            self._queue.put_nowait(frame)
        except Full:
            self.dropped += 1
        return False

    def recv(self, timeout_s: float) -> Frame | None:
        if self.drained():
            return None
        try:
            return self._queue.get(timeout=float(timeout_s))
        except Empty:
            return None

    def close(self) -> None:
        self._closed.set()
