"""
Buffer Management Component
Feeds reassembled segments to a playback sink that accepts one segment at a time
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, Optional, Protocol


ReadyCallback = Callable[[], None]


class SegmentSink(Protocol):
    """Downstream consumer of complete segments.

    ``updating`` is True while the sink is still taking in the last segment.
    When it finishes it invokes the callback registered through
    ``set_ready_callback``.
    """

    @property
    def updating(self) -> bool: ...

    def append(self, segment: bytes) -> None: ...

    def set_ready_callback(self, callback: Optional[ReadyCallback]) -> None: ...


@dataclass
class BufferMetrics:
    """Buffer performance metrics"""
    segments_received: int = 0
    segments_delivered: int = 0
    segments_queued: int = 0
    peak_queue_depth: int = 0


class SinkBufferManager:
    """Single-slot hand-off with an overflow queue.

    A segment goes straight to the sink only when the sink is idle and
    nothing is waiting; otherwise it joins the back of the queue. Each
    ready notification from the sink, or a push that finds the sink idle,
    releases the oldest queued segment, so the sink sees segments in
    completion order and never more than one at a time.
    """

    def __init__(self, sink: Optional[SegmentSink] = None):
        self.logger = logging.getLogger(__name__)
        self.queue: Deque[bytes] = deque()
        self.metrics = BufferMetrics()
        self.sink: Optional[SegmentSink] = None
        if sink is not None:
            self.attach(sink)

    def attach(self, sink: SegmentSink) -> None:
        """Connect the sink and drain anything queued before it was ready"""
        self.sink = sink
        sink.set_ready_callback(self.on_sink_ready)
        self.logger.debug(f"Sink attached with {len(self.queue)} queued segments")
        self.on_sink_ready()

    def detach(self) -> None:
        if self.sink is not None:
            self.sink.set_ready_callback(None)
        self.sink = None

    def push(self, segment: bytes) -> None:
        """Offer a completed segment"""
        self.metrics.segments_received += 1
        if self.sink is not None and not self.sink.updating:
            if not self.queue:
                self._deliver(segment)
                return
            # Sink went idle without a ready callback; the oldest goes first
            self._deliver(self.queue.popleft())

        self.queue.append(segment)
        self.metrics.segments_queued += 1
        self.metrics.peak_queue_depth = max(self.metrics.peak_queue_depth, len(self.queue))

    def on_sink_ready(self) -> None:
        """Sink finished its last append; hand over the oldest queued segment"""
        if self.sink is None or self.sink.updating or not self.queue:
            return
        self._deliver(self.queue.popleft())

    def clear(self) -> int:
        dropped = len(self.queue)
        self.queue.clear()
        return dropped

    @property
    def queue_depth(self) -> int:
        return len(self.queue)

    def _deliver(self, segment: bytes) -> None:
        self.metrics.segments_delivered += 1
        self.sink.append(segment)


class AsyncCallbackSink:
    """Sink adapter around an async consumer coroutine.

    Busy while the coroutine for the current segment runs; signals ready
    when it returns. A failing consumer is logged and still signals ready,
    so one bad segment does not stall the stream.
    """

    def __init__(self, consumer: Callable[[bytes], Awaitable[None]]):
        self.logger = logging.getLogger(__name__)
        self.consumer = consumer
        self._updating = False
        self._ready_callback: Optional[ReadyCallback] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def updating(self) -> bool:
        return self._updating

    def set_ready_callback(self, callback: Optional[ReadyCallback]) -> None:
        self._ready_callback = callback

    def append(self, segment: bytes) -> None:
        if self._updating:
            raise RuntimeError("Sink is still updating")
        self._updating = True
        self._task = asyncio.get_running_loop().create_task(self._consume(segment))

    async def wait_idle(self) -> None:
        """Wait until the sink and everything chained after it settles"""
        while self._task is not None and not self._task.done():
            await self._task

    async def _consume(self, segment: bytes) -> None:
        try:
            await self.consumer(segment)
        except Exception as e:
            self.logger.error(f"Segment consumer failed: {str(e)}")
        finally:
            self._updating = False
            if self._ready_callback is not None:
                self._ready_callback()
