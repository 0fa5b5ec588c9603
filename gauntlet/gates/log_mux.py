"""
Fan-out of gate-level log lines to per-slot log files.

A review gate logs to a main stream before it knows which slots will run.
Each slot log that attaches later first receives the buffered history, then
live lines, and never the same line twice.
"""

from typing import Callable

MAX_BUFFER_SIZE = 10_000

Sink = Callable[[str], None]


class _Subscriber:
    def __init__(self, sink: Sink):
        self.sink = sink
        self.delivered: set[int] = set()

    def deliver(self, seq: int, text: str) -> None:
        if seq in self.delivered:
            return
        self.delivered.add(seq)
        self.sink(text)


class LogMultiplexer:
    def __init__(self, max_buffer: int = MAX_BUFFER_SIZE):
        self.max_buffer = max_buffer
        self._buffer: list[tuple[int, str]] = []
        self._subscribers: list[_Subscriber] = []
        self._seq = 0

    def log(self, text: str) -> None:
        """Record a line and deliver it to every attached sink."""
        seq = self._seq
        self._seq += 1
        if len(self._buffer) < self.max_buffer:
            self._buffer.append((seq, text))
        for subscriber in self._subscribers:
            subscriber.deliver(seq, text)

    def attach(self, sink: Sink) -> Sink:
        """Attach a sink, replay buffered history into it, and return it."""
        subscriber = _Subscriber(sink)
        self._subscribers.append(subscriber)
        for seq, text in list(self._buffer):
            subscriber.deliver(seq, text)
        return sink

    @property
    def history(self) -> list[str]:
        return [text for _, text in self._buffer]
