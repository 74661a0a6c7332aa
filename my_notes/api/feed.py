"""
Broadcast channel for the full note list.

Each publication is an immutable snapshot (a tuple of notes). Subscribers get
their own unbounded FIFO queue, so nothing is dropped or coalesced; a new
subscriber first receives the most recent snapshot, if one was published.
"""
import logging
import queue
from threading import Lock
from typing import Generic, Iterable, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()


# PUBLIC_INTERFACE
class NoteSubscription(Generic[T]):
    """
    One reader of a NoteFeed.

    Iterating blocks until the next snapshot arrives and stops once the
    subscription is closed.
    """

    def __init__(self, feed: "NoteFeed[T]"):
        self._feed = feed
        self._queue: "queue.Queue" = queue.Queue()
        self.closed = False

    def _push(self, item) -> None:
        self._queue.put_nowait(item)

    def __iter__(self):
        return self

    def __next__(self) -> Tuple[T, ...]:
        return self.get()

    def get(self, timeout: Optional[float] = None) -> Tuple[T, ...]:
        """Next snapshot; raises queue.Empty on timeout, StopIteration once closed."""
        item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            # leave the marker for later readers
            self._push(_CLOSED)
            raise StopIteration
        return item

    def drain(self) -> List[Tuple[T, ...]]:
        """All snapshots received so far, without blocking."""
        items = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return items
            if item is _CLOSED:
                self._push(_CLOSED)
                return items
            items.append(item)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._feed.unsubscribe(self)
        self._push(_CLOSED)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


# PUBLIC_INTERFACE
class NoteFeed(Generic[T]):
    """Single publisher, many subscribers."""

    def __init__(self):
        self._lock = Lock()
        self._subscribers: List[NoteSubscription[T]] = []
        self._latest: Optional[Tuple[T, ...]] = None

    @property
    def latest(self) -> Optional[Tuple[T, ...]]:
        """Most recently published snapshot, or None before the first publish."""
        return self._latest

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> NoteSubscription[T]:
        sub = NoteSubscription(self)
        with self._lock:
            if self._latest is not None:
                sub._push(self._latest)
            self._subscribers.append(sub)
        return sub

    def unsubscribe(self, sub: NoteSubscription[T]) -> None:
        with self._lock:
            try:
                self._subscribers.remove(sub)
            except ValueError:
                pass

    def publish(self, notes: Iterable[T]) -> Tuple[T, ...]:
        snapshot = tuple(notes)
        with self._lock:
            self._latest = snapshot
            subscribers = list(self._subscribers)
        for sub in subscribers:
            sub._push(snapshot)
        logger.debug(f"Published {len(snapshot)} notes to {len(subscribers)} subscribers")
        return snapshot
