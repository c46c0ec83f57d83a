# agent_workflow/publisher.py
import asyncio
import inspect
import logging
from typing import Callable, List, Optional

from .models import ExecutionSnapshot, ExecutionState

logger = logging.getLogger(__name__)


class PublisherClosed(RuntimeError):
    pass


class StatePublisher:
    """Delivers ordered snapshots of one run to its subscribers.

    Every delivery is a deep copy, so subscribers can keep or mutate what they
    receive without touching the live state. `finish` sends the terminal
    snapshot (done=True) and closes the publisher; it can only happen once.
    """

    def __init__(self, *subscribers: Callable):
        self.subscribers: List[Callable] = list(subscribers)
        self.closed = False
        self.published = 0

    def subscribe(self, subscriber: Callable):
        self.subscribers.append(subscriber)

    async def _deliver(self, snapshot: ExecutionSnapshot):
        for subscriber in self.subscribers:
            # copy failures propagate; only subscriber errors are isolated
            copy = snapshot.model_copy(deep=True)
            try:
                res = subscriber(copy)
                if inspect.isawaitable(res):
                    await res
            except Exception:
                logger.exception("snapshot subscriber %r failed", subscriber)
        self.published += 1

    async def publish(self, state: ExecutionState):
        if self.closed:
            raise PublisherClosed(f"execution {state.execution_id} already delivered its final snapshot")
        await self._deliver(ExecutionSnapshot.of(state))

    async def finish(self, state: ExecutionState):
        if self.closed:
            raise PublisherClosed(f"execution {state.execution_id} already delivered its final snapshot")
        self.closed = True
        await self._deliver(ExecutionSnapshot.of(state, done=True))


class SnapshotStream:
    """Queue-backed subscriber; iterate it to receive snapshots until the done one.

    `close` ends the iteration early, for a producer that stopped without
    delivering its done snapshot.
    """

    def __init__(self):
        self.queue: "asyncio.Queue[Optional[ExecutionSnapshot]]" = asyncio.Queue()

    async def __call__(self, snapshot: ExecutionSnapshot):
        await self.queue.put(snapshot)

    def close(self):
        self.queue.put_nowait(None)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        while True:
            snapshot = await self.queue.get()
            if snapshot is None:
                return
            yield snapshot
            if snapshot.done:
                return
