"""
Stage-transition notifications

Observers are an observability hook only: they never change control flow, and
an observer that raises is logged and skipped.

Accepted observers:
- plain callables taking the stage label (str), sync or async
- objects with an ``on_stage(event: StageEvent)`` method, sync or async
"""

import asyncio
import inspect
import logging
from typing import Any, AsyncIterator, Iterable, List, Optional

from cropsight.services.pipeline import PipelineStage, StageEvent

logger = logging.getLogger(__name__)


def _dispatch(observer: Any, event: StageEvent) -> Any:
    on_stage = getattr(observer, "on_stage", None)
    if on_stage is not None:
        return on_stage(event)
    return observer(event.label)


class StatusReporter:
    """Fans one StageEvent out to every registered observer"""

    def __init__(self, observers: Iterable[Any] = ()):
        self._observers: List[Any] = [o for o in observers if o is not None]

    @classmethod
    def from_callback(cls, on_status: Any) -> "StatusReporter":
        if isinstance(on_status, StatusReporter):
            return on_status
        if on_status is None:
            return cls()
        if isinstance(on_status, (list, tuple)):
            return cls(on_status)
        return cls([on_status])

    async def publish(self, stage: PipelineStage) -> StageEvent:
        event = StageEvent(stage=stage)
        for observer in list(self._observers):
            try:
                result = _dispatch(observer, event)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Status observer failed on {stage.value}: {e}")
        return event


class StageEventQueue:
    """
    Observer that buffers events for a streaming consumer.

    The producer calls close() when the run ends; iteration stops after the
    buffered events are drained.
    """

    _CLOSED = object()

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def on_stage(self, event: StageEvent) -> None:
        if not self._closed:
            self._queue.put_nowait(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(self._CLOSED)

    async def get(self) -> Optional[StageEvent]:
        """Next event, or None once the queue is closed and drained"""
        item = await self._queue.get()
        if item is self._CLOSED:
            # keep the marker for any other reader
            self._queue.put_nowait(item)
            return None
        return item

    async def __aiter__(self) -> AsyncIterator[StageEvent]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event
