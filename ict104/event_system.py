"""
Application events for the bill acceptor driver.

Engine callbacks run under the engine lock, so anything slow (printing,
accounting, network calls) belongs behind this queue instead. The driver
publishes plain dicts; a consumer task fans them out to handlers.

Event payloads:
    bill_accepted   {"type", "value"}          value is -1 when unmapped
    critical_fault  {"type", "code", "name"}
"""

import asyncio
import inspect
import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Optional, Union


logger = logging.getLogger(__name__)


class AppEventType(str, Enum):
    """Event types put on the application queue."""

    BILL_ACCEPTED = "bill_accepted"
    CRITICAL_FAULT = "critical_fault"


EventKey = Union[AppEventType, str]
EventHandler = Callable[[dict[str, Any]], Any]


class EventPublisher:
    """Puts driver events on an asyncio queue."""

    def __init__(self, event_queue: asyncio.Queue) -> None:
        self.event_queue = event_queue

    async def publish(self, event_type: EventKey, **data: Any) -> None:
        await self.event_queue.put({"type": event_type, **data})

    async def bill_accepted(self, amount: int) -> None:
        """Publish an accepted bill with its mapped denomination."""
        await self.publish(AppEventType.BILL_ACCEPTED, value=amount)

    async def critical_fault(self, code: int, name: str) -> None:
        """Publish a fault that forced the acceptor into reset."""
        await self.publish(AppEventType.CRITICAL_FAULT, code=code, name=name)


class EventConsumer:
    """
    Drains the application queue in a background task.

    Handlers may be plain functions or coroutine functions. A failing
    handler is logged and does not stop the others.

    Attributes:
        event_queue: Queue shared with the publisher.
        handlers: Handlers keyed by event type.
        is_consuming: True while the background task runs.
    """

    def __init__(self, event_queue: asyncio.Queue) -> None:
        self.event_queue = event_queue
        self.handlers: defaultdict[EventKey, list[EventHandler]] = defaultdict(list)
        self.is_consuming = False
        self._task: Optional[asyncio.Task] = None

    def register_handler(self, event_type: EventKey, handler: EventHandler) -> None:
        self.handlers[event_type].append(handler)

    def unregister_handler(self, event_type: EventKey, handler: EventHandler) -> None:
        if handler in self.handlers[event_type]:
            self.handlers[event_type].remove(handler)

    async def process_event(self, event: dict[str, Any]) -> None:
        """
        Dispatch one event to every handler registered for its type.

        Args:
            event: Event dict with a "type" key.
        """
        event_type = event.get("type")
        for handler in list(self.handlers.get(event_type, ())):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Handler error for {event_type}: {e}")

    async def _run(self) -> None:
        while True:
            event = await self.event_queue.get()
            try:
                await self.process_event(event)
            finally:
                self.event_queue.task_done()

    async def start_consuming(self) -> None:
        if self.is_consuming:
            return
        self.is_consuming = True
        self._task = asyncio.create_task(self._run())
        logger.debug("Event consumer started")

    async def stop_consuming(self) -> None:
        """Cancel the background task. Events still queued are left there."""
        self.is_consuming = False
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug("Event consumer stopped")
