"""
In-memory publish/subscribe bus for agent-to-agent requests.

- emit() runs all matching handlers concurrently; one failing handler is logged and
  does not affect delivery to the others.
- target filters subscribers by the source they registered with.
- History is a bounded ring buffer for diagnostics only.
"""
import asyncio
import inspect
import itertools
import logging
import random
import string
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol, Union

from core.config import EVENT_HISTORY_SIZE, EVENT_WAIT_TIMEOUT

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _random_suffix(n: int = 9) -> str:
    return "".join(random.choices(_ID_ALPHABET, k=n))


@dataclass(frozen=True)
class Event:
    id: str
    type: str
    data: dict[str, Any]
    timestamp: float
    source: Optional[str] = None
    target: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "data": self.data,
            "timestamp": self.timestamp,
            "source": self.source,
            "target": self.target,
        }


EventHandler = Callable[[Event], Union[None, Awaitable[None]]]


@dataclass
class EventSubscription:
    id: str
    event_type: str
    handler: EventHandler = field(repr=False)
    source: Optional[str] = None


class EventPublisher(Protocol):
    """What an agent needs from a bus: register handlers and publish events."""

    def subscribe(self, event_type: str, handler: EventHandler, source: Optional[str] = None) -> str:
        ...

    def unsubscribe(self, subscription_id: str) -> bool:
        ...

    async def emit(
        self,
        event_type: str,
        data: dict[str, Any],
        source: Optional[str] = None,
        target: Optional[str] = None,
    ) -> Event:
        ...


class EventBus:
    def __init__(self, max_history_size: int = EVENT_HISTORY_SIZE):
        self._subscribers: dict[str, list[EventSubscription]] = {}
        self._history: deque[Event] = deque(maxlen=max_history_size)
        self._ids = itertools.count(1)

    def subscribe(self, event_type: str, handler: EventHandler, source: Optional[str] = None) -> str:
        sub = EventSubscription(id=f"sub_{next(self._ids)}", event_type=event_type, handler=handler, source=source)
        self._subscribers.setdefault(event_type, []).append(sub)
        logger.debug("EVENT_BUS subscribe id=%s type=%s source=%s", sub.id, event_type, source)
        return sub.id

    def unsubscribe(self, subscription_id: str) -> bool:
        for event_type, subs in list(self._subscribers.items()):
            for i, sub in enumerate(subs):
                if sub.id == subscription_id:
                    del subs[i]
                    if not subs:
                        del self._subscribers[event_type]
                    return True
        return False

    async def emit(
        self,
        event_type: str,
        data: dict[str, Any],
        source: Optional[str] = None,
        target: Optional[str] = None,
    ) -> Event:
        event = Event(
            id=f"event_{int(time.time() * 1000)}_{_random_suffix()}",
            type=event_type,
            data=data,
            timestamp=time.time(),
            source=source,
            target=target,
        )
        self._history.append(event)

        subs = list(self._subscribers.get(event_type, []))
        if target is not None:
            subs = [s for s in subs if s.source == target]
        if subs:
            await asyncio.gather(*(self._deliver(s, event) for s in subs))
        return event

    async def _deliver(self, sub: EventSubscription, event: Event) -> None:
        try:
            result = sub.handler(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("EVENT_BUS handler_failed type=%s subscription=%s", event.type, sub.id)

    def _register_waiter(
        self,
        event_type: str,
        predicate: Optional[Callable[[Event], bool]],
    ) -> tuple["asyncio.Future[Event]", str]:
        """Subscribe synchronously so no event emitted after this call can be missed."""
        future: asyncio.Future[Event] = asyncio.get_running_loop().create_future()

        def _on_event(event: Event) -> None:
            if future.done():
                return
            if predicate is None or predicate(event):
                future.set_result(event)

        return future, self.subscribe(event_type, _on_event)

    async def _await_waiter(
        self,
        future: "asyncio.Future[Event]",
        subscription_id: str,
        event_type: str,
        timeout: float,
    ) -> Event:
        try:
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"Timeout waiting for event: {event_type}") from None
        finally:
            self.unsubscribe(subscription_id)

    async def wait_for_event(
        self,
        event_type: str,
        timeout: float = EVENT_WAIT_TIMEOUT,
        predicate: Optional[Callable[[Event], bool]] = None,
    ) -> Event:
        """First matching event, or TimeoutError. The temporary subscription is always removed."""
        future, sub_id = self._register_waiter(event_type, predicate)
        return await self._await_waiter(future, sub_id, event_type, timeout)

    async def request(
        self,
        request_type: str,
        response_type: str,
        data: dict[str, Any],
        timeout: float = EVENT_WAIT_TIMEOUT,
        source: Optional[str] = None,
    ) -> Event:
        """Emit request_type with a fresh request_id and await the response echoing it."""
        request_id = f"req_{int(time.time() * 1000)}_{_random_suffix()}"
        future, sub_id = self._register_waiter(
            response_type, lambda e: e.data.get("request_id") == request_id,
        )
        try:
            await self.emit(request_type, {**data, "request_id": request_id}, source=source)
        except BaseException:
            self.unsubscribe(sub_id)
            raise
        return await self._await_waiter(future, sub_id, response_type, timeout)

    def get_event_history(self, event_type: Optional[str] = None, limit: Optional[int] = None) -> list[Event]:
        events = [e for e in self._history if event_type is None or e.type == event_type]
        if limit:
            events = events[-limit:]
        return events

    def clear_history(self) -> None:
        self._history.clear()

    def get_subscriptions(self) -> list[EventSubscription]:
        return [s for subs in self._subscribers.values() for s in subs]

    def get_subscription_count(self, event_type: str) -> int:
        return len(self._subscribers.get(event_type, []))

    def get_stats(self) -> dict[str, Any]:
        recent = list(self._history)[-10:]
        return {
            "total_subscriptions": len(self.get_subscriptions()),
            "event_types": list(self._subscribers.keys()),
            "history_size": len(self._history),
            "recent_event_types": list(dict.fromkeys(e.type for e in recent)),
        }
