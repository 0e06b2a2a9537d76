import asyncio
import inspect
import logging
from typing import Callable, Dict, List, Any, Optional

logger = logging.getLogger(__name__)

# Topics carried by a workspace hub
POINTER_MOVE = "pointer_move"
POINTER_UP = "pointer_up"
POINTER_LEAVE = "pointer_leave"
CONNECTIVITY_CHANGED = "connectivity_changed"


class EventHub:
    """
    Topic based publish/subscribe used for pointer and connectivity notifications.

    One hub is created per workspace; subscribers are expected to unsubscribe
    when they are torn down. Handlers are called as handler(topic, message).
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._subscribers: Dict[str, List[Callable]] = {}
        self._loop = loop

    def subscribe(self, topic: str, handler: Callable):
        handlers = self._subscribers.setdefault(topic, [])
        if handler not in handlers:
            handlers.append(handler)
        logger.debug(f"Subscribed to {topic}")

    def unsubscribe(self, topic: str, handler: Callable):
        handlers = self._subscribers.get(topic)
        if handlers and handler in handlers:
            handlers.remove(handler)
            logger.debug(f"Unsubscribed from {topic}")
            if not handlers:
                del self._subscribers[topic]

    def unsubscribe_all(self):
        self._subscribers.clear()

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, []))

    def send_all_on_topic(self, topic: str, message: Any):
        # Copy: handlers may unsubscribe themselves while being called
        handlers = self._subscribers.get(topic, [])[:]
        for handler in handlers:
            try:
                self._dispatch(handler, topic, message)
            except Exception as e:
                logger.error(f"Error handling message on topic {topic}: {e}")

    def _dispatch(self, handler: Callable, topic: str, message: Any):
        if not inspect.iscoroutinefunction(handler):
            handler(topic, message)
            return

        try:
            current_loop = asyncio.get_running_loop()
        except RuntimeError:
            current_loop = None

        loop = self._loop or current_loop
        if loop is None:
            logger.warning(f"No event loop available. Cannot dispatch async handler for {topic}")
        elif current_loop is loop:
            loop.create_task(handler(topic, message))
        else:
            asyncio.run_coroutine_threadsafe(handler(topic, message), loop)
