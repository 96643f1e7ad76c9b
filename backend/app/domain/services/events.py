"""
In-process change notification.

Mutating services publish a topic ("tasks" or "settings") after a successful
commit; views that derive data from those topics subscribe and recompute.
"""
import contextlib
from typing import Any, Callable, Dict, List

from app.core.logging import get_logger

logger = get_logger(__name__)

ChangeHandler = Callable[[str, Dict[str, Any]], Any]

TOPIC_TASKS = "tasks"
TOPIC_SETTINGS = "settings"


class ChangeNotifier:
    def __init__(self):
        self._handlers: List[ChangeHandler] = []
        self.published = 0

    def subscribe(self, handler: ChangeHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._handlers.remove(handler)

        return _unsubscribe

    def publish(self, topic: str, **details: Any) -> None:
        self.published += 1
        for handler in list(self._handlers):
            try:
                handler(topic, details)
            except Exception:
                # A broken subscriber must not fail the mutation that already committed.
                logger.exception("Change handler failed", topic=topic)
