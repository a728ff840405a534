"""Lightweight async event bus for model lifecycle notifications.

Services emit events at key moments (download finished, download failed,
catalog synced). Other components subscribe without the services knowing
about them.

Usage:
    from core.events import on, emit, clear

    async def my_handler(**kwargs):
        print(kwargs)

    on("model.download.completed", my_handler)
    await emit("model.download.completed", model_id="abc", name="llama3.2:1b")
"""

import logging
from typing import Any, Callable, Coroutine

logger = logging.getLogger(__name__)

EventHandler = Callable[..., Coroutine[Any, Any, None]]

MODEL_DOWNLOAD_COMPLETED = "model.download.completed"
MODEL_DOWNLOAD_FAILED = "model.download.failed"
MODELS_SYNCED = "models.synced"

_handlers: dict[str, list[EventHandler]] = {}


def on(event_name: str, handler: EventHandler) -> None:
    """Subscribe to an event."""
    _handlers.setdefault(event_name, []).append(handler)


def off(event_name: str, handler: EventHandler) -> None:
    """Unsubscribe a handler. Unknown handlers are ignored."""
    handlers = _handlers.get(event_name, [])
    if handler in handlers:
        handlers.remove(handler)


async def emit(event_name: str, **kwargs) -> None:
    """Emit an event to all subscribers. Failures are logged, not raised."""
    for handler in list(_handlers.get(event_name, [])):
        try:
            await handler(**kwargs)
        except Exception:
            logger.exception("Event handler failed for '%s'", event_name)


def clear() -> None:
    """Clear all handlers. Used in tests."""
    _handlers.clear()
