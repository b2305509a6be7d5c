"""Async event bus for submission outcomes, backed by asyncio.Queue.

Events: ``ReportCreated`` (payload: session_id, report) and
``ReportConfirmed`` (payload: session_id, report_id, user_id).
"""
import asyncio
import logging
from collections import defaultdict
from typing import Any, Callable, Coroutine

logger = logging.getLogger(__name__)

REPORT_CREATED = "ReportCreated"
REPORT_CONFIRMED = "ReportConfirmed"

EventPayload = dict[str, Any]
EventHandler = Callable[[EventPayload], Coroutine[Any, Any, None]]

_handlers: dict[str, list[EventHandler]] = defaultdict(list)
_queue: asyncio.Queue[tuple[str, EventPayload]] | None = None
_dispatcher_task: asyncio.Task | None = None


def on(event_name: str) -> Callable[[EventHandler], EventHandler]:
    """Decorator to register an event handler."""

    def decorator(handler: EventHandler) -> EventHandler:
        if handler not in _handlers[event_name]:
            _handlers[event_name].append(handler)
        return handler

    return decorator


def clear_handlers() -> None:
    _handlers.clear()


def is_running() -> bool:
    return _dispatcher_task is not None and not _dispatcher_task.done()


async def emit(event_name: str, payload: EventPayload) -> None:
    """Queue an event. Dropped when the bus is not running."""
    if _queue is not None:
        await _queue.put((event_name, payload))
    else:
        logger.debug("Event bus not running, dropping %s", event_name)


async def dispatch(event_name: str, payload: EventPayload) -> None:
    """Run every handler for one event; a failing handler never stops the others."""
    for h in _handlers.get(event_name, []):
        try:
            await h(payload)
        except Exception as e:
            logger.exception("Event handler %s failed for %s: %s", h.__name__, event_name, e)


async def _dispatch_loop() -> None:
    assert _queue is not None
    while True:
        try:
            event_name, payload = await _queue.get()
            await dispatch(event_name, payload)
            _queue.task_done()
        except asyncio.CancelledError:
            break
        except Exception:
            logger.exception("Dispatch loop error")


async def start_event_bus() -> None:
    """Start the event bus dispatcher."""
    global _queue, _dispatcher_task
    _queue = asyncio.Queue()
    _dispatcher_task = asyncio.create_task(_dispatch_loop())
    logger.info("Event bus started")


async def drain() -> None:
    """Wait until every queued event has been dispatched."""
    if _queue is not None:
        await _queue.join()


async def stop_event_bus() -> None:
    """Stop the event bus dispatcher."""
    global _queue, _dispatcher_task
    if _dispatcher_task:
        _dispatcher_task.cancel()
        try:
            await _dispatcher_task
        except asyncio.CancelledError:
            pass
        _dispatcher_task = None
    _queue = None
    logger.info("Event bus stopped")
