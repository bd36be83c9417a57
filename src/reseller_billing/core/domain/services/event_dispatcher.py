import inspect
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from reseller_billing.core.domain.events.events import DomainEvent

logger = structlog.get_logger(__name__)

EventHandler = Callable[[DomainEvent], Awaitable[Any] | Any]


class EventDispatcher:
    """
    Dispatcher de eventos de domínio.

    Aceita handlers síncronos ou `async`. Falha de um listener é registrada
    e não interrompe os demais nem o comando que publicou o evento.
    """
    def __init__(self) -> None:
        self._subs: dict[type[DomainEvent], list[EventHandler]] = {}

    def subscribe(self, event_type: type[DomainEvent], handler: EventHandler) -> None:
        self._subs.setdefault(event_type, []).append(handler)
        handler_name = getattr(handler, '__name__', handler.__class__.__name__)
        logger.debug(
            "event.subscribed",
            event_type=event_type.__name__,
            handler_name=handler_name,
        )

    async def dispatch(self, event: DomainEvent) -> None:
        handlers = self._subs.get(type(event), [])
        logger.info(
            "event.dispatch",
            event_name=type(event).__name__,
            listeners=len(handlers),
        )
        for h in handlers:
            try:
                result = h(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                handler_name = getattr(h, '__name__', h.__class__.__name__)
                logger.error(
                    "event.handler_error",
                    event_name=type(event).__name__,
                    handler_name=handler_name,
                    error=str(e),
                    exc_info=True,
                )
