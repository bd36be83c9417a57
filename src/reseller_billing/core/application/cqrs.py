from __future__ import annotations

import inspect
import math
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar

import structlog

from reseller_billing.adapters.observability.metrics import COMMAND_DURATION
from reseller_billing.core.domain.events.events import DomainEvent
from reseller_billing.core.domain.services.event_dispatcher import EventDispatcher

# ───────────────────────────────────────────────
# CQRS assíncrono com paginação e log de performance
# ───────────────────────────────────────────────

C = TypeVar('C')  # Command type
Q = TypeVar('Q')  # Query filtros type
R = TypeVar('R')  # Query result type
T = TypeVar('T')  # PagedResult item type

logger = structlog.get_logger(__name__)

# ───────────────────────────────────────────────
# DTOs
# ───────────────────────────────────────────────
@dataclass(frozen=True)
class CommandDTO:
    """Base para todos comandos de escrita (Create/Update/Delete)."""
    pass

@dataclass(frozen=True)
class QueryDTO(Generic[Q]):
    """Base para consultas de leitura."""
    filtros: Q | None = None

@dataclass(frozen=True)
class PaginatedQueryDTO(Generic[Q]):
    """Consulta paginada: filtros + paginação."""
    filtros: Q | None = None
    page: int = 1
    page_size: int = 50

@dataclass(frozen=True)
class PagedResult(Generic[T]):
    """Resultado paginado padrão."""
    items: Sequence[T]
    total: int
    page: int
    page_size: int
    total_pages: int = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, 'total_pages', math.ceil(self.total / self.page_size) if self.page_size else 0)

# ───────────────────────────────────────────────
# Handlers Protocols
# ───────────────────────────────────────────────
class CommandHandler(Protocol, Generic[C]):
    async def handle(self, command: C) -> Any:
        """Processa um comando e aplica mudanças de estado."""
        ...

class QueryHandler(Protocol, Generic[Q, R]):
    async def handle(self, query: Q) -> R:
        """Processa uma consulta e retorna um resultado."""
        ...

# ───────────────────────────────────────────────
# Buses com Logging e Métricas
# ───────────────────────────────────────────────
async def _resolve(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class CommandBus:
    """Dispatcher de comandos com medição de performance."""
    def __init__(self) -> None:
        self._handlers: dict[type, CommandHandler] = {}

    def register(self, command_type: type[C], handler: CommandHandler[C]) -> None:
        self._handlers[command_type] = handler
        logger.debug("command_handler.registered", command=command_type.__name__)

    async def dispatch(self, command: C) -> Any:
        handler = self._handlers.get(type(command))
        if not handler:
            raise ValueError(f"Nenhum handler para comando: {type(command).__name__}")
        name = type(command).__name__
        start = time.perf_counter()
        logger.info("command.started", command=name)
        try:
            result = await _resolve(handler.handle(command))
        finally:
            elapsed = time.perf_counter() - start
            COMMAND_DURATION.labels(name).observe(elapsed)
        logger.info("command.finished", command=name, duration=f"{elapsed:.3f}s")
        return result

class QueryBus:
    """Dispatcher de queries com medição e suporte à paginação."""
    def __init__(self) -> None:
        self._handlers: dict[type, QueryHandler] = {}

    def register(self, query_type: type, handler: QueryHandler[Any, Any]) -> None:
        self._handlers[query_type] = handler
        logger.debug("query_handler.registered", query=query_type.__name__)

    async def dispatch(self, query: Any) -> Any:
        handler = self._handlers.get(type(query))
        if not handler:
            raise ValueError(f"Nenhum handler para query: {type(query).__name__}")
        start = time.perf_counter()
        result = await _resolve(handler.handle(query))
        elapsed = time.perf_counter() - start
        logger.info("query.finished", query=type(query).__name__, duration=f"{elapsed:.3f}s")
        return result

class CommandBusImpl(CommandBus):
    """
    CommandBus que publica no dispatcher os eventos devolvidos diretamente
    pelo handler (um DomainEvent ou uma lista deles).
    """
    def __init__(self, dispatcher: EventDispatcher):
        super().__init__()
        self.dispatcher = dispatcher

    async def dispatch(self, command: Any) -> Any:
        result = await super().dispatch(command)
        if isinstance(result, DomainEvent):
            await self.dispatcher.dispatch(result)
        elif isinstance(result, list | tuple) and result and all(isinstance(e, DomainEvent) for e in result):
            for evt in result:
                await self.dispatcher.dispatch(evt)
        return result

class QueryBusImpl(QueryBus):
    pass
