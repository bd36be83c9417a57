"""
Gravação dos livros append-only (caixa e créditos vendidos).

Toda escrita aqui é secundária: roda depois que a mudança principal
(expiração, migração, aprovação) já foi confirmada. Falhas são
retentadas e depois viram `PartialWriteWarning`, sem desfazer nada.
"""
from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, TypeVar

import backoff
import structlog
from sqlalchemy.exc import SQLAlchemyError

from reseller_billing.adapters.observability.metrics import PARTIAL_WRITES
from reseller_billing.core.application.policy import BillingPolicy
from reseller_billing.core.domain.entities.ledger_entity import CashMovementEntity, CreditSoldEntity
from reseller_billing.core.domain.events.events import PartialWriteDetectedEvent
from reseller_billing.core.domain.events.exceptions import PartialWriteWarning, ValidationError
from reseller_billing.core.domain.repositories.ledger_repository import LedgerRepository
from reseller_billing.core.domain.services.event_dispatcher import EventDispatcher

T = TypeVar("T")

CASH_TABLE = "cash_movements"
CREDITS_TABLE = "credits_sold"


@dataclass(frozen=True, slots=True)
class LedgerWrite:
    entry: Any = None
    warning: PartialWriteWarning | None = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.warning is None


def months_label(months: int) -> str:
    return f"{months} {'mês' if months == 1 else 'meses'}"


def points_label(points: int) -> str:
    return f"{points} ponto{'s' if points != 1 else ''}"


class LedgerRecorder:
    def __init__(
        self,
        ledger_repo: LedgerRepository,
        dispatcher: EventDispatcher,
        policy: BillingPolicy,
        logger=None,
    ):
        self.ledger_repo = ledger_repo
        self.dispatcher = dispatcher
        self.policy = policy
        self.log = logger or structlog.get_logger(__name__)

    async def guarded(
        self,
        table: str,
        reference: str,
        operation: Callable[[], Awaitable[T]],
        payload: dict[str, Any] | None = None,
    ) -> LedgerWrite:
        """
        Executa uma escrita secundária com retry. Esgotadas as tentativas,
        registra a divergência (log, métrica, evento) e devolve o aviso.
        """
        # backoff só usa o laço async com uma coroutine function
        @backoff.on_exception(
            backoff.expo,
            SQLAlchemyError,
            max_tries=max(1, self.policy.ledger_write_max_tries),
            factor=0.2,
            max_value=2,
        )
        async def attempt() -> T:
            return await operation()

        try:
            entry = await attempt()
        except SQLAlchemyError as exc:
            warning = PartialWriteWarning(table, reference, str(exc))
            self.log.warning(
                "ledger.partial_write",
                table=table,
                reference=reference,
                payload=payload,
                error=str(exc),
            )
            PARTIAL_WRITES.labels(table).inc()
            await self.dispatcher.dispatch(
                PartialWriteDetectedEvent(table=table, reference=reference, error=str(exc))
            )
            return LedgerWrite(warning=warning)
        return LedgerWrite(entry=entry)

    async def record_revenue(
        self, amount: Decimal, description: str, business_date: date, reference: str = ""
    ) -> LedgerWrite:
        """Entrada no caixa; valor zero (concessão promocional) não gera linha."""
        if amount < 0:
            raise ValidationError("Valor de receita não pode ser negativo")
        if amount == 0:
            return LedgerWrite(skipped=True)
        entry = CashMovementEntity(date=business_date, description=description, inflow=amount)
        result = await self.guarded(
            CASH_TABLE,
            reference,
            lambda: self.ledger_repo.append_cash_movement(entry),
            payload={"date": business_date.isoformat(), "description": description, "inflow": str(amount)},
        )
        if result.ok:
            self.log.info("ledger.cash_inflow", reference=reference, amount=str(amount))
        return result

    async def record_outflow(
        self, amount: Decimal, description: str, business_date: date, reference: str = ""
    ) -> LedgerWrite:
        if amount <= 0:
            raise ValidationError("Valor de saída deve ser maior que 0")
        entry = CashMovementEntity(date=business_date, description=description, outflow=amount)
        result = await self.guarded(
            CASH_TABLE,
            reference,
            lambda: self.ledger_repo.append_cash_movement(entry),
            payload={"date": business_date.isoformat(), "description": description, "outflow": str(amount)},
        )
        if result.ok:
            self.log.info("ledger.cash_outflow", reference=reference, amount=str(amount))
        return result

    async def record_credits_sold(  # noqa: PLR0913
        self,
        description: str,
        panel_name: str | None,
        active_slot_count: int,
        duration_months: int,
        business_date: date,
        reference: str = "",
    ) -> LedgerWrite:
        """Sempre uma linha por evento de crédito: quantidade = pontos × meses."""
        quantity = active_slot_count * duration_months
        entry = CreditSoldEntity(
            date=business_date,
            description=description,
            credit_quantity=quantity,
            panel_name=panel_name,
        )
        result = await self.guarded(
            CREDITS_TABLE,
            reference,
            lambda: self.ledger_repo.append_credit_sold(entry),
            payload={"date": business_date.isoformat(), "panel": panel_name, "credit_quantity": quantity},
        )
        if result.ok:
            self.log.info("ledger.credits_sold", reference=reference, credit_quantity=quantity)
        return result
