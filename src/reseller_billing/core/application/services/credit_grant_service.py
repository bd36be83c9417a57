"""
Passos comuns às concessões de crédito (manual, gateway, resgate de comissão).

Ordem fixa: primeiro a extensão das datas (escrita principal, erros
propagam), depois os livros (escritas secundárias, nunca abortam).
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

import structlog

from reseller_billing.adapters.observability.metrics import CREDIT_QUANTITY, CREDITS_GRANTED
from reseller_billing.core.application.policy import BillingPolicy
from reseller_billing.core.application.services.keyed_lock import KeyedLock
from reseller_billing.core.application.services.ledger_recorder import LedgerRecorder, LedgerWrite
from reseller_billing.core.domain.entities.client_entity import OfflineClientEntity
from reseller_billing.core.domain.events.events import CreditsGrantedEvent
from reseller_billing.core.domain.events.exceptions import ConflictError, NotFoundError, ValidationError
from reseller_billing.core.domain.repositories.offline_client_repository import OfflineClientRepository
from reseller_billing.core.domain.repositories.subscription_repository import SubscriptionRepository
from reseller_billing.core.domain.services import expiration_engine
from reseller_billing.core.domain.services.event_dispatcher import EventDispatcher

NO_PANEL = "Não informado"


def client_lock_key(client_id: uuid.UUID) -> tuple[str, uuid.UUID]:
    return ("client", client_id)


@dataclass
class ExtensionOutcome:
    new_expirations: dict[uuid.UUID, date] = field(default_factory=dict)
    panel_name: str | None = None

    @property
    def slot_count(self) -> int:
        return len(self.new_expirations)


@dataclass
class LedgerOutcome:
    writes: list[LedgerWrite] = field(default_factory=list)
    credit_quantity: int = 0

    @property
    def warnings(self) -> list[str]:
        return [str(w.warning) for w in self.writes if w.warning is not None]


class CreditGrantService:
    def __init__(  # noqa: PLR0913
        self,
        subscription_repo: SubscriptionRepository,
        offline_client_repo: OfflineClientRepository,
        ledger: LedgerRecorder,
        dispatcher: EventDispatcher,
        policy: BillingPolicy,
        locks: KeyedLock,
        logger=None,
    ):
        self.subscription_repo = subscription_repo
        self.offline_client_repo = offline_client_repo
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.policy = policy
        self.locks = locks
        self.log = logger or structlog.get_logger(__name__)

    def today(self) -> date:
        return expiration_engine.business_today(self.policy.business_timezone)

    # ------------------------------------------------------------------
    async def extend_online(
        self,
        user_id: uuid.UUID,
        today: date,
        *,
        months: int | None = None,
        days: int | None = None,
    ) -> ExtensionOutcome:
        """
        Estende cada assinatura creditável (ativa ou expirada) a partir da
        própria expiração e a marca como ativa. Canceladas/suspensas ficam
        de fora.
        """
        if (months is None) == (days is None):
            raise ValueError("Informe meses ou dias")
        async with self.locks.hold(client_lock_key(user_id)):
            subscriptions = [s for s in await self.subscription_repo.list_by_user(user_id) if s.is_creditable]
            if not subscriptions:
                raise ValidationError("Cliente não possui assinaturas ativas para receber créditos")

            outcome = ExtensionOutcome(panel_name=subscriptions[0].panel_name)
            for sub in subscriptions:
                if months is not None:
                    new_date = expiration_engine.extend(sub.expiration_date, months, today)
                else:
                    new_date = expiration_engine.extend_by_days(sub.expiration_date, days, today)
                await self.subscription_repo.update_expiration(sub.id, new_date, "active")
                outcome.new_expirations[sub.id] = new_date

        self.log.info(
            "subscriptions.extended",
            user_id=str(user_id),
            subscriptions=outcome.slot_count,
            months=months,
            days=days,
        )
        return outcome

    async def extend_offline(
        self, client_id: uuid.UUID, months: int, today: date
    ) -> tuple[OfflineClientEntity, date]:
        expiration_engine.extend(None, months, today)  # valida a duração antes de qualquer leitura
        async with self.locks.hold(client_lock_key(client_id)):
            client = await self.offline_client_repo.find_by_id(client_id)
            if client is None:
                raise NotFoundError("Cliente offline não encontrado")
            if client.is_migrated:
                raise ConflictError("Cliente offline já foi migrado e não pode mais ser alterado")
            new_date = expiration_engine.extend(client.expiration_date, months, today)
            if not await self.offline_client_repo.update_expiration(client.id, new_date):
                raise ConflictError("Cliente offline já foi migrado e não pode mais ser alterado")

        self.log.info("offline_client.extended", client_id=str(client_id), months=months, new_expiration=str(new_date))
        return client, new_date

    # ------------------------------------------------------------------
    async def record_ledgers(  # noqa: PLR0913
        self,
        *,
        amount: Decimal,
        cash_description: str,
        credits_description: str,
        panel_name: str | None,
        slot_count: int,
        duration_months: int,
        today: date,
        reference: str,
    ) -> LedgerOutcome:
        outcome = LedgerOutcome(credit_quantity=slot_count * duration_months)
        outcome.writes.append(
            await self.ledger.record_revenue(amount, cash_description, today, reference=reference)
        )
        outcome.writes.append(
            await self.ledger.record_credits_sold(
                credits_description, panel_name, slot_count, duration_months, today, reference=reference
            )
        )
        return outcome

    async def publish_grant(  # noqa: PLR0913
        self,
        client_id: uuid.UUID,
        client_kind: str,
        channel: str,
        credit_quantity: int,
        amount: Decimal,
    ) -> None:
        CREDITS_GRANTED.labels(channel).inc()
        CREDIT_QUANTITY.labels(channel).inc(credit_quantity)
        self.log.info(
            "credits.granted",
            client_id=str(client_id),
            client_kind=client_kind,
            channel=channel,
            credit_quantity=credit_quantity,
            amount=str(amount),
        )
        await self.dispatcher.dispatch(
            CreditsGrantedEvent(
                client_id=client_id,
                client_kind=client_kind,
                channel=channel,
                credit_quantity=credit_quantity,
                amount=amount,
            )
        )
