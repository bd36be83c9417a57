from __future__ import annotations

import math

import structlog

from reseller_billing.core.application.authorization import require_system_or_admin
from reseller_billing.core.application.commands.payment_commands import ProcessPaymentNotificationCommand
from reseller_billing.core.application.cqrs import CommandHandler
from reseller_billing.core.application.dtos.result_dto import PaymentNotificationResult
from reseller_billing.core.application.policy import BillingPolicy
from reseller_billing.core.application.services.credit_grant_service import CreditGrantService
from reseller_billing.core.application.services.keyed_lock import KeyedLock
from reseller_billing.core.application.services.ledger_recorder import points_label
from reseller_billing.core.domain.entities.transaction_entity import TransactionStatus
from reseller_billing.core.domain.events.events import PaymentCompletedEvent
from reseller_billing.core.domain.events.exceptions import NotFoundError, ValidationError
from reseller_billing.core.domain.repositories.transaction_repository import TransactionRepository
from reseller_billing.core.domain.repositories.user_repository import UserRepository
from reseller_billing.core.domain.services.event_dispatcher import EventDispatcher
from reseller_billing.core.domain.services.expiration_engine import business_now

GATEWAY_STATUS_MAP: dict[str, TransactionStatus] = {
    "approved": TransactionStatus.COMPLETED,
    "authorized": TransactionStatus.COMPLETED,
    "pending": TransactionStatus.PENDING,
    "in_process": TransactionStatus.PENDING,
    "in_mediation": TransactionStatus.PENDING,
    "rejected": TransactionStatus.FAILED,
    "charged_back": TransactionStatus.FAILED,
    "cancelled": TransactionStatus.CANCELLED,
    "refunded": TransactionStatus.CANCELLED,
}


def map_gateway_status(status: str) -> TransactionStatus:
    """Status desconhecido do gateway é tratado como pendente."""
    return GATEWAY_STATUS_MAP.get((status or "").strip().lower(), TransactionStatus.PENDING)


def _positive_int(value) -> int | None:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


class ProcessPaymentNotificationHandler(CommandHandler[ProcessPaymentNotificationCommand]):
    """
    Aplica a notificação do gateway a uma transação existente.

    Efeitos (extensão, caixa, créditos vendidos, comissão) só acontecem na
    primeira transição para `completed`, garantida por compare-and-set no
    status anterior. A extensão roda antes do compare-and-set, sob a trava
    do pagamento; se ela falhar o status não muda. Notificações repetidas
    não escrevem nada.
    """

    def __init__(  # noqa: PLR0913
        self,
        transaction_repo: TransactionRepository,
        user_repo: UserRepository,
        grant_service: CreditGrantService,
        dispatcher: EventDispatcher,
        policy: BillingPolicy,
        locks: KeyedLock,
        logger=None,
    ):
        self.transaction_repo = transaction_repo
        self.user_repo = user_repo
        self.grant_service = grant_service
        self.dispatcher = dispatcher
        self.policy = policy
        self.locks = locks
        self.log = logger or structlog.get_logger(__name__)

    async def handle(self, cmd: ProcessPaymentNotificationCommand) -> PaymentNotificationResult:
        require_system_or_admin(cmd.actor)
        if not cmd.transaction_id:
            raise ValidationError("Pagamento sem referência externa")
        new_status = map_gateway_status(cmd.gateway_status)

        async with self.locks.hold(("payment", cmd.transaction_id)):
            tx = await self.transaction_repo.find_by_id(cmd.transaction_id)
            if tx is None:
                raise NotFoundError("Transação não encontrada")
            previous = tx.status

            if previous is TransactionStatus.COMPLETED:
                self.log.info("payment.already_completed", transaction_id=str(tx.id))
                return PaymentNotificationResult(
                    message="Transação já processada",
                    transaction_id=tx.id,
                    previous_status=previous.value,
                    new_status=previous.value,
                )

            metadata = {
                **tx.metadata,
                "gateway": {
                    "payment_id": cmd.gateway_payment_id,
                    "status": cmd.gateway_status,
                    "payload": cmd.gateway_payload,
                    "updated_at": business_now(self.policy.business_timezone).isoformat(),
                },
            }
            completing = new_status is TransactionStatus.COMPLETED
            warnings: list[str] = []
            extension = None
            today = self.grant_service.today()
            if completing:
                # erro aqui propaga com o status intacto: o reenvio do gateway refaz tudo
                extension = await self._extend(tx, today, warnings)

            moved = await self.transaction_repo.compare_and_set_status(tx.id, [previous], new_status, metadata)
            if not moved:
                # outro processo mudou o status entre a leitura e a escrita
                self.log.warning(
                    "payment.concurrent_update",
                    transaction_id=str(tx.id),
                    extended=extension is not None,
                )
                return PaymentNotificationResult(
                    message="Transação já processada",
                    transaction_id=tx.id,
                    previous_status=previous.value,
                    new_status=previous.value,
                )

        self.log.info(
            "payment.status_changed",
            transaction_id=str(tx.id),
            previous_status=previous.value,
            new_status=new_status.value,
        )
        if not completing:
            return PaymentNotificationResult(
                message="Status da transação atualizado",
                transaction_id=tx.id,
                previous_status=previous.value,
                new_status=new_status.value,
            )

        return await self._book_completion(tx, previous, extension, today, warnings)

    def _durations(self, tx) -> tuple[int | None, int, int]:
        months = _positive_int(tx.metadata.get("duration_months"))
        days = _positive_int(tx.metadata.get("duration_days")) or self.policy.default_payment_duration_days
        return months, days, months or math.ceil(days / 30)

    async def _extend(self, tx, today, warnings: list[str]):
        months, days, _ = self._durations(tx)
        try:
            if months:
                return await self.grant_service.extend_online(tx.user_id, today, months=months)
            return await self.grant_service.extend_online(tx.user_id, today, days=days)
        except ValidationError as exc:
            # pagamento confirmado sem assinatura creditável: só o caixa é registrado
            warnings.append(exc.message)
            self.log.warning("payment.no_creditable_subscriptions", transaction_id=str(tx.id), user_id=str(tx.user_id))
            return None

    async def _book_completion(  # noqa: PLR0913
        self, tx, previous: TransactionStatus, extension, today, warnings: list[str]
    ) -> PaymentNotificationResult:
        _, _, credit_months = self._durations(tx)
        user = await self.user_repo.find_by_id(tx.user_id)
        user_name = user.full_name if user else "Cliente"
        credit_quantity = 0

        cash = await self.grant_service.ledger.record_revenue(
            tx.amount,
            f"Pagamento Online - {user_name} ({tx.description or 'Recarga'})",
            today,
            reference=str(tx.id),
        )
        if cash.warning:
            warnings.append(str(cash.warning))

        if extension is not None:
            points = extension.slot_count
            credits = await self.grant_service.ledger.record_credits_sold(
                f"Pagamento Online - {user_name} ({points_label(points)})",
                extension.panel_name,
                points,
                credit_months,
                today,
                reference=str(tx.id),
            )
            if credits.warning:
                warnings.append(str(credits.warning))
            credit_quantity = points * credit_months
            await self.grant_service.publish_grant(tx.user_id, "online", "gateway", credit_quantity, tx.amount)

        await self.dispatcher.dispatch(
            PaymentCompletedEvent(transaction_id=tx.id, user_id=tx.user_id, amount=tx.amount)
        )
        return PaymentNotificationResult(
            message="Pagamento confirmado",
            warnings=warnings,
            transaction_id=tx.id,
            previous_status=previous.value,
            new_status=TransactionStatus.COMPLETED.value,
            applied=True,
            credit_quantity=credit_quantity,
        )
