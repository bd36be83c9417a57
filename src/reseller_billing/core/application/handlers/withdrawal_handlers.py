from __future__ import annotations

import structlog

from reseller_billing.adapters.observability.metrics import WITHDRAWALS
from reseller_billing.core.application.authorization import require_admin, require_owner_or_admin
from reseller_billing.core.application.commands.withdrawal_commands import (
    ApproveWithdrawalCommand,
    RejectWithdrawalCommand,
    RequestPixWithdrawalCommand,
)
from reseller_billing.core.application.cqrs import CommandHandler
from reseller_billing.core.application.dtos.result_dto import WithdrawalResult
from reseller_billing.core.application.policy import BillingPolicy
from reseller_billing.core.application.services.commission_reconciler import (
    CommissionReconciler,
    approval_timestamp,
    format_brl,
)
from reseller_billing.core.application.services.keyed_lock import KeyedLock
from reseller_billing.core.application.services.ledger_recorder import LedgerRecorder
from reseller_billing.core.domain.entities.transaction_entity import (
    TransactionEntity,
    TransactionStatus,
    TransactionType,
    WithdrawalKind,
)
from reseller_billing.core.domain.events.events import (
    WithdrawalApprovedEvent,
    WithdrawalRejectedEvent,
    WithdrawalRequestedEvent,
)
from reseller_billing.core.domain.events.exceptions import ConflictError, NotFoundError, ValidationError
from reseller_billing.core.domain.repositories.transaction_repository import TransactionRepository
from reseller_billing.core.domain.repositories.user_repository import UserRepository
from reseller_billing.core.domain.services.event_dispatcher import EventDispatcher
from reseller_billing.core.domain.services.expiration_engine import business_today

ALREADY_PROCESSED = "Esta solicitação já foi processada"


def _required_text(value: str | None, message: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(message)
    return value


def withdrawal_lock_key(transaction_id) -> tuple[str, object]:
    return ("withdrawal", transaction_id)


class RequestPixWithdrawalHandler(CommandHandler[RequestPixWithdrawalCommand]):
    """Solicitação de saque PIX pelo próprio indicador; fica pendente até a aprovação."""

    def __init__(self, reconciler: CommissionReconciler, dispatcher: EventDispatcher, policy: BillingPolicy, logger=None):
        self.reconciler = reconciler
        self.dispatcher = dispatcher
        self.policy = policy
        self.log = logger or structlog.get_logger(__name__)

    async def handle(self, cmd: RequestPixWithdrawalCommand) -> WithdrawalResult:
        require_owner_or_admin(cmd.actor, cmd.user_id)
        pix_key = _required_text(cmd.pix_key, "Chave PIX é obrigatória")
        movement = await self.reconciler.withdraw(
            cmd.user_id,
            cmd.amount,
            WithdrawalKind.PIX_PAYOUT,
            status=TransactionStatus.PENDING,
            metadata={"pix_key": pix_key, "requested_at": approval_timestamp(self.policy)},
        )
        tx = movement.transaction
        WITHDRAWALS.labels("requested").inc()
        await self.dispatcher.dispatch(
            WithdrawalRequestedEvent(transaction_id=tx.id, user_id=tx.user_id, amount=abs(tx.amount))
        )
        return WithdrawalResult(
            message="Solicitação de saque enviada para aprovação",
            transaction_id=tx.id,
            status=tx.status.value,
            new_balance=movement.new_balance,
        )


class _PendingWithdrawalMixin:
    transaction_repo: TransactionRepository

    async def _load_pending(self, transaction_id) -> TransactionEntity:
        tx = await self.transaction_repo.find_by_id(transaction_id)
        if tx is None or tx.type is not TransactionType.COMMISSION_PAYOUT:
            raise NotFoundError("Solicitação de saque não encontrada")
        if not tx.is_pending:
            WITHDRAWALS.labels("conflict").inc()
            raise ConflictError(ALREADY_PROCESSED)
        return tx


class ApproveWithdrawalHandler(_PendingWithdrawalMixin, CommandHandler[ApproveWithdrawalCommand]):
    """
    pending → completed. Status e débito do saldo são gravados juntos;
    a linha de saída no caixa vem depois e não é fatal.
    """

    def __init__(  # noqa: PLR0913
        self,
        transaction_repo: TransactionRepository,
        user_repo: UserRepository,
        reconciler: CommissionReconciler,
        ledger: LedgerRecorder,
        dispatcher: EventDispatcher,
        policy: BillingPolicy,
        locks: KeyedLock,
        logger=None,
    ):
        self.transaction_repo = transaction_repo
        self.user_repo = user_repo
        self.reconciler = reconciler
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.policy = policy
        self.locks = locks
        self.log = logger or structlog.get_logger(__name__)

    async def handle(self, cmd: ApproveWithdrawalCommand) -> WithdrawalResult:
        require_admin(cmd.actor)
        pix_key = _required_text(cmd.pix_key, "Chave PIX é obrigatória")

        async with self.locks.hold(withdrawal_lock_key(cmd.transaction_id)):
            tx = await self._load_pending(cmd.transaction_id)
            metadata = {
                **tx.metadata,
                "pix_key": pix_key,
                "admin_notes": (cmd.notes or "").strip() or None,
                "approved_by": str(cmd.actor.id),
                "approved_at": approval_timestamp(self.policy),
            }
            movement = await self.reconciler.settle_payout(tx, metadata)

        amount = abs(tx.amount)
        user = await self.user_repo.find_by_id(tx.user_id)
        name = user.full_name if user else str(tx.user_id)
        outflow = await self.ledger.record_outflow(
            amount,
            f"Saque PIX - {name} ({pix_key})",
            business_today(self.policy.business_timezone),
            reference=str(tx.id),
        )

        WITHDRAWALS.labels("approved").inc()
        self.log.info("withdrawal.approved", transaction_id=str(tx.id), amount=str(amount))
        await self.dispatcher.dispatch(
            WithdrawalApprovedEvent(
                transaction_id=tx.id, user_id=tx.user_id, amount=amount, approved_by=cmd.actor.id
            )
        )
        return WithdrawalResult(
            message=f"Saque de {format_brl(amount)} aprovado",
            warnings=[str(outflow.warning)] if outflow.warning else [],
            transaction_id=tx.id,
            status=TransactionStatus.COMPLETED.value,
            new_balance=movement.new_balance,
        )


class RejectWithdrawalHandler(_PendingWithdrawalMixin, CommandHandler[RejectWithdrawalCommand]):
    """pending → cancelled, sem mexer no saldo."""

    def __init__(
        self,
        transaction_repo: TransactionRepository,
        dispatcher: EventDispatcher,
        policy: BillingPolicy,
        locks: KeyedLock,
        logger=None,
    ):
        self.transaction_repo = transaction_repo
        self.dispatcher = dispatcher
        self.policy = policy
        self.locks = locks
        self.log = logger or structlog.get_logger(__name__)

    async def handle(self, cmd: RejectWithdrawalCommand) -> WithdrawalResult:
        require_admin(cmd.actor)
        notes = _required_text(cmd.notes, "Informe o motivo da rejeição")

        async with self.locks.hold(withdrawal_lock_key(cmd.transaction_id)):
            tx = await self._load_pending(cmd.transaction_id)
            metadata = {
                **tx.metadata,
                "admin_notes": notes,
                "approved_by": str(cmd.actor.id),
                "approved_at": approval_timestamp(self.policy),
            }
            moved = await self.transaction_repo.compare_and_set_status(
                tx.id, [TransactionStatus.PENDING], TransactionStatus.CANCELLED, metadata
            )
            if not moved:
                WITHDRAWALS.labels("conflict").inc()
                raise ConflictError(ALREADY_PROCESSED)

        WITHDRAWALS.labels("rejected").inc()
        self.log.info("withdrawal.rejected", transaction_id=str(tx.id))
        await self.dispatcher.dispatch(
            WithdrawalRejectedEvent(transaction_id=tx.id, user_id=tx.user_id, notes=notes)
        )
        return WithdrawalResult(
            message="Saque rejeitado",
            transaction_id=tx.id,
            status=TransactionStatus.CANCELLED.value,
        )
