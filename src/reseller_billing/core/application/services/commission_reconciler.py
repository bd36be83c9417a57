"""
Saldo de comissão por indicador.

Invariantes:
- todo débito/crédito no saldo tem exatamente uma transação correspondente;
- o saldo nunca fica negativo (UPDATE condicional no banco);
- saldo == soma das transações de comissão concluídas.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import structlog
from sqlalchemy.exc import IntegrityError

from reseller_billing.adapters.observability.metrics import COMMISSION_MOVEMENTS
from reseller_billing.core.application.policy import BillingPolicy
from reseller_billing.core.application.services.keyed_lock import KeyedLock
from reseller_billing.core.application.services.ledger_recorder import LedgerRecorder
from reseller_billing.core.domain.entities.transaction_entity import (
    PaymentMethod,
    TransactionEntity,
    TransactionStatus,
    TransactionType,
    WithdrawalKind,
)
from reseller_billing.core.domain.events.events import CommissionAppliedEvent, CommissionWithdrawnEvent
from reseller_billing.core.domain.events.exceptions import (
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from reseller_billing.core.domain.repositories.commission_account_repository import (
    CommissionAccountRepository,
)
from reseller_billing.core.domain.repositories.referral_repository import ReferralRepository
from reseller_billing.core.domain.repositories.transaction_repository import TransactionRepository
from reseller_billing.core.domain.services.event_dispatcher import EventDispatcher
from reseller_billing.core.domain.services.expiration_engine import business_now, business_today

CENT = Decimal("0.01")


def format_brl(value: Decimal) -> str:
    """R$ 1.234,50"""
    text = f"{value:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"R$ {text}"


@dataclass(frozen=True, slots=True)
class CommissionMovement:
    transaction: TransactionEntity | None
    new_balance: Decimal
    duplicate: bool = False
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class BalanceAudit:
    user_id: uuid.UUID
    balance: Decimal
    movements_total: Decimal

    @property
    def difference(self) -> Decimal:
        return self.balance - self.movements_total

    @property
    def consistent(self) -> bool:
        return self.difference == 0


def commission_lock_key(user_id: uuid.UUID) -> tuple[str, uuid.UUID]:
    return ("commission", user_id)


class CommissionReconciler:
    def __init__(  # noqa: PLR0913
        self,
        account_repo: CommissionAccountRepository,
        transaction_repo: TransactionRepository,
        referral_repo: ReferralRepository,
        ledger: LedgerRecorder,
        dispatcher: EventDispatcher,
        policy: BillingPolicy,
        locks: KeyedLock,
        logger=None,
    ):
        self.account_repo = account_repo
        self.transaction_repo = transaction_repo
        self.referral_repo = referral_repo
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.policy = policy
        self.locks = locks
        self.log = logger or structlog.get_logger(__name__)

    # ------------------------------------------------------------------
    async def _require_balance(self, user_id: uuid.UUID) -> Decimal:
        balance = await self.account_repo.balance(user_id)
        if balance is None:
            raise NotFoundError("Cliente não encontrado")
        return balance

    async def available_balance(self, user_id: uuid.UUID) -> Decimal:
        """Saldo menos resgates PIX ainda pendentes de aprovação."""
        balance = await self._require_balance(user_id)
        return balance - await self.transaction_repo.sum_pending_payouts(user_id)

    def minimum_for(self, kind: WithdrawalKind) -> Decimal:
        if kind is WithdrawalKind.PIX_PAYOUT:
            return self.policy.pix_min_withdrawal
        return self.policy.credit_min_redemption

    def validate_withdrawal_amount(self, amount: Decimal, kind: WithdrawalKind) -> Decimal:
        if amount is None or amount <= 0:
            raise ValidationError("O valor do resgate deve ser maior que 0")
        amount = Decimal(amount).quantize(CENT)
        minimum = self.minimum_for(kind)
        if amount < minimum:
            channel = "via PIX" if kind is WithdrawalKind.PIX_PAYOUT else "em créditos"
            raise ValidationError(f"O valor mínimo para resgate {channel} é {format_brl(minimum)}")
        return amount

    # ------------------------------------------------------------------
    async def apply_commission(
        self,
        referrer_id: uuid.UUID,
        amount: Decimal,
        *,
        referred_id: uuid.UUID | None = None,
        source_transaction_id: uuid.UUID | None = None,
        description: str | None = None,
    ) -> CommissionMovement:
        if amount is None or amount <= 0:
            raise ValidationError("O valor da comissão deve ser maior que 0")
        amount = Decimal(amount).quantize(CENT)

        async with self.locks.hold(commission_lock_key(referrer_id)):
            if source_transaction_id is not None and await self.transaction_repo.exists_for_source(
                TransactionType.COMMISSION, source_transaction_id
            ):
                self.log.info("commission.duplicate_ignored", source_transaction_id=str(source_transaction_id))
                return CommissionMovement(None, await self._require_balance(referrer_id), duplicate=True)

            tx = TransactionEntity(
                id=uuid.uuid4(),
                user_id=referrer_id,
                type=TransactionType.COMMISSION,
                amount=amount,
                status=TransactionStatus.COMPLETED,
                payment_method=PaymentMethod.COMMISSION.value,
                description=description or "Comissão de indicação",
                metadata={"referred_id": str(referred_id) if referred_id else None},
                source_id=source_transaction_id,
            )
            try:
                new_balance = await self.account_repo.post_movement(tx)
            except IntegrityError:
                if source_transaction_id is None:
                    raise
                # outro processo gravou a comissão desse pagamento primeiro
                self.log.info("commission.duplicate_ignored", source_transaction_id=str(source_transaction_id))
                return CommissionMovement(None, await self._require_balance(referrer_id), duplicate=True)
            if new_balance is None:
                raise NotFoundError("Indicador não encontrado")

        warnings: list[str] = []
        if referred_id is not None:
            today = business_today(self.policy.business_timezone)
            bump = await self.ledger.guarded(
                "referrals",
                str(tx.id),
                lambda: self.referral_repo.record_commission(referrer_id, referred_id, amount, today),
                payload={"referrer_id": str(referrer_id), "amount": str(amount)},
            )
            if bump.warning:
                warnings.append(str(bump.warning))

        COMMISSION_MOVEMENTS.labels("commission").inc()
        self.log.info(
            "commission.applied",
            referrer_id=str(referrer_id),
            amount=str(amount),
            new_balance=str(new_balance),
        )
        await self.dispatcher.dispatch(
            CommissionAppliedEvent(
                referrer_id=referrer_id,
                amount=amount,
                new_balance=new_balance,
                source_transaction_id=source_transaction_id,
            )
        )
        return CommissionMovement(tx, new_balance, warnings=warnings)

    # ------------------------------------------------------------------
    async def withdraw(  # noqa: PLR0913
        self,
        referrer_id: uuid.UUID,
        amount: Decimal,
        kind: WithdrawalKind,
        *,
        status: TransactionStatus = TransactionStatus.COMPLETED,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> CommissionMovement:
        """
        `completed`: débito imediato (resgate em créditos ou pagamento feito
        pelo admin). `pending`: solicitação PIX aguardando aprovação, o
        saldo só é debitado na aprovação.
        """
        kind = WithdrawalKind(kind)
        status = TransactionStatus(status)
        if status not in (TransactionStatus.COMPLETED, TransactionStatus.PENDING):
            raise ValidationError("Status inicial de resgate inválido")
        if status is TransactionStatus.PENDING and kind is not WithdrawalKind.PIX_PAYOUT:
            raise ValidationError("Apenas resgates PIX aguardam aprovação")
        amount = self.validate_withdrawal_amount(amount, kind)

        async with self.locks.hold(commission_lock_key(referrer_id)):
            available = await self.available_balance(referrer_id)
            if amount > available:
                raise InsufficientBalanceError(
                    f"Saldo insuficiente. Disponível: {format_brl(max(available, Decimal('0.00')))}"
                )

            is_pix = kind is WithdrawalKind.PIX_PAYOUT
            tx = TransactionEntity(
                id=uuid.uuid4(),
                user_id=referrer_id,
                type=TransactionType.COMMISSION_PAYOUT if is_pix else TransactionType.COMMISSION_WITHDRAWAL,
                amount=-amount,
                status=status,
                payment_method=(PaymentMethod.PIX if is_pix else PaymentMethod.CREDIT).value,
                description=description
                or (f"Saque PIX - {format_brl(amount)}" if is_pix else f"Resgate em créditos - {format_brl(amount)}"),
                metadata=dict(metadata or {}),
            )

            if status is TransactionStatus.PENDING:
                await self.transaction_repo.create(tx)
                new_balance = await self._require_balance(referrer_id)
            else:
                new_balance = await self.account_repo.post_movement(tx)
                if new_balance is None:
                    raise InsufficientBalanceError("Saldo de comissão insuficiente")

        COMMISSION_MOVEMENTS.labels(kind.value).inc()
        self.log.info(
            "commission.withdrawn",
            referrer_id=str(referrer_id),
            kind=kind.value,
            status=status.value,
            amount=str(amount),
            new_balance=str(new_balance),
        )
        if status is TransactionStatus.COMPLETED:
            await self.dispatcher.dispatch(
                CommissionWithdrawnEvent(
                    referrer_id=referrer_id,
                    transaction_id=tx.id,
                    kind=kind.value,
                    amount=amount,
                    new_balance=new_balance,
                )
            )
        return CommissionMovement(tx, new_balance)

    # ------------------------------------------------------------------
    async def settle_payout(
        self, request: TransactionEntity, metadata: dict[str, Any]
    ) -> CommissionMovement:
        """Aprovação de um resgate pendente: status e saldo mudam juntos."""
        amount = abs(request.amount)
        async with self.locks.hold(commission_lock_key(request.user_id)):
            new_balance = await self.account_repo.settle_payout(request.id, request.user_id, amount, metadata)

        COMMISSION_MOVEMENTS.labels(WithdrawalKind.PIX_PAYOUT.value).inc()
        self.log.info(
            "commission.payout_settled",
            transaction_id=str(request.id),
            referrer_id=str(request.user_id),
            amount=str(amount),
            new_balance=str(new_balance),
        )
        await self.dispatcher.dispatch(
            CommissionWithdrawnEvent(
                referrer_id=request.user_id,
                transaction_id=request.id,
                kind=WithdrawalKind.PIX_PAYOUT.value,
                amount=amount,
                new_balance=new_balance,
            )
        )
        return CommissionMovement(request, new_balance)

    async def audit_balance(self, referrer_id: uuid.UUID) -> BalanceAudit:
        balance = await self._require_balance(referrer_id)
        total = await self.account_repo.sum_commission_movements(referrer_id)
        audit = BalanceAudit(user_id=referrer_id, balance=balance, movements_total=total)
        if not audit.consistent:
            self.log.warning(
                "commission.balance_mismatch",
                referrer_id=str(referrer_id),
                balance=str(balance),
                movements_total=str(total),
            )
        return audit


def approval_timestamp(policy: BillingPolicy) -> str:
    return business_now(policy.business_timezone).isoformat()
