from __future__ import annotations

from decimal import Decimal

import structlog

from reseller_billing.core.application.authorization import require_admin
from reseller_billing.core.application.commands.commission_commands import (
    ApplyCommissionCommand,
    WithdrawCommissionCommand,
)
from reseller_billing.core.application.cqrs import CommandHandler
from reseller_billing.core.application.dtos.result_dto import CommissionResult, CreditGrantResult
from reseller_billing.core.application.services.commission_reconciler import CommissionReconciler, format_brl
from reseller_billing.core.application.services.credit_grant_service import CreditGrantService
from reseller_billing.core.application.services.ledger_recorder import months_label, points_label
from reseller_billing.core.domain.entities.recharge_option_entity import RechargeOptionEntity
from reseller_billing.core.domain.entities.transaction_entity import WithdrawalKind
from reseller_billing.core.domain.events.exceptions import NotFoundError, ValidationError
from reseller_billing.core.domain.repositories.recharge_option_repository import RechargeOptionRepository
from reseller_billing.core.domain.repositories.subscription_repository import SubscriptionRepository
from reseller_billing.core.domain.repositories.user_repository import UserRepository


class ApplyCommissionHandler(CommandHandler[ApplyCommissionCommand]):
    def __init__(self, reconciler: CommissionReconciler, logger=None):
        self.reconciler = reconciler
        self.log = logger or structlog.get_logger(__name__)

    async def handle(self, cmd: ApplyCommissionCommand) -> CommissionResult:
        require_admin(cmd.actor)
        movement = await self.reconciler.apply_commission(
            cmd.referrer_id,
            cmd.amount,
            referred_id=cmd.referred_id,
            source_transaction_id=cmd.source_transaction_id,
            description=cmd.description,
        )
        return CommissionResult(
            message="Comissão já registrada" if movement.duplicate else "Comissão registrada",
            warnings=movement.warnings,
            user_id=cmd.referrer_id,
            transaction_id=movement.transaction.id if movement.transaction else None,
            new_balance=movement.new_balance,
            duplicate=movement.duplicate,
        )


class WithdrawCommissionHandler(CommandHandler[WithdrawCommissionCommand]):
    """
    Débito imediato do saldo de comissão.

    `credit_redemption` com opção de recarga: depois do débito, os meses
    da opção são aplicados às assinaturas como concessão de valor zero
    (linha de créditos vendidos, sem entrada no caixa).
    """

    def __init__(  # noqa: PLR0913
        self,
        reconciler: CommissionReconciler,
        user_repo: UserRepository,
        subscription_repo: SubscriptionRepository,
        recharge_option_repo: RechargeOptionRepository,
        grant_service: CreditGrantService,
        logger=None,
    ):
        self.reconciler = reconciler
        self.user_repo = user_repo
        self.subscription_repo = subscription_repo
        self.recharge_option_repo = recharge_option_repo
        self.grant_service = grant_service
        self.log = logger or structlog.get_logger(__name__)

    async def _load_option(self, cmd: WithdrawCommissionCommand) -> RechargeOptionEntity | None:
        if cmd.recharge_option_id is None:
            return None
        if WithdrawalKind(cmd.kind) is not WithdrawalKind.CREDIT_REDEMPTION:
            raise ValidationError("Opção de recarga só se aplica a resgate em créditos")
        option = await self.recharge_option_repo.find_by_id(cmd.recharge_option_id)
        if option is None or not option.active:
            raise NotFoundError("Opção de recarga não encontrada ou inativa")
        return option

    async def handle(self, cmd: WithdrawCommissionCommand) -> CommissionResult:
        require_admin(cmd.actor)
        user = await self.user_repo.find_by_id(cmd.user_id)
        if user is None:
            raise NotFoundError("Cliente não encontrado")
        option = await self._load_option(cmd)
        if option is not None:
            subs = await self.subscription_repo.list_by_user(user.id)
            if not any(s.is_creditable for s in subs):
                raise ValidationError("Cliente não possui assinaturas ativas para receber créditos")

        metadata = {"recharge_option_id": str(option.id)} if option else {}
        movement = await self.reconciler.withdraw(
            user.id,
            cmd.amount,
            cmd.kind,
            description=cmd.description,
            metadata={**metadata, "processed_by": str(cmd.actor.id)},
        )

        grant = None
        if option is not None:
            grant = await self._grant_option(user, option)

        return CommissionResult(
            message=f"Resgate de {format_brl(abs(movement.transaction.amount))} realizado",
            warnings=grant.warnings if grant else [],
            user_id=user.id,
            transaction_id=movement.transaction.id,
            new_balance=movement.new_balance,
            credit_grant=grant,
        )

    async def _grant_option(self, user, option: RechargeOptionEntity) -> CreditGrantResult:
        today = self.grant_service.today()
        months = option.duration_months
        extension = await self.grant_service.extend_online(user.id, today, months=months)
        points = extension.slot_count
        ledger = await self.grant_service.record_ledgers(
            amount=Decimal("0.00"),
            cash_description=f"Resgate de comissão - {user.full_name}",
            credits_description=(
                f"Resgate de comissão - {user.full_name} ({points_label(points)} × {months_label(months)})"
            ),
            panel_name=extension.panel_name,
            slot_count=points,
            duration_months=months,
            today=today,
            reference=str(user.id),
        )
        await self.grant_service.publish_grant(user.id, "online", "commission", ledger.credit_quantity, Decimal("0.00"))
        return CreditGrantResult(
            message=f"{ledger.credit_quantity} crédito(s) adicionado(s) a {user.full_name}",
            warnings=ledger.warnings,
            client_id=user.id,
            client_kind="online",
            duration_months=months,
            credit_quantity=ledger.credit_quantity,
            new_expirations=extension.new_expirations,
        )
