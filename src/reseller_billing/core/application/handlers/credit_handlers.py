from __future__ import annotations

import uuid
from decimal import ROUND_HALF_UP, Decimal

import structlog

from reseller_billing.adapters.utils.phone_utils import normalize_phone
from reseller_billing.core.application.authorization import require_admin
from reseller_billing.core.application.commands.credit_commands import (
    GrantCreditsCommand,
    GrantOfflineCreditsCommand,
)
from reseller_billing.core.application.cqrs import CommandHandler
from reseller_billing.core.application.dtos.result_dto import CreditGrantResult
from reseller_billing.core.application.services.credit_grant_service import NO_PANEL, CreditGrantService
from reseller_billing.core.application.services.ledger_recorder import LedgerRecorder, months_label, points_label
from reseller_billing.core.domain.entities.client_entity import UserEntity
from reseller_billing.core.domain.entities.recharge_option_entity import RechargeOptionEntity
from reseller_billing.core.domain.entities.transaction_entity import (
    PaymentMethod,
    TransactionEntity,
    TransactionStatus,
    TransactionType,
)
from reseller_billing.core.domain.events.events import PaymentCompletedEvent
from reseller_billing.core.domain.events.exceptions import NotFoundError, ValidationError
from reseller_billing.core.domain.repositories.offline_client_repository import OfflineClientRepository
from reseller_billing.core.domain.repositories.recharge_option_repository import RechargeOptionRepository
from reseller_billing.core.domain.repositories.transaction_repository import TransactionRepository
from reseller_billing.core.domain.repositories.user_repository import UserRepository
from reseller_billing.core.domain.services.event_dispatcher import EventDispatcher

CENT = Decimal("0.01")


def apply_discount(amount: Decimal, discount_type: str | None, discount_value: Decimal | None) -> Decimal:
    """
    percentual: valor × (1 - d/100); fixo: max(0, valor - d).
    """
    amount = Decimal(amount or 0)
    if amount < 0:
        raise ValidationError("Valor pago não pode ser negativo")
    if not discount_type or not discount_value:
        return amount.quantize(CENT)
    discount = Decimal(discount_value)
    if discount < 0:
        raise ValidationError("Desconto não pode ser negativo")
    if discount_type == "percentual":
        if discount > 100:  # noqa: PLR2004
            raise ValidationError("Desconto percentual deve estar entre 0 e 100")
        result = amount * (1 - discount / 100)
    elif discount_type == "fixo":
        result = max(Decimal("0"), amount - discount)
    else:
        raise ValidationError(f"Tipo de desconto inválido: {discount_type}")
    return result.quantize(CENT, rounding=ROUND_HALF_UP)


class GrantCreditsHandler(CommandHandler[GrantCreditsCommand]):
    """
    Concessão manual a cliente online: estende as assinaturas e registra
    caixa, transação de recarga e créditos vendidos.
    """

    def __init__(  # noqa: PLR0913
        self,
        user_repo: UserRepository,
        recharge_option_repo: RechargeOptionRepository,
        transaction_repo: TransactionRepository,
        grant_service: CreditGrantService,
        ledger: LedgerRecorder,
        dispatcher: EventDispatcher,
        logger=None,
    ):
        self.user_repo = user_repo
        self.recharge_option_repo = recharge_option_repo
        self.transaction_repo = transaction_repo
        self.grant_service = grant_service
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.log = logger or structlog.get_logger(__name__)

    async def _resolve_user(self, cmd: GrantCreditsCommand) -> UserEntity:
        user = None
        if cmd.user_id:
            user = await self.user_repo.find_by_id(cmd.user_id)
        elif cmd.email:
            user = await self.user_repo.find_by_email(cmd.email)
        elif cmd.phone:
            user = await self.user_repo.find_by_phone(normalize_phone(cmd.phone) or cmd.phone)
        else:
            raise ValidationError("Informe o ID, email ou telefone do cliente")
        if user is None:
            raise NotFoundError("Cliente não encontrado")
        return user

    async def _resolve_duration(self, cmd: GrantCreditsCommand) -> tuple[int, RechargeOptionEntity | None]:
        option = None
        if cmd.recharge_option_id:
            option = await self.recharge_option_repo.find_by_id(cmd.recharge_option_id)
            if option is None or not option.active:
                raise NotFoundError("Opção de recarga não encontrada ou inativa")
        months = cmd.duration_months if cmd.duration_months is not None else (option.duration_months if option else None)
        if months is None:
            raise ValidationError("Informe durationMonths ou uma opção de recarga")
        if isinstance(months, bool) or not isinstance(months, int) or months <= 0:
            raise ValidationError("durationMonths deve ser um número inteiro maior que 0")
        return months, option

    async def handle(self, cmd: GrantCreditsCommand) -> CreditGrantResult:
        require_admin(cmd.actor)
        user = await self._resolve_user(cmd)
        months, option = await self._resolve_duration(cmd)
        amount = apply_discount(cmd.amount, cmd.discount_type, cmd.discount_value)
        today = self.grant_service.today()

        extension = await self.grant_service.extend_online(user.id, today, months=months)
        points = extension.slot_count
        quantity = points * months

        ledger = await self.grant_service.record_ledgers(
            amount=amount,
            cash_description=cmd.description or f"Assinatura - {user.full_name}",
            credits_description=cmd.description
            or f"Créditos adicionados manualmente - {user.full_name} ({points_label(points)} × {months_label(months)})",
            panel_name=extension.panel_name,
            slot_count=points,
            duration_months=months,
            today=today,
            reference=str(user.id),
        )
        warnings = ledger.warnings

        transaction_id = None
        if amount > 0:
            prefix = f"Recarga de assinatura - {option.display_name} (" if option else "Recarga de assinatura - "
            suffix = ")" if option else ""
            tx = TransactionEntity(
                id=uuid.uuid4(),
                user_id=user.id,
                type=TransactionType.RECHARGE,
                amount=amount,
                status=TransactionStatus.COMPLETED,
                payment_method=PaymentMethod.MANUAL.value,
                description=f"{prefix}{points_label(points)} × {months_label(months)}{suffix}",
                metadata={
                    "recharge_option_id": str(option.id) if option else None,
                    "quantidade_creditos": quantity,
                    "quantidade_pontos": points,
                    "duration_months": months,
                    "original_amount": str(cmd.amount),
                    "discount_type": cmd.discount_type,
                    "discount_value": str(cmd.discount_value) if cmd.discount_value is not None else None,
                    "granted_by": str(cmd.actor.id),
                },
            )
            write = await self.ledger.guarded(
                "transactions",
                str(user.id),
                lambda: self.transaction_repo.create(tx),
                payload={"type": tx.type.value, "amount": str(amount)},
            )
            if write.ok:
                transaction_id = tx.id
            else:
                warnings.append(str(write.warning))

        await self.grant_service.publish_grant(user.id, "online", "manual", quantity, amount)
        if transaction_id is not None:
            await self.dispatcher.dispatch(
                PaymentCompletedEvent(transaction_id=transaction_id, user_id=user.id, amount=amount)
            )

        return CreditGrantResult(
            message=f"{quantity} crédito(s) adicionado(s) a {user.full_name}",
            warnings=warnings,
            client_id=user.id,
            client_kind="online",
            duration_months=months,
            amount=amount,
            credit_quantity=quantity,
            new_expirations=extension.new_expirations,
            transaction_id=transaction_id,
        )


class GrantOfflineCreditsHandler(CommandHandler[GrantOfflineCreditsCommand]):
    def __init__(
        self,
        offline_client_repo: OfflineClientRepository,
        grant_service: CreditGrantService,
        logger=None,
    ):
        self.offline_client_repo = offline_client_repo
        self.grant_service = grant_service
        self.log = logger or structlog.get_logger(__name__)

    async def _resolve_client_id(self, cmd: GrantOfflineCreditsCommand) -> uuid.UUID:
        if cmd.client_id:
            return cmd.client_id
        if not cmd.phone:
            raise ValidationError("clientId ou telefone é obrigatório")
        client = await self.offline_client_repo.find_by_phone(normalize_phone(cmd.phone) or cmd.phone)
        if client is None:
            raise NotFoundError("Cliente offline não encontrado")
        return client.id

    async def handle(self, cmd: GrantOfflineCreditsCommand) -> CreditGrantResult:
        require_admin(cmd.actor)
        amount = apply_discount(cmd.amount, None, None)
        client_id = await self._resolve_client_id(cmd)
        today = self.grant_service.today()

        client, new_date = await self.grant_service.extend_offline(client_id, cmd.duration_months, today)
        months = cmd.duration_months
        logins = len(client.filled_slots)
        plural = "s" if logins != 1 else ""

        ledger = await self.grant_service.record_ledgers(
            amount=amount,
            cash_description=cmd.description or f"Recarga {months_label(months)} - {client.name}",
            credits_description=cmd.description
            or f"Recarga {months_label(months)} - {client.name} ({logins} login{plural})",
            panel_name=cmd.panel_name or client.slot(1).panel_name or NO_PANEL,
            slot_count=logins,
            duration_months=months,
            today=today,
            reference=str(client.id),
        )

        await self.grant_service.publish_grant(client.id, "offline", "manual", ledger.credit_quantity, amount)
        return CreditGrantResult(
            message=f"Créditos adicionados a {client.name}",
            warnings=ledger.warnings,
            client_id=client.id,
            client_kind="offline",
            duration_months=months,
            amount=amount,
            credit_quantity=ledger.credit_quantity,
            new_expirations={client.id: new_date},
        )
