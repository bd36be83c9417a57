from __future__ import annotations

import uuid
from typing import Any

import structlog

from reseller_billing.adapters.utils.document_utils import is_valid_cpf, normalize_cpf
from reseller_billing.adapters.utils.phone_utils import normalize_phone
from reseller_billing.core.application.authorization import require_admin
from reseller_billing.core.application.commands.client_commands import (
    CreateOfflineClientCommand,
    DeleteClientCommand,
    DeleteOfflineClientCommand,
    UpdateOfflineClientCommand,
)
from reseller_billing.core.application.cqrs import CommandHandler
from reseller_billing.core.application.dtos.client_dto import CredentialSlotDTO
from reseller_billing.core.application.dtos.result_dto import DeleteClientResult, OfflineClientResult
from reseller_billing.core.application.services.credit_grant_service import client_lock_key
from reseller_billing.core.application.services.keyed_lock import KeyedLock
from reseller_billing.core.domain.entities.client_entity import CredentialSlot, OfflineClientEntity
from reseller_billing.core.domain.events.events import ClientDeletedEvent
from reseller_billing.core.domain.events.exceptions import ConflictError, NotFoundError, ValidationError
from reseller_billing.core.domain.repositories.identity_provider import IdentityProvider
from reseller_billing.core.domain.repositories.offline_client_repository import OfflineClientRepository
from reseller_billing.core.domain.repositories.subscription_repository import SubscriptionRepository
from reseller_billing.core.domain.repositories.transaction_repository import TransactionRepository
from reseller_billing.core.domain.repositories.user_repository import UserRepository
from reseller_billing.core.domain.services.event_dispatcher import EventDispatcher

MIGRATED_READ_ONLY = "Cliente já migrado: o registro offline é mantido apenas como histórico"


def _phone(raw: str) -> str:
    phone = normalize_phone(raw)
    if phone is None:
        raise ValidationError("Telefone inválido")
    return phone


def _cpf(raw: str | None) -> str | None:
    if raw is None:
        return None
    if not is_valid_cpf(raw):
        raise ValidationError("CPF inválido")
    return normalize_cpf(raw)


def _slots(slots: list[CredentialSlotDTO]) -> tuple[CredentialSlot, ...]:
    result = tuple(
        CredentialSlot(panel_name=s.panel_name, username=s.username, password=s.password) for s in slots
    )
    if not any(s.is_filled for s in result):
        raise ValidationError("Informe ao menos um login com usuário e senha")
    return result


class CreateOfflineClientHandler(CommandHandler[CreateOfflineClientCommand]):
    def __init__(self, offline_client_repo: OfflineClientRepository, logger=None):
        self.offline_client_repo = offline_client_repo
        self.log = logger or structlog.get_logger(__name__)

    async def handle(self, cmd: CreateOfflineClientCommand) -> OfflineClientResult:
        require_admin(cmd.actor)
        data = cmd.payload
        client = OfflineClientEntity(
            id=uuid.uuid4(),
            name=data.name,
            phone=_phone(data.phone),
            slots=_slots(data.slots),
            expiration_date=data.expiration_date,
            cpf=_cpf(data.cpf),
            email=str(data.email).lower() if data.email else None,
            contact_id=data.contact_id,
            monthly_value=data.monthly_value,
        )
        await self.offline_client_repo.create(client)
        self.log.info("offline_client.created", client_id=str(client.id), logins=len(client.filled_slots))
        return OfflineClientResult(message="Cliente offline cadastrado", client_id=client.id)


class UpdateOfflineClientHandler(CommandHandler[UpdateOfflineClientCommand]):
    def __init__(self, offline_client_repo: OfflineClientRepository, locks: KeyedLock, logger=None):
        self.offline_client_repo = offline_client_repo
        self.locks = locks
        self.log = logger or structlog.get_logger(__name__)

    def _build_patch(self, cmd: UpdateOfflineClientCommand) -> dict[str, Any]:
        patch = cmd.payload.model_dump(exclude_unset=True)
        if "name" in patch:
            patch["name"] = (patch["name"] or "").strip()
            if not patch["name"]:
                raise ValidationError("Nome é obrigatório")
        if "phone" in patch:
            patch["phone"] = _phone(patch["phone"] or "")
        if "cpf" in patch:
            patch["cpf"] = _cpf(patch["cpf"])
        if "email" in patch and patch["email"]:
            patch["email"] = str(patch["email"]).lower()
        if "slots" in patch:
            patch["slots"] = _slots(cmd.payload.slots or [])
        if "expiration_date" in patch and patch["expiration_date"] is None:
            raise ValidationError("Data de expiração é obrigatória")
        return patch

    async def handle(self, cmd: UpdateOfflineClientCommand) -> OfflineClientResult:
        require_admin(cmd.actor)
        patch = self._build_patch(cmd)
        async with self.locks.hold(client_lock_key(cmd.client_id)):
            client = await self.offline_client_repo.find_by_id(cmd.client_id)
            if client is None:
                raise NotFoundError("Cliente offline não encontrado")
            if client.is_migrated:
                raise ConflictError(MIGRATED_READ_ONLY)
            if patch and not await self.offline_client_repo.update(client.id, patch):
                raise ConflictError(MIGRATED_READ_ONLY)
        self.log.info("offline_client.updated", client_id=str(client.id), fields=sorted(patch))
        return OfflineClientResult(message="Cliente offline atualizado", client_id=client.id)


class DeleteOfflineClientHandler(CommandHandler[DeleteOfflineClientCommand]):
    def __init__(
        self,
        offline_client_repo: OfflineClientRepository,
        dispatcher: EventDispatcher,
        locks: KeyedLock,
        logger=None,
    ):
        self.offline_client_repo = offline_client_repo
        self.dispatcher = dispatcher
        self.locks = locks
        self.log = logger or structlog.get_logger(__name__)

    async def handle(self, cmd: DeleteOfflineClientCommand) -> OfflineClientResult:
        require_admin(cmd.actor)
        async with self.locks.hold(client_lock_key(cmd.client_id)):
            client = await self.offline_client_repo.find_by_id(cmd.client_id)
            if client is None:
                raise NotFoundError("Cliente offline não encontrado")
            if client.is_migrated or not await self.offline_client_repo.delete(client.id):
                raise ConflictError(MIGRATED_READ_ONLY)
        self.log.info("offline_client.deleted", client_id=str(client.id))
        await self.dispatcher.dispatch(
            ClientDeletedEvent(client_id=client.id, client_kind="offline", preserved_transactions=0)
        )
        return OfflineClientResult(message="Cliente offline excluído", client_id=client.id)


class DeleteClientHandler(CommandHandler[DeleteClientCommand]):
    """
    Exclui dados pessoais e assinaturas de um cliente online. Transações,
    caixa e créditos vendidos ficam intactos.
    """

    def __init__(  # noqa: PLR0913
        self,
        user_repo: UserRepository,
        subscription_repo: SubscriptionRepository,
        transaction_repo: TransactionRepository,
        identity_provider: IdentityProvider,
        dispatcher: EventDispatcher,
        locks: KeyedLock,
        logger=None,
    ):
        self.user_repo = user_repo
        self.subscription_repo = subscription_repo
        self.transaction_repo = transaction_repo
        self.identity_provider = identity_provider
        self.dispatcher = dispatcher
        self.locks = locks
        self.log = logger or structlog.get_logger(__name__)

    async def handle(self, cmd: DeleteClientCommand) -> DeleteClientResult:
        require_admin(cmd.actor)
        user = await self.user_repo.find_by_id(cmd.user_id)
        if user is None:
            raise NotFoundError("Cliente não encontrado")

        subscriptions = await self.subscription_repo.list_by_user(user.id)
        transactions = await self.transaction_repo.count_by_user(user.id)
        if cmd.dry_run:
            return DeleteClientResult(
                message=f"Simulação: {len(subscriptions)} assinatura(s) seriam excluídas",
                client_id=user.id,
                dry_run=True,
                subscriptions_deleted=len(subscriptions),
                transactions_preserved=transactions,
            )

        async with self.locks.hold(client_lock_key(user.id)):
            deleted_subs = await self.subscription_repo.delete_by_user(user.id)
            user_deleted = await self.user_repo.delete(user.id)
            await self.identity_provider.delete_identity(user.id)

        self.log.info(
            "client.deleted",
            user_id=str(user.id),
            subscriptions_deleted=deleted_subs,
            transactions_preserved=transactions,
        )
        await self.dispatcher.dispatch(
            ClientDeletedEvent(client_id=user.id, client_kind="online", preserved_transactions=transactions)
        )
        return DeleteClientResult(
            message=f"Cliente {user.full_name} excluído",
            client_id=user.id,
            dry_run=False,
            subscriptions_deleted=deleted_subs,
            transactions_preserved=transactions,
            user_deleted=user_deleted,
        )
