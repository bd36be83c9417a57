"""
Migração de cliente offline para conta online.

OFFLINE → MIGRATING → MIGRATED, sem volta. O ponto de commit é a marcação
condicional do registro offline; qualquer falha antes dele desfaz o que
já foi criado (usuário, assinaturas e identidade de login).
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pydantic
import structlog
from sqlalchemy.exc import SQLAlchemyError

from reseller_billing.adapters.observability.metrics import MIGRATIONS
from reseller_billing.core.application.authorization import require_admin
from reseller_billing.core.application.commands.migration_commands import MigrateOfflineClientCommand
from reseller_billing.core.application.cqrs import CommandHandler
from reseller_billing.core.application.dtos.client_dto import MigrationRequestDTO
from reseller_billing.core.application.dtos.result_dto import MigrationResult
from reseller_billing.core.application.policy import BillingPolicy
from reseller_billing.core.application.services.credential_generator import (
    generate_temp_password,
    generate_unique_referral_code,
)
from reseller_billing.core.application.services.credit_grant_service import client_lock_key
from reseller_billing.core.application.services.keyed_lock import KeyedLock
from reseller_billing.core.application.services.ledger_recorder import LedgerRecorder
from reseller_billing.core.domain.entities.client_entity import (
    MAX_CREDENTIAL_SLOTS,
    MigrationState,
    OfflineClientEntity,
    UserEntity,
)
from reseller_billing.core.domain.entities.subscription_entity import SubscriptionEntity
from reseller_billing.core.domain.events.events import OfflineClientMigratedEvent
from reseller_billing.core.domain.events.exceptions import ConflictError, NotFoundError, ValidationError
from reseller_billing.core.domain.repositories.identity_provider import IdentityProvider
from reseller_billing.core.domain.repositories.offline_client_repository import OfflineClientRepository
from reseller_billing.core.domain.repositories.subscription_repository import SubscriptionRepository
from reseller_billing.core.domain.repositories.user_repository import UserRepository
from reseller_billing.core.domain.services.event_dispatcher import EventDispatcher
from reseller_billing.core.domain.services.expiration_engine import business_today
from reseller_billing.core.domain.services.status_classifier import ClientStatus, classify_status


def validate_email(email: str | None) -> str:
    try:
        return str(MigrationRequestDTO(email=(email or "").strip()).email).lower()
    except pydantic.ValidationError as exc:
        raise ValidationError("Email inválido") from exc


def build_subscriptions(
    client: OfflineClientEntity, user_id: uuid.UUID, status: ClientStatus
) -> list[SubscriptionEntity]:
    """Uma assinatura por slot preenchido; slots 2 e 3 herdam o painel do slot 1."""
    main_panel = client.slot(1).panel_name
    subs = []
    for position in range(1, MAX_CREDENTIAL_SLOTS + 1):
        slot = client.slot(position)
        if not slot.is_filled:
            continue
        subs.append(
            SubscriptionEntity(
                id=uuid.uuid4(),
                user_id=user_id,
                app_username=slot.username.strip(),
                app_password=slot.password.strip(),
                status=status.value,
                panel_name=slot.panel_name or main_panel,
                expiration_date=client.expiration_date,
                monthly_value=client.monthly_value,
            )
        )
    return subs


class MigrateOfflineClientHandler(CommandHandler[MigrateOfflineClientCommand]):
    def __init__(  # noqa: PLR0913
        self,
        offline_client_repo: OfflineClientRepository,
        user_repo: UserRepository,
        subscription_repo: SubscriptionRepository,
        identity_provider: IdentityProvider,
        ledger: LedgerRecorder,
        dispatcher: EventDispatcher,
        policy: BillingPolicy,
        locks: KeyedLock,
        logger=None,
    ):
        self.offline_client_repo = offline_client_repo
        self.user_repo = user_repo
        self.subscription_repo = subscription_repo
        self.identity_provider = identity_provider
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.policy = policy
        self.locks = locks
        self.log = logger or structlog.get_logger(__name__)

    async def _check_preconditions(self, client_id: uuid.UUID, email: str) -> OfflineClientEntity:
        client = await self.offline_client_repo.find_by_id(client_id)
        if client is None:
            raise NotFoundError("Cliente offline não encontrado")
        if client.is_migrated:
            raise ConflictError("Este cliente já foi migrado")
        if await self.user_repo.find_by_email(email) or await self.identity_provider.email_exists(email):
            raise ConflictError("Este email já está cadastrado no sistema")
        return client

    async def _referral_code_taken(self, code: str) -> bool:
        return await self.user_repo.find_by_referral_code(code) is not None

    async def handle(self, cmd: MigrateOfflineClientCommand) -> MigrationResult:
        require_admin(cmd.actor)
        email = validate_email(cmd.email)

        async with self.locks.hold(client_lock_key(cmd.offline_client_id)):
            try:
                client = await self._check_preconditions(cmd.offline_client_id, email)
            except ConflictError:
                MIGRATIONS.labels("rejected").inc()
                raise
            return await self._migrate(client, email, cmd)

    async def _migrate(
        self, client: OfflineClientEntity, email: str, cmd: MigrateOfflineClientCommand
    ) -> MigrationResult:
        log = self.log.bind(offline_client_id=str(client.id))
        log.info("migration.started", state=MigrationState.MIGRATING.value)

        temp_password = generate_temp_password(self.policy.temp_password_length)
        identity_id = await self.identity_provider.provision_identity(
            email,
            temp_password,
            {"full_name": client.name, "migrated_from_offline_client": str(client.id)},
        )

        user_created = False
        warnings: list[str] = []
        subscriptions_created = 0
        try:
            referral_code = await generate_unique_referral_code(
                self._referral_code_taken,
                length=self.policy.referral_code_length,
                max_attempts=self.policy.referral_code_max_attempts,
            )
            user = UserEntity(
                id=identity_id,
                full_name=client.name,
                email=email,
                phone=client.phone,
                cpf=client.cpf,
                referral_code=referral_code,
                contact_id=client.contact_id,
                created_at=client.created_at,
            )
            await self.user_repo.create(user)
            user_created = True

            status = classify_status(client.expiration_date, business_today(self.policy.business_timezone))
            for sub in build_subscriptions(client, user.id, status):
                write = await self.ledger.guarded(
                    "subscriptions",
                    str(client.id),
                    lambda sub=sub: self.subscription_repo.create(sub),
                    payload={"panel": sub.panel_name, "username": sub.app_username},
                )
                if write.ok:
                    subscriptions_created += 1
                else:
                    warnings.append(str(write.warning))

            # ponto de commit
            committed = await self.offline_client_repo.mark_migrated(
                client.id, user.id, datetime.now(timezone.utc)
            )
            if not committed:
                raise ConflictError("Este cliente já foi migrado")
        except Exception as exc:
            await self._compensate(identity_id, user_created, log)
            MIGRATIONS.labels("failed").inc()
            log.error("migration.failed", error=str(exc), state=MigrationState.OFFLINE.value)
            raise

        MIGRATIONS.labels("migrated").inc()
        log.info(
            "migration.committed",
            state=MigrationState.MIGRATED.value,
            user_id=str(user.id),
            subscriptions_created=subscriptions_created,
        )
        await self.dispatcher.dispatch(
            OfflineClientMigratedEvent(
                offline_client_id=client.id,
                user_id=user.id,
                subscriptions_created=subscriptions_created,
            )
        )
        return MigrationResult(
            message=f"Cliente {client.name} migrado com sucesso",
            warnings=warnings,
            new_account_id=user.id,
            temporary_credential=temp_password,
            referral_code=referral_code,
            subscriptions_created=subscriptions_created,
        )

    async def _compensate(self, identity_id: uuid.UUID, user_created: bool, log) -> None:
        """Remove assinaturas, usuário e identidade criados nesta tentativa."""
        try:
            if user_created:
                await self.subscription_repo.delete_by_user(identity_id)
                await self.user_repo.delete(identity_id)
            await self.identity_provider.delete_identity(identity_id)
            log.warning("migration.compensated", identity_id=str(identity_id), user_deleted=user_created)
        except SQLAlchemyError as exc:
            log.error("migration.compensation_failed", identity_id=str(identity_id), error=str(exc), exc_info=True)
