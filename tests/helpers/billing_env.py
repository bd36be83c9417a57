"""
Ambiente de teste: container completo sobre SQLite em memória.

Cada teste ganha banco, container e event loop próprios.
"""
from __future__ import annotations

import unittest
import uuid
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, patch

from sqlalchemy.exc import OperationalError

from config import settings
from reseller_billing.adapters.config.composition_root import (
    reset_container,
    setup_di_container_from_settings,
)
from reseller_billing.adapters.repositories.tables import build_engine, create_schema
from reseller_billing.core.application.authorization import Actor
from reseller_billing.core.application.policy import BillingPolicy
from reseller_billing.core.domain.entities.client_entity import (
    CredentialSlot,
    OfflineClientEntity,
    UserEntity,
)
from reseller_billing.core.domain.entities.recharge_option_entity import RechargeOptionEntity
from reseller_billing.core.domain.entities.referral_entity import ReferralEntity
from reseller_billing.core.domain.entities.subscription_entity import SubscriptionEntity
from reseller_billing.core.domain.entities.transaction_entity import (
    PaymentMethod,
    TransactionEntity,
    TransactionStatus,
    TransactionType,
)
from reseller_billing.core.domain.services.expiration_engine import business_today

# sem retry: falhas injetadas viram aviso na primeira tentativa
TEST_POLICY = BillingPolicy(ledger_write_max_tries=1)


def db_failure(message: str = "database is locked") -> OperationalError:
    return OperationalError("INSERT", {}, Exception(message))


def failing(obj, method: str, message: str = "database is locked"):
    """Patch de um método async do repositório que sempre falha com erro de banco."""
    return patch.object(obj, method, new=AsyncMock(side_effect=db_failure(message)))


class BillingTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        reset_container()
        self.engine = build_engine("sqlite+aiosqlite:///:memory:")
        await create_schema(self.engine)
        self.policy = TEST_POLICY
        self.container = setup_di_container_from_settings(settings, engine=self.engine, policy=self.policy)
        self.bus = self.container.command_bus()
        self.queries = self.container.query_bus()
        self.admin = Actor.admin(uuid.uuid4())
        self.today = business_today(self.policy.business_timezone)

    async def asyncTearDown(self):
        await self.engine.dispose()
        reset_container()

    # ─── seeds ────────────────────────────────────────────────────
    async def seed_user(
        self,
        name: str = "Maria Souza",
        email: str | None = None,
        phone: str | None = "5511987654321",
        total_commission: Decimal = Decimal("0.00"),
        referred_by: uuid.UUID | None = None,
    ) -> UserEntity:
        user = UserEntity(
            id=uuid.uuid4(),
            full_name=name,
            email=email or f"{uuid.uuid4().hex[:10]}@gmail.com",
            phone=phone,
            total_commission=total_commission,
            referred_by=referred_by,
        )
        return await self.container.user_repo().create(user)

    async def seed_subscription(
        self,
        user_id: uuid.UUID,
        expiration: date | None,
        status: str = "active",
        panel: str | None = "P2Brasil",
    ) -> SubscriptionEntity:
        sub = SubscriptionEntity(
            id=uuid.uuid4(),
            user_id=user_id,
            app_username=f"user{uuid.uuid4().hex[:6]}",
            app_password="s3nha",
            status=status,
            panel_name=panel,
            expiration_date=expiration,
        )
        return await self.container.subscription_repo().create(sub)

    async def seed_offline_client(
        self,
        name: str = "João Pereira",
        phone: str = "5521998765432",
        logins: int = 2,
        expiration: date | None = None,
        panel: str | None = "Uniplay",
    ) -> OfflineClientEntity:
        slots = tuple(
            CredentialSlot(panel_name=panel if pos == 0 else None, username=f"joao{pos}", password=f"pw{pos}")
            for pos in range(logins)
        )
        client = OfflineClientEntity(
            id=uuid.uuid4(),
            name=name,
            phone=phone,
            slots=slots,
            expiration_date=expiration,
            monthly_value=Decimal("30.00"),
        )
        return await self.container.offline_client_repo().create(client)

    async def seed_referral(self, referrer_id: uuid.UUID, referred_id: uuid.UUID) -> ReferralEntity:
        referral = ReferralEntity(id=uuid.uuid4(), referrer_id=referrer_id, referred_id=referred_id)
        return await self.container.referral_repo().create(referral)

    async def seed_recharge_option(self, months: int = 3, price: Decimal = Decimal("90.00"), active: bool = True):
        option = RechargeOptionEntity(
            id=uuid.uuid4(),
            display_name=f"Plano {months} meses",
            duration_months=months,
            price=price,
            active=active,
        )
        return await self.container.recharge_option_repo().save(option)

    async def seed_payment(
        self,
        user_id: uuid.UUID,
        amount: Decimal = Decimal("30.00"),
        status: TransactionStatus = TransactionStatus.PENDING,
        metadata: dict | None = None,
    ) -> TransactionEntity:
        tx = TransactionEntity(
            id=uuid.uuid4(),
            user_id=user_id,
            type=TransactionType.SUBSCRIPTION,
            amount=amount,
            status=status,
            payment_method=PaymentMethod.GATEWAY.value,
            description="Plano Mensal",
            metadata=metadata or {},
        )
        return await self.container.transaction_repo().create(tx)

    # ─── leituras ─────────────────────────────────────────────────
    async def cash_rows(self):
        return await self.container.ledger_repo().list_cash_movements()

    async def credit_rows(self):
        return await self.container.ledger_repo().list_credits_sold()

    async def balance(self, user_id: uuid.UUID) -> Decimal | None:
        return await self.container.account_repo().balance(user_id)
