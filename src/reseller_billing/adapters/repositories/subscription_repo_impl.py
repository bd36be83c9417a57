import uuid
from datetime import date

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncEngine

from reseller_billing.adapters.repositories._helpers import utcnow
from reseller_billing.adapters.repositories.tables import subscriptions
from reseller_billing.core.domain.entities.subscription_entity import SubscriptionEntity, SubscriptionStatus
from reseller_billing.core.domain.repositories.subscription_repository import SubscriptionRepository


class SubscriptionRepoImpl(SubscriptionRepository):
    def __init__(self, engine: AsyncEngine):
        self._engine = engine

    async def list_by_user(self, user_id: uuid.UUID) -> list[SubscriptionEntity]:
        stmt = (
            sa.select(subscriptions)
            .where(subscriptions.c.user_id == user_id)
            .order_by(subscriptions.c.created_at, subscriptions.c.id)
        )
        async with self._engine.connect() as conn:
            rows = (await conn.execute(stmt)).mappings().all()
        return [SubscriptionEntity.from_row(r) for r in rows]

    async def create(self, subscription: SubscriptionEntity) -> SubscriptionEntity:
        now = utcnow()
        subscription.created_at = subscription.created_at or now
        subscription.updated_at = now
        async with self._engine.begin() as conn:
            await conn.execute(subscriptions.insert().values(**subscription.to_dict()))
        return subscription

    async def update_expiration(
        self, subscription_id: uuid.UUID, expiration_date: date, status: SubscriptionStatus = "active"
    ) -> None:
        stmt = (
            subscriptions.update()
            .where(subscriptions.c.id == subscription_id)
            .values(expiration_date=expiration_date, status=status, updated_at=utcnow())
        )
        async with self._engine.begin() as conn:
            await conn.execute(stmt)

    async def delete_by_user(self, user_id: uuid.UUID) -> int:
        async with self._engine.begin() as conn:
            result = await conn.execute(subscriptions.delete().where(subscriptions.c.user_id == user_id))
        return result.rowcount
