import uuid
from datetime import date
from decimal import Decimal

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncEngine

from reseller_billing.adapters.repositories._helpers import money, utcnow
from reseller_billing.adapters.repositories.tables import referrals
from reseller_billing.core.domain.entities.referral_entity import ReferralEntity
from reseller_billing.core.domain.repositories.referral_repository import ReferralRepository


def _to_entity(row) -> ReferralEntity:
    referral = ReferralEntity.from_row(row)
    referral.total_commission_earned = money(referral.total_commission_earned)
    return referral


class ReferralRepoImpl(ReferralRepository):
    def __init__(self, engine: AsyncEngine):
        self._engine = engine

    async def find_by_referred(self, referred_id: uuid.UUID) -> ReferralEntity | None:
        async with self._engine.connect() as conn:
            row = (
                await conn.execute(sa.select(referrals).where(referrals.c.referred_id == referred_id))
            ).mappings().first()
        return _to_entity(row) if row else None

    async def create(self, referral: ReferralEntity) -> ReferralEntity:
        referral.created_at = referral.created_at or utcnow()
        async with self._engine.begin() as conn:
            await conn.execute(referrals.insert().values(**referral.to_dict()))
        return referral

    async def record_commission(
        self, referrer_id: uuid.UUID, referred_id: uuid.UUID, amount: Decimal, on_date: date
    ) -> bool:
        stmt = (
            referrals.update()
            .where(referrals.c.referrer_id == referrer_id, referrals.c.referred_id == referred_id)
            .values(
                total_commission_earned=referrals.c.total_commission_earned + amount,
                last_commission_date=on_date,
            )
        )
        async with self._engine.begin() as conn:
            result = await conn.execute(stmt)
        return result.rowcount == 1

    async def list_by_referrer(self, referrer_id: uuid.UUID) -> list[ReferralEntity]:
        stmt = sa.select(referrals).where(referrals.c.referrer_id == referrer_id).order_by(referrals.c.created_at)
        async with self._engine.connect() as conn:
            rows = (await conn.execute(stmt)).mappings().all()
        return [_to_entity(r) for r in rows]
