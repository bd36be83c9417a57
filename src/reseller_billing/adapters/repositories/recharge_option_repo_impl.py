import uuid

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncEngine

from reseller_billing.adapters.repositories._helpers import money
from reseller_billing.adapters.repositories.tables import recharge_options
from reseller_billing.core.domain.entities.recharge_option_entity import RechargeOptionEntity
from reseller_billing.core.domain.repositories.recharge_option_repository import RechargeOptionRepository


def _to_entity(row) -> RechargeOptionEntity:
    option = RechargeOptionEntity.from_row(row)
    option.price = money(option.price)
    return option


class RechargeOptionRepoImpl(RechargeOptionRepository):
    def __init__(self, engine: AsyncEngine):
        self._engine = engine

    async def find_by_id(self, option_id: uuid.UUID) -> RechargeOptionEntity | None:
        async with self._engine.connect() as conn:
            row = (
                await conn.execute(sa.select(recharge_options).where(recharge_options.c.id == option_id))
            ).mappings().first()
        return _to_entity(row) if row else None

    async def list_active(self) -> list[RechargeOptionEntity]:
        stmt = (
            sa.select(recharge_options)
            .where(recharge_options.c.active.is_(True))
            .order_by(recharge_options.c.duration_months)
        )
        async with self._engine.connect() as conn:
            rows = (await conn.execute(stmt)).mappings().all()
        return [_to_entity(r) for r in rows]

    async def save(self, option: RechargeOptionEntity) -> RechargeOptionEntity:
        values = option.to_dict()
        async with self._engine.begin() as conn:
            exists = (
                await conn.execute(sa.select(recharge_options.c.id).where(recharge_options.c.id == option.id))
            ).first()
            if exists:
                await conn.execute(
                    recharge_options.update().where(recharge_options.c.id == option.id).values(**values)
                )
            else:
                await conn.execute(recharge_options.insert().values(**values))
        return option
