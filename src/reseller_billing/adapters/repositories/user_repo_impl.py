import uuid

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncEngine

from reseller_billing.adapters.repositories._helpers import money, utcnow
from reseller_billing.adapters.repositories.tables import users
from reseller_billing.core.domain.entities.client_entity import UserEntity
from reseller_billing.core.domain.repositories.user_repository import UserRepository


def _to_entity(row) -> UserEntity:
    user = UserEntity.from_row(row)
    user.total_commission = money(user.total_commission)
    return user


class UserRepoImpl(UserRepository):
    def __init__(self, engine: AsyncEngine):
        self._engine = engine

    async def _first(self, where) -> UserEntity | None:
        async with self._engine.connect() as conn:
            row = (await conn.execute(sa.select(users).where(where).limit(1))).mappings().first()
        return _to_entity(row) if row else None

    async def find_by_id(self, user_id: uuid.UUID) -> UserEntity | None:
        return await self._first(users.c.id == user_id)

    async def find_by_email(self, email: str) -> UserEntity | None:
        return await self._first(sa.func.lower(users.c.email) == email.strip().lower())

    async def find_by_phone(self, phone: str) -> UserEntity | None:
        return await self._first(users.c.phone == phone)

    async def find_by_referral_code(self, code: str) -> UserEntity | None:
        return await self._first(users.c.referral_code == code)

    async def create(self, user: UserEntity) -> UserEntity:
        now = utcnow()
        user.created_at = user.created_at or now
        user.updated_at = now
        async with self._engine.begin() as conn:
            await conn.execute(users.insert().values(**user.to_dict()))
        return user

    async def delete(self, user_id: uuid.UUID) -> bool:
        async with self._engine.begin() as conn:
            result = await conn.execute(users.delete().where(users.c.id == user_id))
        return result.rowcount > 0
