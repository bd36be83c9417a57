import uuid
from datetime import date, datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncEngine

from reseller_billing.adapters.repositories._helpers import utcnow
from reseller_billing.adapters.repositories.tables import offline_clients
from reseller_billing.core.domain.entities.client_entity import (
    MAX_CREDENTIAL_SLOTS,
    CredentialSlot,
    OfflineClientEntity,
)
from reseller_billing.core.domain.repositories.offline_client_repository import OfflineClientRepository

_PLAIN_FIELDS = (
    "name", "phone", "email", "cpf", "contact_id", "monthly_value", "expiration_date",
)


def _slot_columns(slots: tuple[CredentialSlot, ...]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for pos in range(1, MAX_CREDENTIAL_SLOTS + 1):
        slot = slots[pos - 1] if pos <= len(slots) else CredentialSlot()
        values[f"panel_{pos}"] = slot.panel_name
        values[f"username_{pos}"] = slot.username
        values[f"password_{pos}"] = slot.password
    return values


def _to_entity(row) -> OfflineClientEntity:
    slots = tuple(
        CredentialSlot(
            panel_name=row[f"panel_{pos}"],
            username=row[f"username_{pos}"],
            password=row[f"password_{pos}"],
        )
        for pos in range(1, MAX_CREDENTIAL_SLOTS + 1)
    )
    client = OfflineClientEntity.from_row(row)
    client.slots = slots
    return client


class OfflineClientRepoImpl(OfflineClientRepository):
    def __init__(self, engine: AsyncEngine):
        self._engine = engine

    async def _first(self, where) -> OfflineClientEntity | None:
        stmt = sa.select(offline_clients).where(where).order_by(offline_clients.c.created_at).limit(1)
        async with self._engine.connect() as conn:
            row = (await conn.execute(stmt)).mappings().first()
        return _to_entity(row) if row else None

    async def find_by_id(self, client_id: uuid.UUID) -> OfflineClientEntity | None:
        return await self._first(offline_clients.c.id == client_id)

    async def find_by_phone(self, phone: str) -> OfflineClientEntity | None:
        return await self._first(offline_clients.c.phone == phone)

    async def create(self, client: OfflineClientEntity) -> OfflineClientEntity:
        now = utcnow()
        client.created_at = client.created_at or now
        client.updated_at = now
        values = {f: getattr(client, f) for f in _PLAIN_FIELDS}
        values.update(_slot_columns(client.slots))
        values.update(
            id=client.id,
            migrated_to_user_id=client.migrated_to_user_id,
            migrated_at=client.migrated_at,
            created_at=client.created_at,
            updated_at=client.updated_at,
        )
        async with self._engine.begin() as conn:
            await conn.execute(offline_clients.insert().values(**values))
        return client

    async def _update_unmigrated(self, client_id: uuid.UUID, values: dict[str, Any]) -> bool:
        stmt = (
            offline_clients.update()
            .where(offline_clients.c.id == client_id, offline_clients.c.migrated_to_user_id.is_(None))
            .values(**values, updated_at=utcnow())
        )
        async with self._engine.begin() as conn:
            result = await conn.execute(stmt)
        return result.rowcount == 1

    async def update(self, client_id: uuid.UUID, patch: dict[str, Any]) -> bool:
        values = {k: v for k, v in patch.items() if k in _PLAIN_FIELDS}
        if "slots" in patch:
            values.update(_slot_columns(tuple(patch["slots"])))
        return await self._update_unmigrated(client_id, values)

    async def update_expiration(self, client_id: uuid.UUID, expiration_date: date) -> bool:
        return await self._update_unmigrated(client_id, {"expiration_date": expiration_date})

    async def mark_migrated(self, client_id: uuid.UUID, user_id: uuid.UUID, migrated_at: datetime) -> bool:
        return await self._update_unmigrated(
            client_id, {"migrated_to_user_id": user_id, "migrated_at": migrated_at}
        )

    async def delete(self, client_id: uuid.UUID) -> bool:
        stmt = offline_clients.delete().where(
            offline_clients.c.id == client_id, offline_clients.c.migrated_to_user_id.is_(None)
        )
        async with self._engine.begin() as conn:
            result = await conn.execute(stmt)
        return result.rowcount == 1
