import uuid
from collections.abc import Iterable
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from reseller_billing.adapters.repositories._helpers import money, utcnow
from reseller_billing.adapters.repositories.tables import transactions
from reseller_billing.core.domain.entities.transaction_entity import (
    TransactionEntity,
    TransactionStatus,
    TransactionType,
)
from reseller_billing.core.domain.repositories.transaction_repository import TransactionRepository


def to_entity(row) -> TransactionEntity:
    return TransactionEntity(
        id=row["id"],
        user_id=row["user_id"],
        type=row["type"],
        amount=money(row["amount"]),
        status=row["status"],
        payment_method=row["payment_method"],
        description=row["description"],
        metadata=dict(row["details"] or {}),
        source_id=row["source_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


async def insert_transaction(conn: AsyncConnection, tx: TransactionEntity) -> TransactionEntity:
    """Insert compartilhado com o repositório de conta de comissão (mesma conexão)."""
    now = utcnow()
    tx.created_at = tx.created_at or now
    tx.updated_at = now
    await conn.execute(
        transactions.insert().values(
            id=tx.id,
            user_id=tx.user_id,
            type=tx.type.value,
            amount=tx.amount,
            status=tx.status.value,
            payment_method=tx.payment_method,
            description=tx.description,
            details=tx.metadata,
            source_id=tx.source_id,
            created_at=tx.created_at,
            updated_at=tx.updated_at,
        )
    )
    return tx


class TransactionRepoImpl(TransactionRepository):
    def __init__(self, engine: AsyncEngine):
        self._engine = engine

    async def find_by_id(self, transaction_id: uuid.UUID) -> TransactionEntity | None:
        async with self._engine.connect() as conn:
            row = (
                await conn.execute(sa.select(transactions).where(transactions.c.id == transaction_id))
            ).mappings().first()
        return to_entity(row) if row else None

    async def create(self, transaction: TransactionEntity) -> TransactionEntity:
        async with self._engine.begin() as conn:
            return await insert_transaction(conn, transaction)

    async def compare_and_set_status(
        self,
        transaction_id: uuid.UUID,
        expected: Iterable[TransactionStatus],
        new_status: TransactionStatus,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        values: dict[str, Any] = {"status": new_status.value, "updated_at": utcnow()}
        if metadata is not None:
            values["details"] = metadata
        stmt = (
            transactions.update()
            .where(
                transactions.c.id == transaction_id,
                transactions.c.status.in_([s.value for s in expected]),
            )
            .values(**values)
        )
        async with self._engine.begin() as conn:
            result = await conn.execute(stmt)
        return result.rowcount == 1

    async def list_by_user(
        self, user_id: uuid.UUID, types: Iterable[TransactionType] | None = None
    ) -> list[TransactionEntity]:
        stmt = sa.select(transactions).where(transactions.c.user_id == user_id)
        if types is not None:
            stmt = stmt.where(transactions.c.type.in_([t.value for t in types]))
        stmt = stmt.order_by(transactions.c.created_at)
        async with self._engine.connect() as conn:
            rows = (await conn.execute(stmt)).mappings().all()
        return [to_entity(r) for r in rows]

    async def count_by_user(self, user_id: uuid.UUID) -> int:
        stmt = sa.select(sa.func.count()).select_from(transactions).where(transactions.c.user_id == user_id)
        async with self._engine.connect() as conn:
            return int((await conn.execute(stmt)).scalar_one())

    async def exists_for_source(self, type_: TransactionType, source_id: uuid.UUID) -> bool:
        stmt = (
            sa.select(transactions.c.id)
            .where(transactions.c.type == type_.value, transactions.c.source_id == source_id)
            .limit(1)
        )
        async with self._engine.connect() as conn:
            return (await conn.execute(stmt)).first() is not None

    def _pending_payouts(self):
        return sa.and_(
            transactions.c.type == TransactionType.COMMISSION_PAYOUT.value,
            transactions.c.status == TransactionStatus.PENDING.value,
        )

    async def list_pending_payouts(self, user_id: uuid.UUID | None = None) -> list[TransactionEntity]:
        stmt = sa.select(transactions).where(self._pending_payouts())
        if user_id is not None:
            stmt = stmt.where(transactions.c.user_id == user_id)
        stmt = stmt.order_by(transactions.c.created_at)
        async with self._engine.connect() as conn:
            rows = (await conn.execute(stmt)).mappings().all()
        return [to_entity(r) for r in rows]

    async def sum_pending_payouts(self, user_id: uuid.UUID) -> Decimal:
        stmt = (
            sa.select(sa.func.coalesce(sa.func.sum(transactions.c.amount), 0))
            .where(self._pending_payouts(), transactions.c.user_id == user_id)
        )
        async with self._engine.connect() as conn:
            total = (await conn.execute(stmt)).scalar_one()
        return abs(money(total))
