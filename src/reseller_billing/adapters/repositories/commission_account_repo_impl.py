import uuid
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from reseller_billing.adapters.repositories._helpers import money, utcnow
from reseller_billing.adapters.repositories.tables import transactions, users
from reseller_billing.adapters.repositories.transaction_repo_impl import insert_transaction
from reseller_billing.core.domain.entities.transaction_entity import (
    COMMISSION_MOVEMENT_TYPES,
    TransactionEntity,
    TransactionStatus,
)
from reseller_billing.core.domain.events.exceptions import (
    ConflictError,
    InsufficientBalanceError,
    NotFoundError,
)
from reseller_billing.core.domain.repositories.commission_account_repository import (
    CommissionAccountRepository,
)


async def _apply_delta(conn: AsyncConnection, user_id: uuid.UUID, delta: Decimal) -> bool:
    """UPDATE condicional: nunca deixa o saldo negativo."""
    new_balance = users.c.total_commission + delta
    stmt = (
        users.update()
        .where(users.c.id == user_id, sa.func.round(new_balance, 2) >= 0)
        .values(total_commission=new_balance, updated_at=utcnow())
    )
    result = await conn.execute(stmt)
    return result.rowcount == 1


async def _read_balance(conn: AsyncConnection, user_id: uuid.UUID) -> Decimal | None:
    value = (
        await conn.execute(sa.select(users.c.total_commission).where(users.c.id == user_id))
    ).scalar_one_or_none()
    return None if value is None else money(value)


class CommissionAccountRepoImpl(CommissionAccountRepository):
    def __init__(self, engine: AsyncEngine):
        self._engine = engine

    async def balance(self, user_id: uuid.UUID) -> Decimal | None:
        async with self._engine.connect() as conn:
            return await _read_balance(conn, user_id)

    async def post_movement(self, transaction: TransactionEntity) -> Decimal | None:
        async with self._engine.begin() as conn:
            if not await _apply_delta(conn, transaction.user_id, transaction.amount):
                return None
            await insert_transaction(conn, transaction)
            return await _read_balance(conn, transaction.user_id)

    async def settle_payout(
        self, transaction_id: uuid.UUID, user_id: uuid.UUID, amount: Decimal, metadata: dict[str, Any]
    ) -> Decimal:
        async with self._engine.begin() as conn:
            moved = await conn.execute(
                transactions.update()
                .where(
                    transactions.c.id == transaction_id,
                    transactions.c.status == TransactionStatus.PENDING.value,
                )
                .values(status=TransactionStatus.COMPLETED.value, details=metadata, updated_at=utcnow())
            )
            if moved.rowcount != 1:
                raise ConflictError("Esta solicitação já foi processada")
            if not await _apply_delta(conn, user_id, -abs(amount)):
                # exceção dentro do bloco desfaz também a mudança de status
                if await _read_balance(conn, user_id) is None:
                    raise NotFoundError("Cliente não encontrado")
                raise InsufficientBalanceError("Saldo de comissão insuficiente para aprovar o resgate")
            return await _read_balance(conn, user_id)

    async def sum_commission_movements(self, user_id: uuid.UUID) -> Decimal:
        stmt = (
            sa.select(sa.func.coalesce(sa.func.sum(transactions.c.amount), 0))
            .where(
                transactions.c.user_id == user_id,
                transactions.c.type.in_([t.value for t in COMMISSION_MOVEMENT_TYPES]),
                transactions.c.status == TransactionStatus.COMPLETED.value,
            )
        )
        async with self._engine.connect() as conn:
            return money((await conn.execute(stmt)).scalar_one())
