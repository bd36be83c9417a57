from dataclasses import replace
from datetime import date

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncEngine

from reseller_billing.adapters.repositories._helpers import money, utcnow
from reseller_billing.adapters.repositories.tables import cash_movements, credits_sold
from reseller_billing.core.domain.entities.ledger_entity import CashMovementEntity, CreditSoldEntity
from reseller_billing.core.domain.repositories.ledger_repository import LedgerRepository


def _between(column, start: date | None, end: date | None):
    clauses = []
    if start is not None:
        clauses.append(column >= start)
    if end is not None:
        clauses.append(column <= end)
    return sa.and_(sa.true(), *clauses)


class LedgerRepoImpl(LedgerRepository):
    def __init__(self, engine: AsyncEngine):
        self._engine = engine

    async def append_cash_movement(self, entry: CashMovementEntity) -> CashMovementEntity:
        created_at = utcnow()
        async with self._engine.begin() as conn:
            result = await conn.execute(
                cash_movements.insert().values(
                    date=entry.date,
                    description=entry.description,
                    inflow=entry.inflow,
                    outflow=entry.outflow,
                    created_at=created_at,
                )
            )
        return replace(entry, id=result.inserted_primary_key[0], created_at=created_at)

    async def append_credit_sold(self, entry: CreditSoldEntity) -> CreditSoldEntity:
        created_at = utcnow()
        async with self._engine.begin() as conn:
            result = await conn.execute(
                credits_sold.insert().values(
                    date=entry.date,
                    description=entry.description,
                    credit_quantity=entry.credit_quantity,
                    panel_name=entry.panel_name,
                    created_at=created_at,
                )
            )
        return replace(entry, id=result.inserted_primary_key[0], created_at=created_at)

    async def list_cash_movements(
        self, start: date | None = None, end: date | None = None
    ) -> list[CashMovementEntity]:
        stmt = (
            sa.select(cash_movements)
            .where(_between(cash_movements.c.date, start, end))
            .order_by(cash_movements.c.date, cash_movements.c.id)
        )
        async with self._engine.connect() as conn:
            rows = (await conn.execute(stmt)).mappings().all()
        return [
            replace(CashMovementEntity.from_row(r), inflow=money(r["inflow"]), outflow=money(r["outflow"]))
            for r in rows
        ]

    async def list_credits_sold(
        self, start: date | None = None, end: date | None = None
    ) -> list[CreditSoldEntity]:
        stmt = (
            sa.select(credits_sold)
            .where(_between(credits_sold.c.date, start, end))
            .order_by(credits_sold.c.date, credits_sold.c.id)
        )
        async with self._engine.connect() as conn:
            rows = (await conn.execute(stmt)).mappings().all()
        return [CreditSoldEntity.from_row(r) for r in rows]
