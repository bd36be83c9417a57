import uuid
from dataclasses import dataclass
from datetime import date

from reseller_billing.core.application.authorization import Actor
from reseller_billing.core.application.cqrs import PaginatedQueryDTO, QueryDTO


@dataclass(frozen=True, slots=True, kw_only=True)
class CashSummaryQuery(QueryDTO):
    """Totais mensais do caixa (entradas, saídas, saldo)."""
    start: date | None = None
    end: date | None = None

@dataclass(frozen=True, slots=True, kw_only=True)
class CreditsSoldSummaryQuery(QueryDTO):
    """Créditos vendidos por mês e painel."""
    start: date | None = None
    end: date | None = None

@dataclass(frozen=True, slots=True, kw_only=True)
class ListPendingWithdrawalsQuery(PaginatedQueryDTO):
    actor: Actor

@dataclass(frozen=True, slots=True, kw_only=True)
class GetCommissionAuditQuery(QueryDTO):
    actor: Actor
    user_id: uuid.UUID
