from __future__ import annotations

from collections import defaultdict
from decimal import Decimal

import structlog

from reseller_billing.core.application.authorization import require_admin
from reseller_billing.core.application.cqrs import PagedResult, QueryHandler
from reseller_billing.core.application.dtos.report_dto import (
    BalanceAuditDTO,
    CreditsSoldSummaryDTO,
    MonthlyCashSummaryDTO,
    PendingWithdrawalDTO,
)
from reseller_billing.core.application.queries.report_queries import (
    CashSummaryQuery,
    CreditsSoldSummaryQuery,
    GetCommissionAuditQuery,
    ListPendingWithdrawalsQuery,
)
from reseller_billing.core.application.services.commission_reconciler import CommissionReconciler
from reseller_billing.core.application.services.credit_grant_service import NO_PANEL
from reseller_billing.core.domain.repositories.ledger_repository import LedgerRepository
from reseller_billing.core.domain.repositories.transaction_repository import TransactionRepository
from reseller_billing.core.domain.repositories.user_repository import UserRepository

ZERO = Decimal("0.00")


class CashSummaryHandler(QueryHandler[CashSummaryQuery, list[MonthlyCashSummaryDTO]]):
    """Agrupa o caixa por mês (YYYY-MM), em ordem cronológica."""
    def __init__(self, ledger_repo: LedgerRepository):
        self.ledger_repo = ledger_repo

    async def handle(self, query: CashSummaryQuery) -> list[MonthlyCashSummaryDTO]:
        rows = await self.ledger_repo.list_cash_movements(query.start, query.end)
        months: dict[str, list] = defaultdict(lambda: [ZERO, ZERO, 0])
        for row in rows:
            bucket = months[row.date.strftime("%Y-%m")]
            bucket[0] += row.inflow
            bucket[1] += row.outflow
            bucket[2] += 1
        return [
            MonthlyCashSummaryDTO(month=m, inflow=i, outflow=o, balance=i - o, entries=n)
            for m, (i, o, n) in sorted(months.items())
        ]


class CreditsSoldSummaryHandler(QueryHandler[CreditsSoldSummaryQuery, list[CreditsSoldSummaryDTO]]):
    def __init__(self, ledger_repo: LedgerRepository):
        self.ledger_repo = ledger_repo

    async def handle(self, query: CreditsSoldSummaryQuery) -> list[CreditsSoldSummaryDTO]:
        rows = await self.ledger_repo.list_credits_sold(query.start, query.end)
        totals: dict[tuple[str, str], list[int]] = defaultdict(lambda: [0, 0])
        for row in rows:
            bucket = totals[(row.date.strftime("%Y-%m"), row.panel_name or NO_PANEL)]
            bucket[0] += row.credit_quantity
            bucket[1] += 1
        return [
            CreditsSoldSummaryDTO(month=month, panel_name=panel, credit_quantity=qty, entries=n)
            for (month, panel), (qty, n) in sorted(totals.items())
        ]


class ListPendingWithdrawalsHandler(QueryHandler[ListPendingWithdrawalsQuery, PagedResult[PendingWithdrawalDTO]]):
    """Fila de resgates PIX aguardando aprovação (mais antigos primeiro)."""
    def __init__(self, transaction_repo: TransactionRepository, user_repo: UserRepository):
        self.transaction_repo = transaction_repo
        self.user_repo = user_repo

    async def handle(self, query: ListPendingWithdrawalsQuery) -> PagedResult[PendingWithdrawalDTO]:
        require_admin(query.actor)
        filtros = query.filtros or {}
        pending = await self.transaction_repo.list_pending_payouts(filtros.get("user_id"))

        start = (max(query.page, 1) - 1) * query.page_size
        page_items = pending[start:start + query.page_size]
        names: dict = {}
        items = []
        for tx in page_items:
            if tx.user_id not in names:
                user = await self.user_repo.find_by_id(tx.user_id)
                names[tx.user_id] = user.full_name if user else None
            items.append(
                PendingWithdrawalDTO(
                    transaction_id=tx.id,
                    user_id=tx.user_id,
                    user_name=names[tx.user_id],
                    amount=abs(tx.amount),
                    pix_key=tx.metadata.get("pix_key"),
                    requested_at=tx.created_at,
                )
            )
        return PagedResult(items=items, total=len(pending), page=query.page, page_size=query.page_size)


class GetCommissionAuditHandler(QueryHandler[GetCommissionAuditQuery, BalanceAuditDTO]):
    """Compara o saldo de comissão gravado com a soma das movimentações."""
    def __init__(self, reconciler: CommissionReconciler, logger=None):
        self.reconciler = reconciler
        self.log = logger or structlog.get_logger(__name__)

    async def handle(self, query: GetCommissionAuditQuery) -> BalanceAuditDTO:
        require_admin(query.actor)
        audit = await self.reconciler.audit_balance(query.user_id)
        return BalanceAuditDTO(
            user_id=audit.user_id,
            balance=audit.balance,
            movements_total=audit.movements_total,
            difference=audit.difference,
            consistent=audit.consistent,
        )
