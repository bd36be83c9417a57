from abc import ABC, abstractmethod
from datetime import date

from reseller_billing.core.domain.entities.ledger_entity import CashMovementEntity, CreditSoldEntity


class LedgerRepository(ABC):
    """
    Caixa e créditos vendidos. Somente inserção e leitura: não existe
    update/delete para estas tabelas.
    """

    @abstractmethod
    async def append_cash_movement(self, entry: CashMovementEntity) -> CashMovementEntity: ...

    @abstractmethod
    async def append_credit_sold(self, entry: CreditSoldEntity) -> CreditSoldEntity: ...

    @abstractmethod
    async def list_cash_movements(
        self, start: date | None = None, end: date | None = None
    ) -> list[CashMovementEntity]: ...

    @abstractmethod
    async def list_credits_sold(
        self, start: date | None = None, end: date | None = None
    ) -> list[CreditSoldEntity]: ...
