import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from reseller_billing.core.domain.entities.transaction_entity import (
    TransactionEntity,
    TransactionStatus,
    TransactionType,
)


class TransactionRepository(ABC):
    @abstractmethod
    async def find_by_id(self, transaction_id: uuid.UUID) -> TransactionEntity | None: ...

    @abstractmethod
    async def create(self, transaction: TransactionEntity) -> TransactionEntity: ...

    @abstractmethod
    async def compare_and_set_status(
        self,
        transaction_id: uuid.UUID,
        expected: Iterable[TransactionStatus],
        new_status: TransactionStatus,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """
        Muda o status somente se o status atual estiver em `expected`.
        `metadata` substitui o metadata gravado. Retorna False se outro
        processo chegou antes.
        """
        ...

    @abstractmethod
    async def list_by_user(
        self, user_id: uuid.UUID, types: Iterable[TransactionType] | None = None
    ) -> list[TransactionEntity]: ...

    @abstractmethod
    async def count_by_user(self, user_id: uuid.UUID) -> int: ...

    @abstractmethod
    async def exists_for_source(self, type_: TransactionType, source_id: uuid.UUID) -> bool: ...

    @abstractmethod
    async def list_pending_payouts(self, user_id: uuid.UUID | None = None) -> list[TransactionEntity]: ...

    @abstractmethod
    async def sum_pending_payouts(self, user_id: uuid.UUID) -> Decimal:
        """Soma (positiva) dos resgates PIX ainda pendentes do usuário."""
        ...
