import uuid
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any

from reseller_billing.core.domain.entities.client_entity import OfflineClientEntity


class OfflineClientRepository(ABC):
    """
    Todas as escritas são condicionais a `migrated_to_user_id IS NULL`:
    um registro migrado nunca mais é alterado.
    """

    @abstractmethod
    async def find_by_id(self, client_id: uuid.UUID) -> OfflineClientEntity | None: ...

    @abstractmethod
    async def find_by_phone(self, phone: str) -> OfflineClientEntity | None: ...

    @abstractmethod
    async def create(self, client: OfflineClientEntity) -> OfflineClientEntity: ...

    @abstractmethod
    async def update(self, client_id: uuid.UUID, patch: dict[str, Any]) -> bool:
        """Aplica o patch (campos da entidade, `slots` incluso). False se migrado/inexistente."""
        ...

    @abstractmethod
    async def update_expiration(self, client_id: uuid.UUID, expiration_date: date) -> bool: ...

    @abstractmethod
    async def mark_migrated(self, client_id: uuid.UUID, user_id: uuid.UUID, migrated_at: datetime) -> bool:
        """
        Ponto de commit da migração. Retorna False quando outra migração já
        marcou o registro (compare-and-set em `migrated_to_user_id`).
        """
        ...

    @abstractmethod
    async def delete(self, client_id: uuid.UUID) -> bool: ...
