import uuid
from abc import ABC, abstractmethod
from datetime import date

from reseller_billing.core.domain.entities.subscription_entity import SubscriptionEntity, SubscriptionStatus


class SubscriptionRepository(ABC):
    @abstractmethod
    async def list_by_user(self, user_id: uuid.UUID) -> list[SubscriptionEntity]:
        """Assinaturas do usuário em ordem de criação (slot 1 primeiro)."""
        ...

    @abstractmethod
    async def create(self, subscription: SubscriptionEntity) -> SubscriptionEntity: ...

    @abstractmethod
    async def update_expiration(
        self, subscription_id: uuid.UUID, expiration_date: date, status: SubscriptionStatus = "active"
    ) -> None: ...

    @abstractmethod
    async def delete_by_user(self, user_id: uuid.UUID) -> int:
        """Remove todas as assinaturas do usuário e retorna quantas foram removidas."""
        ...
