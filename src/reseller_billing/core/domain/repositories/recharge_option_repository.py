import uuid
from abc import ABC, abstractmethod

from reseller_billing.core.domain.entities.recharge_option_entity import RechargeOptionEntity


class RechargeOptionRepository(ABC):
    @abstractmethod
    async def find_by_id(self, option_id: uuid.UUID) -> RechargeOptionEntity | None: ...

    @abstractmethod
    async def list_active(self) -> list[RechargeOptionEntity]: ...

    @abstractmethod
    async def save(self, option: RechargeOptionEntity) -> RechargeOptionEntity: ...
