import uuid
from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal

from reseller_billing.core.domain.entities.referral_entity import ReferralEntity


class ReferralRepository(ABC):
    @abstractmethod
    async def find_by_referred(self, referred_id: uuid.UUID) -> ReferralEntity | None: ...

    @abstractmethod
    async def create(self, referral: ReferralEntity) -> ReferralEntity: ...

    @abstractmethod
    async def record_commission(
        self, referrer_id: uuid.UUID, referred_id: uuid.UUID, amount: Decimal, on_date: date
    ) -> bool:
        """Incrementa o contador vitalício da relação. False se a relação não existe."""
        ...

    @abstractmethod
    async def list_by_referrer(self, referrer_id: uuid.UUID) -> list[ReferralEntity]: ...
