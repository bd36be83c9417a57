from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from reseller_billing.core.domain.entities._base import EntityMixin
from reseller_billing.core.domain.entities.client_entity import CredentialSlot

SubscriptionStatus = Literal["active", "expired", "cancelled", "suspended"]

# Assinaturas que recebem crédito: canceladas/suspensas ficam de fora.
CREDITABLE_STATUSES: frozenset[str] = frozenset({"active", "expired"})


@dataclass(slots=True)
class SubscriptionEntity(EntityMixin):
    id: uuid.UUID
    user_id: uuid.UUID
    app_username: str
    app_password: str
    status: SubscriptionStatus = "active"
    panel_name: str | None = None
    expiration_date: date | None = None
    monthly_value: Decimal | None = None
    plan_id: uuid.UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def slot(self) -> CredentialSlot:
        return CredentialSlot(
            panel_name=self.panel_name,
            username=self.app_username,
            password=self.app_password,
        )

    @property
    def is_creditable(self) -> bool:
        return self.status in CREDITABLE_STATUSES
