from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal

from reseller_billing.core.domain.entities._base import EntityMixin


@dataclass(slots=True)
class RechargeOptionEntity(EntityMixin):
    id: uuid.UUID
    display_name: str
    duration_months: int
    price: Decimal
    plan_type: str | None = None
    period: str | None = None
    active: bool = True
