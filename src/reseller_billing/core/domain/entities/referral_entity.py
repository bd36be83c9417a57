from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from reseller_billing.core.domain.entities._base import EntityMixin


@dataclass(slots=True)
class ReferralEntity(EntityMixin):
    # contador vitalício por relação; o saldo sacável fica em users.total_commission
    id: uuid.UUID
    referrer_id: uuid.UUID
    referred_id: uuid.UUID
    total_commission_earned: Decimal = Decimal("0.00")
    last_commission_date: date | None = None
    created_at: datetime | None = None
