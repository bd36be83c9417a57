from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Literal

from reseller_billing.core.application.authorization import Actor
from reseller_billing.core.application.cqrs import CommandDTO

DiscountType = Literal["percentual", "fixo"]


@dataclass(frozen=True)
class GrantCreditsCommand(CommandDTO):
    """
    Concessão manual de créditos a um cliente online.
    Cliente por `user_id`, `email` ou `phone`; duração por
    `duration_months` ou pela opção de recarga.
    """
    actor: Actor
    user_id: uuid.UUID | None = None
    email: str | None = None
    phone: str | None = None
    duration_months: int | None = None
    recharge_option_id: uuid.UUID | None = None
    amount: Decimal = Decimal("0.00")
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = None
    description: str | None = None

@dataclass(frozen=True)
class GrantOfflineCreditsCommand(CommandDTO):
    actor: Actor
    duration_months: int
    client_id: uuid.UUID | None = None
    phone: str | None = None
    amount: Decimal = Decimal("0.00")
    panel_name: str | None = None
    description: str | None = None
