from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from reseller_billing.core.domain.entities._base import EntityMixin


@dataclass(frozen=True, slots=True)
class CashMovementEntity(EntityMixin):
    """Linha do caixa. Imutável: nunca é alterada nem removida."""
    date: date
    description: str
    inflow: Decimal = Decimal("0.00")
    outflow: Decimal = Decimal("0.00")
    id: int | None = None
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class CreditSoldEntity(EntityMixin):
    """Linha de créditos vendidos (pontos × meses). Imutável."""
    date: date
    description: str
    credit_quantity: int
    panel_name: str | None = None
    id: int | None = None
    created_at: datetime | None = None
