"""
Classificação de status e plano de clientes.

O status nunca é persistido: é sempre recalculado a partir da data de
expiração no momento da leitura.
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from reseller_billing.core.domain.entities.client_entity import CredentialSlot
from reseller_billing.core.domain.entities.subscription_entity import SubscriptionEntity


class ClientStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"

    @property
    def label(self) -> str:
        return "Ativo" if self is ClientStatus.ACTIVE else "Expirado"


@dataclass(frozen=True, slots=True)
class PlanClassification:
    tier: int
    plan_type: str | None
    label: str


_PLANS: dict[int, tuple[str | None, str]] = {
    0: (None, "Sem Plano"),
    1: ("ponto_unico", "Ponto Único"),
    2: ("ponto_duplo", "Ponto Duplo"),
    3: ("ponto_triplo", "Ponto Triplo"),
}


def as_date(value: date | datetime | None) -> date | None:
    """Trunca datetimes para a data (sem hora)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value


def classify_status(expiration_date: date | datetime | None, today: date | datetime) -> ClientStatus:
    """
    Ativo se `expiration_date >= today` (comparação só de data).
    Sem data de expiração → Ativo. Quem vence hoje ainda está ativo.
    """
    expiration = as_date(expiration_date)
    if expiration is None:
        return ClientStatus.ACTIVE
    return ClientStatus.ACTIVE if expiration >= as_date(today) else ClientStatus.EXPIRED


def plan_for_tier(tier: int) -> PlanClassification:
    plan_type, label = _PLANS.get(tier, _PLANS[0])
    return PlanClassification(tier=tier if tier in _PLANS else 0, plan_type=plan_type, label=label)


def classify_plan(slots: Iterable[CredentialSlot]) -> PlanClassification:
    """Conta slots com usuário E senha preenchidos, independente da posição."""
    return plan_for_tier(sum(1 for s in slots if s.is_filled))


def classify_subscriptions(subscriptions: Iterable[SubscriptionEntity]) -> PlanClassification:
    """Plano de um cliente online: número de assinaturas com status `active`."""
    return plan_for_tier(sum(1 for s in subscriptions if s.status == "active"))


def dominant_subscription(subscriptions: Sequence[SubscriptionEntity]) -> SubscriptionEntity | None:
    """Primeira assinatura ativa; na falta dela, a primeira da lista."""
    for sub in subscriptions:
        if sub.status == "active":
            return sub
    return subscriptions[0] if subscriptions else None


def days_until(expiration_date: date | datetime | None, today: date | datetime) -> int | None:
    expiration = as_date(expiration_date)
    if expiration is None:
        return None
    return (expiration - as_date(today)).days
