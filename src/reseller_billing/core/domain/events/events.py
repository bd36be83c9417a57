from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ───────────────────────────────────────────────
# Event Base e Domain Events
# ───────────────────────────────────────────────
@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    event_id: uuid.UUID = field(default_factory=uuid.uuid4)
    occurred_at: datetime = field(default_factory=_utcnow)

# ╭──────────────────────────────────────────────╮
# │ 1. Créditos / Pagamentos                     │
# ╰──────────────────────────────────────────────╯
@dataclass(frozen=True, kw_only=True)
class CreditsGrantedEvent(DomainEvent):
    client_id: uuid.UUID
    client_kind: str            # "online" | "offline"
    channel: str                # "manual" | "gateway" | "commission"
    credit_quantity: int
    amount: Decimal


@dataclass(frozen=True, kw_only=True)
class PaymentCompletedEvent(DomainEvent):
    """Pagamento de um cliente online concluído (recarga manual ou gateway)."""
    transaction_id: uuid.UUID
    user_id: uuid.UUID
    amount: Decimal

# ╭──────────────────────────────────────────────╮
# │ 2. Comissões / Resgates                      │
# ╰──────────────────────────────────────────────╯
@dataclass(frozen=True, kw_only=True)
class CommissionAppliedEvent(DomainEvent):
    referrer_id: uuid.UUID
    amount: Decimal
    new_balance: Decimal
    source_transaction_id: uuid.UUID | None = None


@dataclass(frozen=True, kw_only=True)
class CommissionWithdrawnEvent(DomainEvent):
    referrer_id: uuid.UUID
    transaction_id: uuid.UUID
    kind: str
    amount: Decimal
    new_balance: Decimal


@dataclass(frozen=True, kw_only=True)
class WithdrawalRequestedEvent(DomainEvent):
    transaction_id: uuid.UUID
    user_id: uuid.UUID
    amount: Decimal


@dataclass(frozen=True, kw_only=True)
class WithdrawalApprovedEvent(DomainEvent):
    transaction_id: uuid.UUID
    user_id: uuid.UUID
    amount: Decimal
    approved_by: uuid.UUID | None


@dataclass(frozen=True, kw_only=True)
class WithdrawalRejectedEvent(DomainEvent):
    transaction_id: uuid.UUID
    user_id: uuid.UUID
    notes: str

# ╭──────────────────────────────────────────────╮
# │ 3. Clientes                                  │
# ╰──────────────────────────────────────────────╯
@dataclass(frozen=True, kw_only=True)
class OfflineClientMigratedEvent(DomainEvent):
    offline_client_id: uuid.UUID
    user_id: uuid.UUID
    subscriptions_created: int


@dataclass(frozen=True, kw_only=True)
class ClientDeletedEvent(DomainEvent):
    client_id: uuid.UUID
    client_kind: str
    preserved_transactions: int

# ╭──────────────────────────────────────────────╮
# │ 4. Conciliação                               │
# ╰──────────────────────────────────────────────╯
@dataclass(frozen=True, kw_only=True)
class PartialWriteDetectedEvent(DomainEvent):
    table: str
    reference: str
    error: str
