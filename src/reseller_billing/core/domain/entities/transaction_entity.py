from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from reseller_billing.core.domain.entities._base import EntityMixin


class TransactionType(str, Enum):
    SUBSCRIPTION = "subscription"
    RECHARGE = "recharge"
    COMMISSION = "commission"
    COMMISSION_WITHDRAWAL = "commission_withdrawal"
    COMMISSION_PAYOUT = "commission_payout"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    MANUAL = "manual"
    PIX = "pix"
    CREDIT = "credit"
    GATEWAY = "gateway"
    COMMISSION = "commission"


class WithdrawalKind(str, Enum):
    CREDIT_REDEMPTION = "credit_redemption"
    PIX_PAYOUT = "pix_payout"


# Tipos que movimentam o saldo de comissão de um indicador.
COMMISSION_MOVEMENT_TYPES: tuple[TransactionType, ...] = (
    TransactionType.COMMISSION,
    TransactionType.COMMISSION_WITHDRAWAL,
    TransactionType.COMMISSION_PAYOUT,
)


@dataclass(slots=True)
class TransactionEntity(EntityMixin):
    """
    Histórico de eventos por cliente (trilha de auditoria).

    Valores de saque são negativos. `metadata` guarda dados do fluxo que
    originou o registro (opção de recarga, chave PIX, dados do gateway...).
    """
    id: uuid.UUID
    user_id: uuid.UUID
    type: TransactionType
    amount: Decimal
    status: TransactionStatus
    payment_method: str | None = None
    description: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    # transação que originou esta (ex.: pagamento que gerou a comissão)
    source_id: uuid.UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self):
        self.type = TransactionType(self.type)
        self.status = TransactionStatus(self.status)
        if self.metadata is None:
            self.metadata = {}

    @property
    def is_pending(self) -> bool:
        return self.status is TransactionStatus.PENDING
