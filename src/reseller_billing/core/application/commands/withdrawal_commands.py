import uuid
from dataclasses import dataclass
from decimal import Decimal

from reseller_billing.core.application.authorization import Actor
from reseller_billing.core.application.cqrs import CommandDTO


@dataclass(frozen=True)
class RequestPixWithdrawalCommand(CommandDTO):
    actor: Actor
    user_id: uuid.UUID
    amount: Decimal
    pix_key: str

@dataclass(frozen=True)
class ApproveWithdrawalCommand(CommandDTO):
    actor: Actor
    transaction_id: uuid.UUID
    pix_key: str
    notes: str | None = None

@dataclass(frozen=True)
class RejectWithdrawalCommand(CommandDTO):
    actor: Actor
    transaction_id: uuid.UUID
    notes: str
