import uuid
from dataclasses import dataclass, field
from typing import Any

from reseller_billing.core.application.authorization import Actor
from reseller_billing.core.application.cqrs import CommandDTO


@dataclass(frozen=True)
class ProcessPaymentNotificationCommand(CommandDTO):
    """
    Notificação do gateway já validada: a transação `transaction_id`
    mudou para `gateway_status`.
    """
    actor: Actor
    transaction_id: uuid.UUID
    gateway_status: str
    gateway_payment_id: str | None = None
    gateway_payload: dict[str, Any] = field(default_factory=dict)
