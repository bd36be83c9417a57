import uuid
from dataclasses import dataclass

from reseller_billing.core.application.authorization import Actor
from reseller_billing.core.application.cqrs import CommandDTO


@dataclass(frozen=True)
class MigrateOfflineClientCommand(CommandDTO):
    actor: Actor
    offline_client_id: uuid.UUID
    email: str
