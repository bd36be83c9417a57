import uuid
from dataclasses import dataclass

from reseller_billing.core.application.authorization import Actor
from reseller_billing.core.application.cqrs import CommandDTO
from reseller_billing.core.application.dtos.client_dto import OfflineClientCreateDTO, OfflineClientUpdateDTO


@dataclass(frozen=True)
class CreateOfflineClientCommand(CommandDTO):
    actor: Actor
    payload: OfflineClientCreateDTO

@dataclass(frozen=True)
class UpdateOfflineClientCommand(CommandDTO):
    actor: Actor
    client_id: uuid.UUID
    payload: OfflineClientUpdateDTO

@dataclass(frozen=True)
class DeleteOfflineClientCommand(CommandDTO):
    actor: Actor
    client_id: uuid.UUID

@dataclass(frozen=True)
class DeleteClientCommand(CommandDTO):
    """Exclusão de cliente online. `dry_run` só devolve o relatório."""
    actor: Actor
    user_id: uuid.UUID
    dry_run: bool = False
