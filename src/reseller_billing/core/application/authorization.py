"""
Capacidade de administrador passada explicitamente a cada comando.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Literal

from reseller_billing.core.domain.events.exceptions import AuthorizationError

Role = Literal["admin", "user", "system"]

SYSTEM_ACTOR_ID = uuid.UUID(int=0)


@dataclass(frozen=True, slots=True)
class Actor:
    id: uuid.UUID
    role: Role = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_system(self) -> bool:
        return self.role == "system"

    @classmethod
    def system(cls) -> Actor:
        """Ator usado por gatilhos de sistema (webhook de pagamento)."""
        return cls(id=SYSTEM_ACTOR_ID, role="system")

    @classmethod
    def admin(cls, actor_id: uuid.UUID) -> Actor:
        return cls(id=actor_id, role="admin")


def require_admin(actor: Actor | None) -> Actor:
    if actor is None or not actor.is_admin:
        raise AuthorizationError("Acesso restrito a administradores")
    return actor


def require_system_or_admin(actor: Actor | None) -> Actor:
    if actor is None or not (actor.is_admin or actor.is_system):
        raise AuthorizationError("Operação restrita ao sistema")
    return actor


def require_owner_or_admin(actor: Actor | None, owner_id: uuid.UUID) -> Actor:
    if actor is None or not (actor.is_admin or actor.id == owner_id):
        raise AuthorizationError("Operação permitida apenas ao próprio cliente")
    return actor
