import uuid
from abc import ABC, abstractmethod
from typing import Any


class IdentityProvider(ABC):
    """Serviço externo de credenciais (login do portal)."""

    @abstractmethod
    async def email_exists(self, email: str) -> bool: ...

    @abstractmethod
    async def provision_identity(
        self, email: str, password: str, metadata: dict[str, Any] | None = None
    ) -> uuid.UUID: ...

    @abstractmethod
    async def delete_identity(self, identity_id: uuid.UUID) -> None:
        """Usado como compensação quando a migração falha depois do provisionamento."""
        ...
