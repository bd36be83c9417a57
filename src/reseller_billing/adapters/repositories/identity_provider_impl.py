import uuid
from typing import Any

import sqlalchemy as sa
import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from reseller_billing.adapters.repositories._helpers import utcnow
from reseller_billing.adapters.repositories.tables import auth_identities
from reseller_billing.adapters.security.hash_service import HashService
from reseller_billing.core.domain.events.exceptions import ConflictError
from reseller_billing.core.domain.repositories.identity_provider import IdentityProvider

logger = structlog.get_logger(__name__)


class SqlIdentityProvider(IdentityProvider):
    """Identidades de login guardadas localmente com hash bcrypt."""

    def __init__(self, engine: AsyncEngine, hasher: HashService | None = None):
        self._engine = engine
        self._hasher = hasher or HashService()

    async def email_exists(self, email: str) -> bool:
        stmt = sa.select(auth_identities.c.id).where(
            sa.func.lower(auth_identities.c.email) == email.strip().lower()
        )
        async with self._engine.connect() as conn:
            return (await conn.execute(stmt)).first() is not None

    async def provision_identity(
        self, email: str, password: str, metadata: dict[str, Any] | None = None
    ) -> uuid.UUID:
        if await self.email_exists(email):
            raise ConflictError("Este email já está cadastrado no sistema")
        identity_id = uuid.uuid4()
        async with self._engine.begin() as conn:
            await conn.execute(
                auth_identities.insert().values(
                    id=identity_id,
                    email=email.strip().lower(),
                    password_hash=self._hasher.hash_password(password),
                    user_metadata=metadata or {},
                    created_at=utcnow(),
                )
            )
        logger.info("identity.provisioned", identity_id=str(identity_id))
        return identity_id

    async def verify_password(self, email: str, password: str) -> uuid.UUID | None:
        stmt = sa.select(auth_identities.c.id, auth_identities.c.password_hash).where(
            sa.func.lower(auth_identities.c.email) == email.strip().lower()
        )
        async with self._engine.connect() as conn:
            row = (await conn.execute(stmt)).first()
        if row is None or not self._hasher.verify(password, row.password_hash):
            return None
        return row.id

    async def delete_identity(self, identity_id: uuid.UUID) -> None:
        async with self._engine.begin() as conn:
            await conn.execute(auth_identities.delete().where(auth_identities.c.id == identity_id))
        logger.info("identity.deleted", identity_id=str(identity_id))
