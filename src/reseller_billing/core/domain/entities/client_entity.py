from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from reseller_billing.core.domain.entities._base import EntityMixin

MAX_CREDENTIAL_SLOTS = 3


class MigrationState(str, Enum):
    OFFLINE = "offline"
    MIGRATING = "migrating"
    MIGRATED = "migrated"


@dataclass(frozen=True, slots=True)
class CredentialSlot:
    """Um acesso (painel, usuário, senha) a um painel de streaming."""
    panel_name: str | None = None
    username: str | None = None
    password: str | None = None

    @property
    def is_filled(self) -> bool:
        return bool((self.username or "").strip()) and bool((self.password or "").strip())


@dataclass(slots=True)
class UserEntity(EntityMixin):
    """Cliente online (conta com login no portal)."""
    id: uuid.UUID
    full_name: str
    email: str | None = None
    phone: str | None = None
    cpf: str | None = None
    referral_code: str | None = None
    referred_by: uuid.UUID | None = None
    total_commission: Decimal = Decimal("0.00")
    contact_id: int | None = None
    birth_date: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(slots=True)
class OfflineClientEntity(EntityMixin):
    """
    Cliente que paga por canais informais (WhatsApp) e não tem login.

    Depois de migrado (`migrated_to_user_id` preenchido) o registro é
    terminal: fica apenas como histórico.
    """
    id: uuid.UUID
    name: str
    phone: str
    slots: tuple[CredentialSlot, ...] = field(default_factory=tuple)
    expiration_date: date | None = None
    cpf: str | None = None
    email: str | None = None
    contact_id: int | None = None
    monthly_value: Decimal | None = None
    migrated_to_user_id: uuid.UUID | None = None
    migrated_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self):
        if len(self.slots) > MAX_CREDENTIAL_SLOTS:
            raise ValueError(f"No máximo {MAX_CREDENTIAL_SLOTS} logins por cliente")

    @property
    def is_migrated(self) -> bool:
        return self.migrated_to_user_id is not None

    @property
    def migration_state(self) -> MigrationState:
        return MigrationState.MIGRATED if self.is_migrated else MigrationState.OFFLINE

    @property
    def filled_slots(self) -> list[CredentialSlot]:
        return [s for s in self.slots if s.is_filled]

    def slot(self, position: int) -> CredentialSlot:
        """Slot 1-based; posições vazias retornam um slot em branco."""
        if 1 <= position <= len(self.slots):
            return self.slots[position - 1]
        return CredentialSlot()
