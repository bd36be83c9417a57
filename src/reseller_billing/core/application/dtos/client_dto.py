import uuid
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, EmailStr, Field, field_validator


def _strip_or_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class CredentialSlotDTO(BaseModel):
    panel_name: str | None = None
    username: str | None = None
    password: str | None = None

    @field_validator("panel_name", "username", "password")
    @classmethod
    def _strip(cls, v: str | None) -> str | None:
        return _strip_or_none(v)


class OfflineClientCreateDTO(BaseModel):
    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    slots: list[CredentialSlotDTO] = Field(default_factory=list, max_length=3)
    expiration_date: date
    email: EmailStr | None = None
    cpf: str | None = None
    contact_id: int | None = None
    monthly_value: Decimal | None = Field(default=None, ge=0)

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Nome é obrigatório")
        return v

    @field_validator("email", "cpf", mode="before")
    @classmethod
    def _blank_as_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class OfflineClientUpdateDTO(BaseModel):
    """Patch: somente os campos informados são alterados."""
    name: str | None = None
    phone: str | None = None
    slots: list[CredentialSlotDTO] | None = Field(default=None, max_length=3)
    expiration_date: date | None = None
    email: EmailStr | None = None
    cpf: str | None = None
    contact_id: int | None = None
    monthly_value: Decimal | None = Field(default=None, ge=0)

    @field_validator("email", "cpf", mode="before")
    @classmethod
    def _blank_as_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class MigrationRequestDTO(BaseModel):
    email: EmailStr


class SubscriptionOverviewDTO(BaseModel):
    id: uuid.UUID
    panel_name: str | None
    app_username: str
    status: str
    expiration_date: date | None
    derived_status: str
    days_until_expiration: int | None


class ClientOverviewDTO(BaseModel):
    id: uuid.UUID
    kind: str
    name: str
    phone: str | None
    email: str | None
    status: str
    status_label: str
    expiration_date: date | None
    days_until_expiration: int | None
    plan_tier: int
    plan_type: str | None
    plan_label: str
    migration_state: str | None = None
    migrated_to_user_id: uuid.UUID | None = None
    total_commission: Decimal | None = None
    referral_code: str | None = None
    subscriptions: list[SubscriptionOverviewDTO] = Field(default_factory=list)
