import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class MonthlyCashSummaryDTO(BaseModel):
    month: str  # YYYY-MM
    inflow: Decimal
    outflow: Decimal
    balance: Decimal
    entries: int


class CreditsSoldSummaryDTO(BaseModel):
    month: str
    panel_name: str
    credit_quantity: int
    entries: int


class PendingWithdrawalDTO(BaseModel):
    transaction_id: uuid.UUID
    user_id: uuid.UUID
    user_name: str | None
    amount: Decimal
    pix_key: str | None
    requested_at: datetime | None


class BalanceAuditDTO(BaseModel):
    user_id: uuid.UUID
    balance: Decimal
    movements_total: Decimal
    difference: Decimal
    consistent: bool
