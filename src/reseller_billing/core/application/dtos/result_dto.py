import uuid
from datetime import date
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field


class OperationResult(BaseModel):
    """
    Retorno padrão dos comandos. `warnings` lista escritas secundárias que
    falharam (o resultado continua `success=True`).
    """
    success: bool = True
    message: str
    warnings: list[str] = Field(default_factory=list)


class CreditGrantResult(OperationResult):
    client_id: uuid.UUID
    client_kind: Literal["online", "offline"]
    duration_months: int
    amount: Decimal = Decimal("0.00")
    credit_quantity: int
    # id da assinatura (online) ou do cliente (offline) → nova expiração
    new_expirations: dict[uuid.UUID, date] = Field(default_factory=dict)
    transaction_id: uuid.UUID | None = None


class PaymentNotificationResult(OperationResult):
    transaction_id: uuid.UUID
    previous_status: str
    new_status: str
    applied: bool = False
    credit_quantity: int = 0


class CommissionResult(OperationResult):
    user_id: uuid.UUID
    transaction_id: uuid.UUID | None = None
    new_balance: Decimal
    duplicate: bool = False
    credit_grant: CreditGrantResult | None = None


class WithdrawalResult(OperationResult):
    transaction_id: uuid.UUID
    status: str
    new_balance: Decimal | None = None


class MigrationResult(OperationResult):
    new_account_id: uuid.UUID
    temporary_credential: str
    referral_code: str
    subscriptions_created: int


class OfflineClientResult(OperationResult):
    client_id: uuid.UUID


class DeleteClientResult(OperationResult):
    client_id: uuid.UUID
    dry_run: bool
    subscriptions_deleted: int = 0
    transactions_preserved: int = 0
    user_deleted: bool = False
