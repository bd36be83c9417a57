import uuid
from dataclasses import dataclass
from decimal import Decimal

from reseller_billing.core.application.authorization import Actor
from reseller_billing.core.application.cqrs import CommandDTO
from reseller_billing.core.domain.entities.transaction_entity import WithdrawalKind


@dataclass(frozen=True)
class ApplyCommissionCommand(CommandDTO):
    actor: Actor
    referrer_id: uuid.UUID
    amount: Decimal
    referred_id: uuid.UUID | None = None
    source_transaction_id: uuid.UUID | None = None
    description: str | None = None

@dataclass(frozen=True)
class WithdrawCommissionCommand(CommandDTO):
    """
    Débito imediato do saldo. Para `credit_redemption` com
    `recharge_option_id`, os meses da opção são creditados nas
    assinaturas sem gerar entrada no caixa.
    """
    actor: Actor
    user_id: uuid.UUID
    amount: Decimal
    kind: WithdrawalKind
    recharge_option_id: uuid.UUID | None = None
    description: str | None = None
