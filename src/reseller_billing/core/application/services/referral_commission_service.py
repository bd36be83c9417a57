from decimal import ROUND_HALF_UP, Decimal

import structlog

from reseller_billing.core.application.policy import BillingPolicy
from reseller_billing.core.application.services.commission_reconciler import CommissionReconciler
from reseller_billing.core.domain.events.events import PaymentCompletedEvent
from reseller_billing.core.domain.repositories.referral_repository import ReferralRepository
from reseller_billing.core.domain.repositories.user_repository import UserRepository


class ReferralCommissionService:
    """
    Listener de `PaymentCompletedEvent`: credita ao indicador a
    comissão sobre o pagamento do indicado (uma vez por pagamento).
    """

    def __init__(
        self,
        reconciler: CommissionReconciler,
        referral_repo: ReferralRepository,
        user_repo: UserRepository,
        policy: BillingPolicy,
        logger=None,
    ):
        self.reconciler = reconciler
        self.referral_repo = referral_repo
        self.user_repo = user_repo
        self.policy = policy
        self.log = logger or structlog.get_logger(__name__)

    def commission_for(self, amount: Decimal) -> Decimal:
        return (amount * self.policy.commission_rate).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    async def on_payment_completed(self, event: PaymentCompletedEvent) -> None:
        commission = self.commission_for(event.amount)
        if commission <= 0:
            return

        referral = await self.referral_repo.find_by_referred(event.user_id)
        referred = await self.user_repo.find_by_id(event.user_id)
        referrer_id = referral.referrer_id if referral else (referred.referred_by if referred else None)
        if referrer_id is None:
            return

        name = referred.full_name if referred else str(event.user_id)
        await self.reconciler.apply_commission(
            referrer_id,
            commission,
            referred_id=event.user_id if referral else None,
            source_transaction_id=event.transaction_id,
            description=f"Comissão de indicação - {name}",
        )
        self.log.info(
            "referral.commission_credited",
            referrer_id=str(referrer_id),
            referred_id=str(event.user_id),
            commission=str(commission),
        )
