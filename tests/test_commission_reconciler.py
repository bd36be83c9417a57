import uuid
from datetime import timedelta
from decimal import Decimal

import sqlalchemy as sa

from reseller_billing.adapters.repositories.tables import users
from reseller_billing.core.application.authorization import Actor
from reseller_billing.core.application.commands.commission_commands import (
    ApplyCommissionCommand,
    WithdrawCommissionCommand,
)
from reseller_billing.core.application.queries.report_queries import GetCommissionAuditQuery
from reseller_billing.core.application.services.commission_reconciler import format_brl
from reseller_billing.core.domain.entities.transaction_entity import (
    TransactionStatus,
    TransactionType,
    WithdrawalKind,
)
from reseller_billing.core.domain.events.exceptions import (
    AuthorizationError,
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from reseller_billing.core.domain.services.expiration_engine import add_months
from tests.helpers.billing_env import BillingTestCase


class CommissionReconcilerTests(BillingTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.reconciler = self.container.reconciler()
        self.referrer = await self.seed_user(name="Carlos Lima")

    async def fund(self, amount: str):
        return await self.reconciler.apply_commission(self.referrer.id, Decimal(amount))

    async def test_commission_increases_balance_with_matching_transaction(self):
        movement = await self.fund("12.50")

        self.assertEqual(movement.new_balance, Decimal("12.50"))
        self.assertEqual(movement.transaction.type, TransactionType.COMMISSION)
        audit = await self.reconciler.audit_balance(self.referrer.id)
        self.assertTrue(audit.consistent)
        self.assertEqual(audit.movements_total, Decimal("12.50"))

    async def test_same_source_payment_is_credited_once(self):
        source = uuid.uuid4()
        first = await self.reconciler.apply_commission(self.referrer.id, Decimal("3"), source_transaction_id=source)
        second = await self.reconciler.apply_commission(self.referrer.id, Decimal("3"), source_transaction_id=source)

        self.assertFalse(first.duplicate)
        self.assertTrue(second.duplicate)
        self.assertEqual(second.new_balance, Decimal("3.00"))
        self.assertEqual(await self.balance(self.referrer.id), Decimal("3.00"))

    async def test_mixed_sequence_keeps_balance_equal_to_movements(self):
        applied = Decimal("0.00")
        withdrawn = Decimal("0.00")

        async def credit(amount: str):
            nonlocal applied
            await self.fund(amount)
            applied += Decimal(amount)

        async def payout(amount: str):
            nonlocal withdrawn
            request = await self.reconciler.withdraw(
                self.referrer.id, Decimal(amount), WithdrawalKind.PIX_PAYOUT, status=TransactionStatus.PENDING
            )
            await self.reconciler.settle_payout(request.transaction, {"pix_key": "carlos.lima@gmail.com"})
            withdrawn += Decimal(amount)

        await credit("40.00")
        await self.reconciler.withdraw(self.referrer.id, Decimal("35.00"), WithdrawalKind.CREDIT_REDEMPTION)
        withdrawn += Decimal("35.00")
        self.assertEqual(await self.balance(self.referrer.id), Decimal("5.00"))

        with self.assertRaises(InsufficientBalanceError):
            await self.reconciler.withdraw(self.referrer.id, Decimal("50.00"), WithdrawalKind.PIX_PAYOUT)
        self.assertEqual(await self.balance(self.referrer.id), Decimal("5.00"))

        await credit("25.50")
        await credit("60.00")
        pending = await self.reconciler.withdraw(
            self.referrer.id, Decimal("50.00"), WithdrawalKind.PIX_PAYOUT, status=TransactionStatus.PENDING
        )
        # 90,50 de saldo, 50,00 reservados
        with self.assertRaises(InsufficientBalanceError):
            await self.reconciler.withdraw(self.referrer.id, Decimal("41.00"), WithdrawalKind.CREDIT_REDEMPTION)
        self.assertEqual(await self.balance(self.referrer.id), Decimal("90.50"))

        await self.reconciler.settle_payout(pending.transaction, {"pix_key": "carlos.lima@gmail.com"})
        withdrawn += Decimal("50.00")
        await credit("10.00")
        await payout("50.00")

        balance = await self.balance(self.referrer.id)
        self.assertEqual(balance, applied - withdrawn)
        self.assertEqual(balance, Decimal("0.50"))
        audit = await self.reconciler.audit_balance(self.referrer.id)
        self.assertTrue(audit.consistent)
        self.assertEqual(audit.movements_total, applied - withdrawn)

    async def test_invalid_commissions(self):
        with self.assertRaises(ValidationError):
            await self.fund("0")
        with self.assertRaises(NotFoundError):
            await self.reconciler.apply_commission(uuid.uuid4(), Decimal("5"))

    async def test_credit_redemption_respects_minimum_and_balance(self):
        await self.fund("40.00")

        with self.assertRaises(ValidationError) as ctx:
            await self.reconciler.withdraw(self.referrer.id, Decimal("34.99"), WithdrawalKind.CREDIT_REDEMPTION)
        self.assertIn("R$ 35,00", ctx.exception.message)

        with self.assertRaises(InsufficientBalanceError):
            await self.reconciler.withdraw(self.referrer.id, Decimal("40.01"), WithdrawalKind.CREDIT_REDEMPTION)

        movement = await self.reconciler.withdraw(self.referrer.id, Decimal("40.00"), WithdrawalKind.CREDIT_REDEMPTION)
        self.assertEqual(movement.new_balance, Decimal("0.00"))
        self.assertEqual(movement.transaction.amount, Decimal("-40.00"))
        self.assertTrue((await self.reconciler.audit_balance(self.referrer.id)).consistent)

    async def test_only_pix_can_wait_for_approval(self):
        await self.fund("60.00")
        with self.assertRaises(ValidationError):
            await self.reconciler.withdraw(
                self.referrer.id, Decimal("40"), WithdrawalKind.CREDIT_REDEMPTION, status=TransactionStatus.PENDING
            )

    async def test_audit_detects_drift(self):
        await self.fund("10.00")
        async with self.engine.begin() as conn:
            await conn.execute(
                sa.update(users).where(users.c.id == self.referrer.id).values(total_commission=Decimal("15.00"))
            )

        result = await self.bus.dispatch(
            ApplyCommissionCommand(actor=self.admin, referrer_id=self.referrer.id, amount=Decimal("1.00"))
        )
        self.assertEqual(result.new_balance, Decimal("16.00"))

        report = await self.queries.dispatch(GetCommissionAuditQuery(actor=self.admin, user_id=self.referrer.id))
        self.assertFalse(report.consistent)
        self.assertEqual(report.difference, Decimal("5.00"))

    async def test_audit_requires_admin(self):
        with self.assertRaises(AuthorizationError):
            await self.queries.dispatch(
                GetCommissionAuditQuery(actor=Actor(id=self.referrer.id), user_id=self.referrer.id)
            )

    def test_format_brl(self):
        self.assertEqual(format_brl(Decimal("1234.5")), "R$ 1.234,50")
        self.assertEqual(format_brl(Decimal("50")), "R$ 50,00")


class WithdrawCommissionCommandTests(BillingTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.user = await self.seed_user(name="Carlos Lima")
        await self.container.reconciler().apply_commission(self.user.id, Decimal("100.00"))

    async def test_redemption_with_option_extends_without_cash_entry(self):
        sub = await self.seed_subscription(self.user.id, self.today + timedelta(days=3))
        option = await self.seed_recharge_option(months=2)

        result = await self.bus.dispatch(
            WithdrawCommissionCommand(
                actor=self.admin,
                user_id=self.user.id,
                amount=Decimal("60.00"),
                kind=WithdrawalKind.CREDIT_REDEMPTION,
                recharge_option_id=option.id,
            )
        )

        self.assertEqual(result.new_balance, Decimal("40.00"))
        self.assertEqual(result.credit_grant.credit_quantity, 2)
        self.assertEqual(result.credit_grant.new_expirations[sub.id], add_months(sub.expiration_date, 2))
        self.assertEqual(await self.cash_rows(), [])
        credits = await self.credit_rows()
        self.assertEqual(len(credits), 1)
        self.assertTrue(credits[0].description.startswith("Resgate de comissão - Carlos Lima"))

    async def test_redemption_option_needs_creditable_subscription(self):
        option = await self.seed_recharge_option(months=1)
        with self.assertRaises(ValidationError):
            await self.bus.dispatch(
                WithdrawCommissionCommand(
                    actor=self.admin,
                    user_id=self.user.id,
                    amount=Decimal("40.00"),
                    kind=WithdrawalKind.CREDIT_REDEMPTION,
                    recharge_option_id=option.id,
                )
            )
        self.assertEqual(await self.balance(self.user.id), Decimal("100.00"))

    async def test_immediate_pix_payout_by_admin(self):
        result = await self.bus.dispatch(
            WithdrawCommissionCommand(
                actor=self.admin, user_id=self.user.id, amount=Decimal("50.00"), kind=WithdrawalKind.PIX_PAYOUT
            )
        )
        self.assertEqual(result.new_balance, Decimal("50.00"))
        tx = await self.container.transaction_repo().find_by_id(result.transaction_id)
        self.assertEqual(tx.type, TransactionType.COMMISSION_PAYOUT)
        self.assertEqual(tx.status.value, "completed")
