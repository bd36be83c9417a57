import unittest
import uuid
from datetime import timedelta
from decimal import Decimal

from sqlalchemy.exc import OperationalError

from reseller_billing.core.application.authorization import Actor
from reseller_billing.core.application.commands.payment_commands import ProcessPaymentNotificationCommand
from reseller_billing.core.application.handlers.payment_handlers import map_gateway_status
from reseller_billing.core.domain.entities.transaction_entity import TransactionStatus, TransactionType
from reseller_billing.core.domain.events.exceptions import AuthorizationError, NotFoundError
from reseller_billing.core.domain.services.expiration_engine import add_months
from tests.helpers.billing_env import BillingTestCase, failing


class GatewayStatusMappingTests(unittest.TestCase):
    def test_known_and_unknown_statuses(self):
        self.assertIs(map_gateway_status("approved"), TransactionStatus.COMPLETED)
        self.assertIs(map_gateway_status(" Rejected "), TransactionStatus.FAILED)
        self.assertIs(map_gateway_status("refunded"), TransactionStatus.CANCELLED)
        self.assertIs(map_gateway_status("something_new"), TransactionStatus.PENDING)
        self.assertIs(map_gateway_status(""), TransactionStatus.PENDING)


class PaymentNotificationTests(BillingTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.referrer = await self.seed_user(name="Carlos Lima", phone="5511955554444")
        self.user = await self.seed_user(referred_by=self.referrer.id)
        await self.seed_referral(self.referrer.id, self.user.id)
        self.sub = await self.seed_subscription(self.user.id, self.today + timedelta(days=7))

    def notify(self, tx_id, status="approved", actor=None):
        return self.bus.dispatch(
            ProcessPaymentNotificationCommand(
                actor=actor or Actor.system(),
                transaction_id=tx_id,
                gateway_status=status,
                gateway_payment_id="mp-123",
                gateway_payload={"status": status},
            )
        )

    async def test_first_approval_applies_all_effects(self):
        tx = await self.seed_payment(self.user.id, Decimal("30.00"), metadata={"duration_months": 1})

        result = await self.notify(tx.id)

        self.assertTrue(result.applied)
        self.assertEqual(result.previous_status, "pending")
        self.assertEqual(result.new_status, "completed")
        self.assertEqual(result.credit_quantity, 1)

        stored = await self.container.transaction_repo().find_by_id(tx.id)
        self.assertIs(stored.status, TransactionStatus.COMPLETED)
        self.assertEqual(stored.metadata["gateway"]["payment_id"], "mp-123")
        self.assertEqual(stored.metadata["duration_months"], 1)

        sub = (await self.container.subscription_repo().list_by_user(self.user.id))[0]
        self.assertEqual(sub.expiration_date, add_months(self.sub.expiration_date, 1))

        cash = await self.cash_rows()
        self.assertEqual(len(cash), 1)
        self.assertEqual(cash[0].description, "Pagamento Online - Maria Souza (Plano Mensal)")
        self.assertEqual(cash[0].inflow, Decimal("30.00"))
        self.assertEqual(len(await self.credit_rows()), 1)

        # 10% para quem indicou
        self.assertEqual(await self.balance(self.referrer.id), Decimal("3.00"))
        commissions = await self.container.transaction_repo().list_by_user(
            self.referrer.id, [TransactionType.COMMISSION]
        )
        self.assertEqual(len(commissions), 1)
        self.assertEqual(commissions[0].source_id, tx.id)
        referral = (await self.container.referral_repo().list_by_referrer(self.referrer.id))[0]
        self.assertEqual(referral.total_commission_earned, Decimal("3.00"))

    async def test_repeated_notification_is_a_no_op(self):
        tx = await self.seed_payment(self.user.id, Decimal("30.00"), metadata={"duration_months": 1})
        await self.notify(tx.id)

        again = await self.notify(tx.id)

        self.assertFalse(again.applied)
        self.assertEqual(again.new_status, "completed")
        self.assertEqual(len(await self.cash_rows()), 1)
        self.assertEqual(len(await self.credit_rows()), 1)
        self.assertEqual(await self.balance(self.referrer.id), Decimal("3.00"))
        sub = (await self.container.subscription_repo().list_by_user(self.user.id))[0]
        self.assertEqual(sub.expiration_date, add_months(self.sub.expiration_date, 1))

    async def test_extension_failure_keeps_payment_open_for_retry(self):
        tx = await self.seed_payment(self.user.id, Decimal("30.00"), metadata={"duration_months": 1})
        subscription_repo = self.container.subscription_repo()

        with failing(subscription_repo, "update_expiration"):
            with self.assertRaises(OperationalError):
                await self.notify(tx.id)

        stored = await self.container.transaction_repo().find_by_id(tx.id)
        self.assertIs(stored.status, TransactionStatus.PENDING)
        self.assertEqual(await self.cash_rows(), [])
        sub = (await subscription_repo.list_by_user(self.user.id))[0]
        self.assertEqual(sub.expiration_date, self.sub.expiration_date)

        retried = await self.notify(tx.id)

        self.assertTrue(retried.applied)
        self.assertEqual(retried.previous_status, "pending")
        sub = (await subscription_repo.list_by_user(self.user.id))[0]
        self.assertEqual(sub.expiration_date, add_months(self.sub.expiration_date, 1))
        self.assertEqual([c.inflow for c in await self.cash_rows()], [Decimal("30.00")])
        self.assertEqual(len(await self.credit_rows()), 1)
        self.assertEqual(await self.balance(self.referrer.id), Decimal("3.00"))

    async def test_duration_in_days_defaults_to_thirty(self):
        tx = await self.seed_payment(self.user.id, Decimal("25.00"))

        result = await self.notify(tx.id, "authorized")

        self.assertEqual(result.credit_quantity, 1)
        sub = (await self.container.subscription_repo().list_by_user(self.user.id))[0]
        self.assertEqual(sub.expiration_date, self.sub.expiration_date + timedelta(days=30))

    async def test_non_final_status_only_updates_the_transaction(self):
        tx = await self.seed_payment(self.user.id)

        result = await self.notify(tx.id, "in_process")

        self.assertFalse(result.applied)
        self.assertEqual(result.new_status, "pending")
        self.assertEqual(await self.cash_rows(), [])
        self.assertEqual(await self.balance(self.referrer.id), Decimal("0.00"))

    async def test_failed_then_approved_still_applies_once(self):
        tx = await self.seed_payment(self.user.id, metadata={"duration_months": 2})

        failed = await self.notify(tx.id, "rejected")
        approved = await self.notify(tx.id, "approved")

        self.assertEqual(failed.new_status, "failed")
        self.assertTrue(approved.applied)
        self.assertEqual(approved.previous_status, "failed")
        self.assertEqual((await self.credit_rows())[0].credit_quantity, 2)

    async def test_payment_without_creditable_subscription_still_records_cash(self):
        other = await self.seed_user(name="Paula Reis", phone=None)
        await self.seed_subscription(other.id, self.today, status="cancelled")
        tx = await self.seed_payment(other.id, Decimal("40.00"), metadata={"duration_months": 1})

        result = await self.notify(tx.id)

        self.assertTrue(result.applied)
        self.assertEqual(result.credit_quantity, 0)
        self.assertEqual(len(result.warnings), 1)
        self.assertEqual([c.inflow for c in await self.cash_rows()], [Decimal("40.00")])
        self.assertEqual(await self.credit_rows(), [])

    async def test_guards(self):
        with self.assertRaises(NotFoundError):
            await self.notify(uuid.uuid4())
        tx = await self.seed_payment(self.user.id)
        with self.assertRaises(AuthorizationError):
            await self.notify(tx.id, actor=Actor(id=self.user.id))
