import uuid
from decimal import Decimal

import sqlalchemy as sa

from reseller_billing.adapters.repositories.tables import users
from reseller_billing.core.application.authorization import Actor
from reseller_billing.core.application.commands.withdrawal_commands import (
    ApproveWithdrawalCommand,
    RejectWithdrawalCommand,
    RequestPixWithdrawalCommand,
)
from reseller_billing.core.application.queries.report_queries import ListPendingWithdrawalsQuery
from reseller_billing.core.domain.entities.transaction_entity import TransactionStatus
from reseller_billing.core.domain.events.events import WithdrawalApprovedEvent
from reseller_billing.core.domain.events.exceptions import (
    AuthorizationError,
    ConflictError,
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from tests.helpers.billing_env import BillingTestCase, failing

PIX_KEY = "carlos.lima@gmail.com"


class PixWithdrawalWorkflowTests(BillingTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.user = await self.seed_user(name="Carlos Lima")
        self.owner = Actor(id=self.user.id)
        await self.container.reconciler().apply_commission(self.user.id, Decimal("80.00"))

    def request(self, amount="50.00", actor=None):
        return self.bus.dispatch(
            RequestPixWithdrawalCommand(
                actor=actor or self.owner, user_id=self.user.id, amount=Decimal(amount), pix_key=PIX_KEY
            )
        )

    def approve(self, tx_id, pix_key=PIX_KEY):
        return self.bus.dispatch(
            ApproveWithdrawalCommand(actor=self.admin, transaction_id=tx_id, pix_key=pix_key, notes="pago")
        )

    async def test_request_keeps_balance_and_reserves_amount(self):
        result = await self.request()

        self.assertEqual(result.status, "pending")
        self.assertEqual(await self.balance(self.user.id), Decimal("80.00"))
        self.assertEqual(await self.container.reconciler().available_balance(self.user.id), Decimal("30.00"))
        with self.assertRaises(InsufficientBalanceError):
            await self.request()

    async def test_minimum_and_ownership(self):
        with self.assertRaises(ValidationError) as ctx:
            await self.request("49.99")
        self.assertEqual(ctx.exception.message, "O valor mínimo para resgate via PIX é R$ 50,00")
        with self.assertRaises(AuthorizationError):
            await self.request(actor=Actor(id=uuid.uuid4()))

    async def test_approval_debits_balance_and_records_outflow(self):
        approved = []
        self.container.dispatcher().subscribe(WithdrawalApprovedEvent, approved.append)
        request = await self.request()

        result = await self.approve(request.transaction_id)

        self.assertEqual(result.status, "completed")
        self.assertEqual(result.new_balance, Decimal("30.00"))
        tx = await self.container.transaction_repo().find_by_id(request.transaction_id)
        self.assertIs(tx.status, TransactionStatus.COMPLETED)
        self.assertEqual(tx.metadata["approved_by"], str(self.admin.id))
        self.assertEqual(tx.metadata["admin_notes"], "pago")
        cash = await self.cash_rows()
        self.assertEqual(cash[0].outflow, Decimal("50.00"))
        self.assertEqual(cash[0].description, f"Saque PIX - Carlos Lima ({PIX_KEY})")
        self.assertEqual(len(approved), 1)
        self.assertTrue((await self.container.reconciler().audit_balance(self.user.id)).consistent)

    async def test_second_approval_conflicts_without_double_debit(self):
        request = await self.request()
        await self.approve(request.transaction_id)

        with self.assertRaises(ConflictError) as ctx:
            await self.approve(request.transaction_id)

        self.assertEqual(ctx.exception.message, "Esta solicitação já foi processada")
        self.assertEqual(await self.balance(self.user.id), Decimal("30.00"))
        self.assertEqual(len(await self.cash_rows()), 1)

    async def test_rejection_keeps_balance(self):
        request = await self.request()

        with self.assertRaises(ValidationError):
            await self.bus.dispatch(
                RejectWithdrawalCommand(actor=self.admin, transaction_id=request.transaction_id, notes="  ")
            )
        result = await self.bus.dispatch(
            RejectWithdrawalCommand(actor=self.admin, transaction_id=request.transaction_id, notes="Chave inválida")
        )

        self.assertEqual(result.status, "cancelled")
        self.assertEqual(await self.balance(self.user.id), Decimal("80.00"))
        self.assertEqual(await self.container.reconciler().available_balance(self.user.id), Decimal("80.00"))
        with self.assertRaises(ConflictError):
            await self.approve(request.transaction_id)

    async def test_insufficient_balance_at_approval_leaves_request_pending(self):
        request = await self.request()
        async with self.engine.begin() as conn:
            await conn.execute(
                sa.update(users).where(users.c.id == self.user.id).values(total_commission=Decimal("10.00"))
            )

        with self.assertRaises(InsufficientBalanceError):
            await self.approve(request.transaction_id)

        tx = await self.container.transaction_repo().find_by_id(request.transaction_id)
        self.assertIs(tx.status, TransactionStatus.PENDING)
        self.assertEqual(await self.balance(self.user.id), Decimal("10.00"))
        self.assertEqual(await self.cash_rows(), [])

    async def test_outflow_failure_is_only_a_warning(self):
        request = await self.request()

        with failing(self.container.ledger_repo(), "append_cash_movement"):
            result = await self.approve(request.transaction_id)

        self.assertEqual(result.status, "completed")
        self.assertEqual(len(result.warnings), 1)
        self.assertEqual(await self.balance(self.user.id), Decimal("30.00"))

    async def test_unknown_or_blank_requests(self):
        with self.assertRaises(NotFoundError):
            await self.approve(uuid.uuid4())
        request = await self.request()
        with self.assertRaises(ValidationError):
            await self.approve(request.transaction_id, pix_key=" ")

    async def test_pending_queue_for_admins(self):
        request = await self.request()

        page = await self.queries.dispatch(ListPendingWithdrawalsQuery(actor=self.admin))

        self.assertEqual(page.total, 1)
        item = page.items[0]
        self.assertEqual(item.transaction_id, request.transaction_id)
        self.assertEqual(item.amount, Decimal("50.00"))
        self.assertEqual(item.pix_key, PIX_KEY)
        self.assertEqual(item.user_name, "Carlos Lima")
        with self.assertRaises(AuthorizationError):
            await self.queries.dispatch(ListPendingWithdrawalsQuery(actor=self.owner))
