import unittest
from decimal import Decimal

from config import settings
from reseller_billing.adapters.config.composition_root import (
    reset_container,
    setup_di_container_from_settings,
)
from reseller_billing.adapters.repositories.tables import build_engine
from reseller_billing.core.application.commands.credit_commands import GrantCreditsCommand
from reseller_billing.core.application.policy import BillingPolicy
from reseller_billing.core.application.queries.report_queries import CashSummaryQuery


class ContainerFromSettingsTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        reset_container()
        self.engine = build_engine("sqlite+aiosqlite:///:memory:")

    async def asyncTearDown(self):
        await self.engine.dispose()
        reset_container()

    async def test_policy_comes_from_settings_module(self):
        container = setup_di_container_from_settings(settings, engine=self.engine)

        policy = container.policy()
        self.assertEqual(policy, BillingPolicy.from_settings(settings))
        self.assertEqual(policy.pix_min_withdrawal, Decimal(str(settings.PIX_MIN_WITHDRAWAL)))
        self.assertIs(container.ledger().policy, policy)

    async def test_handlers_are_registered_once(self):
        container = setup_di_container_from_settings(settings, engine=self.engine)

        self.assertIs(setup_di_container_from_settings(settings, engine=self.engine), container)
        self.assertIn(GrantCreditsCommand, container.command_bus()._handlers)
        self.assertIn(CashSummaryQuery, container.query_bus()._handlers)

    async def test_explicit_policy_wins(self):
        custom = BillingPolicy(pix_min_withdrawal=Decimal("80.00"))

        container = setup_di_container_from_settings(settings, engine=self.engine, policy=custom)

        self.assertEqual(container.policy(), custom)
        self.assertEqual(container.reconciler().policy.pix_min_withdrawal, Decimal("80.00"))
