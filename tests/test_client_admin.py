import uuid
from datetime import timedelta
from decimal import Decimal

from reseller_billing.core.application.authorization import Actor
from reseller_billing.core.application.commands.client_commands import (
    CreateOfflineClientCommand,
    DeleteClientCommand,
    DeleteOfflineClientCommand,
    UpdateOfflineClientCommand,
)
from reseller_billing.core.application.commands.credit_commands import GrantCreditsCommand
from reseller_billing.core.application.dtos.client_dto import (
    CredentialSlotDTO,
    OfflineClientCreateDTO,
    OfflineClientUpdateDTO,
)
from reseller_billing.core.application.queries.client_queries import (
    GetClientOverviewQuery,
    GetOfflineClientOverviewQuery,
)
from reseller_billing.core.domain.events.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from tests.helpers.billing_env import BillingTestCase


def _payload(**overrides):
    data = {
        "name": " Ana Costa ",
        "phone": "(31) 99111-2222",
        "slots": [
            CredentialSlotDTO(panel_name="Uniplay", username="ana1", password="x1"),
            CredentialSlotDTO(username=" ", password="y"),
        ],
        "expiration_date": "2025-07-10",
        "cpf": "529.982.247-25",
        "email": "",
    }
    data.update(overrides)
    return OfflineClientCreateDTO(**data)


class OfflineClientAdminTests(BillingTestCase):
    async def create(self, **overrides):
        return await self.bus.dispatch(CreateOfflineClientCommand(actor=self.admin, payload=_payload(**overrides)))

    async def test_create_normalizes_fields(self):
        result = await self.create()

        client = await self.container.offline_client_repo().find_by_id(result.client_id)
        self.assertEqual(client.name, "Ana Costa")
        self.assertEqual(client.phone, "5531991112222")
        self.assertEqual(client.cpf, "52998224725")
        self.assertIsNone(client.email)
        self.assertEqual(len(client.filled_slots), 1)
        self.assertIsNone(client.slot(2).username)

    async def test_create_rejects_bad_input(self):
        with self.assertRaises(ValidationError):
            await self.create(phone="123")
        with self.assertRaises(ValidationError):
            await self.create(cpf="111.111.111-11")
        with self.assertRaises(ValidationError):
            await self.create(slots=[CredentialSlotDTO(username="so-usuario")])
        with self.assertRaises(AuthorizationError):
            await self.bus.dispatch(CreateOfflineClientCommand(actor=Actor(id=uuid.uuid4()), payload=_payload()))

    async def test_update_patches_only_given_fields(self):
        client = await self.seed_offline_client(logins=1)

        await self.bus.dispatch(
            UpdateOfflineClientCommand(
                actor=self.admin,
                client_id=client.id,
                payload=OfflineClientUpdateDTO(
                    phone="21 98888-7777",
                    slots=[
                        CredentialSlotDTO(panel_name="Uniplay", username="novo1", password="a"),
                        CredentialSlotDTO(username="novo2", password="b"),
                        CredentialSlotDTO(username="novo3", password="c"),
                    ],
                ),
            )
        )

        stored = await self.container.offline_client_repo().find_by_id(client.id)
        self.assertEqual(stored.name, client.name)
        self.assertEqual(stored.phone, "5521988887777")
        self.assertEqual([s.username for s in stored.filled_slots], ["novo1", "novo2", "novo3"])

        overview = await self.queries.dispatch(
            GetOfflineClientOverviewQuery(client_id=client.id, today=self.today)
        )
        self.assertEqual(overview.plan_label, "Ponto Triplo")
        self.assertEqual(overview.migration_state, "offline")

    async def test_migrated_record_is_read_only(self):
        client = await self.seed_offline_client()
        user = await self.seed_user()
        await self.container.offline_client_repo().mark_migrated(client.id, user.id, None)

        with self.assertRaises(ConflictError):
            await self.bus.dispatch(
                UpdateOfflineClientCommand(
                    actor=self.admin, client_id=client.id, payload=OfflineClientUpdateDTO(name="Outro")
                )
            )
        with self.assertRaises(ConflictError):
            await self.bus.dispatch(DeleteOfflineClientCommand(actor=self.admin, client_id=client.id))

    async def test_delete_offline_client(self):
        client = await self.seed_offline_client()

        await self.bus.dispatch(DeleteOfflineClientCommand(actor=self.admin, client_id=client.id))

        self.assertIsNone(await self.container.offline_client_repo().find_by_id(client.id))
        with self.assertRaises(NotFoundError):
            await self.bus.dispatch(DeleteOfflineClientCommand(actor=self.admin, client_id=client.id))


class DeleteOnlineClientTests(BillingTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.user = await self.seed_user()
        await self.seed_subscription(self.user.id, self.today)
        await self.seed_subscription(self.user.id, self.today, status="expired")
        await self.bus.dispatch(
            GrantCreditsCommand(actor=self.admin, user_id=self.user.id, duration_months=1, amount=Decimal("30"))
        )

    async def test_dry_run_changes_nothing(self):
        report = await self.bus.dispatch(DeleteClientCommand(actor=self.admin, user_id=self.user.id, dry_run=True))

        self.assertTrue(report.dry_run)
        self.assertEqual(report.subscriptions_deleted, 2)
        self.assertEqual(report.transactions_preserved, 1)
        self.assertIsNotNone(await self.container.user_repo().find_by_id(self.user.id))

    async def test_delete_keeps_financial_history(self):
        report = await self.bus.dispatch(DeleteClientCommand(actor=self.admin, user_id=self.user.id))

        self.assertTrue(report.user_deleted)
        self.assertEqual(report.subscriptions_deleted, 2)
        self.assertIsNone(await self.container.user_repo().find_by_id(self.user.id))
        self.assertEqual(await self.container.subscription_repo().list_by_user(self.user.id), [])
        self.assertEqual(await self.container.transaction_repo().count_by_user(self.user.id), 1)
        self.assertEqual(len(await self.cash_rows()), 1)
        self.assertEqual(len(await self.credit_rows()), 1)

    async def test_unknown_client(self):
        with self.assertRaises(NotFoundError):
            await self.bus.dispatch(DeleteClientCommand(actor=self.admin, user_id=uuid.uuid4()))


class ClientOverviewTests(BillingTestCase):
    async def test_status_and_plan_are_derived_on_read(self):
        user = await self.seed_user()
        await self.seed_subscription(user.id, self.today - timedelta(days=3), status="expired")
        active = await self.seed_subscription(user.id, self.today + timedelta(days=5))
        await self.seed_subscription(user.id, self.today + timedelta(days=20))

        overview = await self.queries.dispatch(GetClientOverviewQuery(user_id=user.id, today=self.today))

        self.assertEqual(overview.status, "active")
        self.assertEqual(overview.expiration_date, active.expiration_date)
        self.assertEqual(overview.days_until_expiration, 5)
        self.assertEqual(overview.plan_label, "Ponto Duplo")
        self.assertEqual([s.derived_status for s in overview.subscriptions], ["expired", "active", "active"])

        later = await self.queries.dispatch(
            GetClientOverviewQuery(user_id=user.id, today=self.today + timedelta(days=6))
        )
        self.assertEqual(later.status_label, "Expirado")

    async def test_offline_client_without_expiration_is_active(self):
        client = await self.seed_offline_client(expiration=None, logins=0)
        overview = await self.queries.dispatch(GetOfflineClientOverviewQuery(client_id=client.id))
        self.assertEqual(overview.status, "active")
        self.assertEqual(overview.plan_tier, 0)
        self.assertIsNone(overview.days_until_expiration)
