import unittest
import uuid
from datetime import date, datetime

from reseller_billing.core.domain.entities.client_entity import CredentialSlot
from reseller_billing.core.domain.entities.subscription_entity import SubscriptionEntity
from reseller_billing.core.domain.services.status_classifier import (
    ClientStatus,
    classify_plan,
    classify_status,
    classify_subscriptions,
    days_until,
    dominant_subscription,
    plan_for_tier,
)

TODAY = date(2025, 6, 1)


def _sub(status="active", expiration=None):
    return SubscriptionEntity(
        id=uuid.uuid4(),
        user_id=uuid.uuid4(),
        app_username="cliente",
        app_password="senha",
        status=status,
        expiration_date=expiration,
    )


class ClassifyStatusTests(unittest.TestCase):
    def test_expiring_today_is_still_active(self):
        self.assertIs(classify_status(TODAY, TODAY), ClientStatus.ACTIVE)

    def test_yesterday_is_expired(self):
        self.assertIs(classify_status(date(2025, 5, 31), TODAY), ClientStatus.EXPIRED)

    def test_missing_expiration_is_active(self):
        self.assertIs(classify_status(None, TODAY), ClientStatus.ACTIVE)

    def test_datetimes_are_compared_by_date_only(self):
        late_today = datetime(2025, 6, 1, 23, 59)
        self.assertIs(classify_status(datetime(2025, 6, 1, 0, 1), late_today), ClientStatus.ACTIVE)

    def test_labels(self):
        self.assertEqual(ClientStatus.ACTIVE.label, "Ativo")
        self.assertEqual(ClientStatus.EXPIRED.label, "Expirado")


class ClassifyPlanTests(unittest.TestCase):
    def test_counts_filled_slots_regardless_of_position(self):
        slots = (
            CredentialSlot(username="a", password=""),
            CredentialSlot(),
            CredentialSlot(username="c", password="3"),
        )
        plan = classify_plan(slots)
        self.assertEqual(plan.tier, 1)
        self.assertEqual(plan.label, "Ponto Único")

    def test_whitespace_does_not_fill_a_slot(self):
        plan = classify_plan([CredentialSlot(username="  ", password="x")])
        self.assertEqual(plan.tier, 0)
        self.assertEqual(plan.label, "Sem Plano")
        self.assertIsNone(plan.plan_type)

    def test_three_slots(self):
        slots = [CredentialSlot(username=f"u{i}", password="p") for i in range(3)]
        self.assertEqual(classify_plan(slots).plan_type, "ponto_triplo")

    def test_out_of_range_tier_falls_back_to_no_plan(self):
        self.assertEqual(plan_for_tier(5).tier, 0)

    def test_online_plan_counts_active_subscriptions(self):
        subs = [_sub("active"), _sub("expired"), _sub("active")]
        self.assertEqual(classify_subscriptions(subs).label, "Ponto Duplo")


class DominantSubscriptionTests(unittest.TestCase):
    def test_first_active_wins(self):
        expired, active = _sub("expired"), _sub("active")
        self.assertIs(dominant_subscription([expired, active]), active)

    def test_falls_back_to_first(self):
        first = _sub("cancelled")
        self.assertIs(dominant_subscription([first, _sub("expired")]), first)

    def test_empty(self):
        self.assertIsNone(dominant_subscription([]))

    def test_days_until(self):
        self.assertEqual(days_until(date(2025, 6, 11), TODAY), 10)
        self.assertEqual(days_until(date(2025, 5, 30), TODAY), -2)
        self.assertIsNone(days_until(None, TODAY))
