from __future__ import annotations

from datetime import date

from reseller_billing.core.application.cqrs import QueryHandler
from reseller_billing.core.application.dtos.client_dto import ClientOverviewDTO, SubscriptionOverviewDTO
from reseller_billing.core.application.policy import BillingPolicy
from reseller_billing.core.application.queries.client_queries import (
    GetClientOverviewQuery,
    GetOfflineClientOverviewQuery,
)
from reseller_billing.core.domain.events.exceptions import NotFoundError
from reseller_billing.core.domain.repositories.offline_client_repository import OfflineClientRepository
from reseller_billing.core.domain.repositories.subscription_repository import SubscriptionRepository
from reseller_billing.core.domain.repositories.user_repository import UserRepository
from reseller_billing.core.domain.services.expiration_engine import business_today
from reseller_billing.core.domain.services.status_classifier import (
    classify_plan,
    classify_status,
    classify_subscriptions,
    days_until,
    dominant_subscription,
)


class GetClientOverviewHandler(QueryHandler[GetClientOverviewQuery, ClientOverviewDTO]):
    """
    Visão de um cliente online. Status calculado na leitura a partir da
    assinatura dominante; plano pela quantidade de assinaturas ativas.
    """
    def __init__(self, user_repo: UserRepository, subscription_repo: SubscriptionRepository, policy: BillingPolicy):
        self.user_repo = user_repo
        self.subscription_repo = subscription_repo
        self.policy = policy

    async def handle(self, query: GetClientOverviewQuery) -> ClientOverviewDTO:
        user = await self.user_repo.find_by_id(query.user_id)
        if user is None:
            raise NotFoundError("Cliente não encontrado")
        today: date = query.today or business_today(self.policy.business_timezone)

        subscriptions = await self.subscription_repo.list_by_user(user.id)
        main = dominant_subscription(subscriptions)
        expiration = main.expiration_date if main else None
        status = classify_status(expiration, today)
        plan = classify_subscriptions(subscriptions)

        return ClientOverviewDTO(
            id=user.id,
            kind="online",
            name=user.full_name,
            phone=user.phone,
            email=user.email,
            status=status.value,
            status_label=status.label,
            expiration_date=expiration,
            days_until_expiration=days_until(expiration, today),
            plan_tier=plan.tier,
            plan_type=plan.plan_type,
            plan_label=plan.label,
            total_commission=user.total_commission,
            referral_code=user.referral_code,
            subscriptions=[
                SubscriptionOverviewDTO(
                    id=s.id,
                    panel_name=s.panel_name,
                    app_username=s.app_username,
                    status=s.status,
                    expiration_date=s.expiration_date,
                    derived_status=classify_status(s.expiration_date, today).value,
                    days_until_expiration=days_until(s.expiration_date, today),
                )
                for s in subscriptions
            ],
        )


class GetOfflineClientOverviewHandler(QueryHandler[GetOfflineClientOverviewQuery, ClientOverviewDTO]):
    def __init__(self, offline_client_repo: OfflineClientRepository, policy: BillingPolicy):
        self.offline_client_repo = offline_client_repo
        self.policy = policy

    async def handle(self, query: GetOfflineClientOverviewQuery) -> ClientOverviewDTO:
        client = await self.offline_client_repo.find_by_id(query.client_id)
        if client is None:
            raise NotFoundError("Cliente offline não encontrado")
        today = query.today or business_today(self.policy.business_timezone)
        status = classify_status(client.expiration_date, today)
        plan = classify_plan(client.slots)
        return ClientOverviewDTO(
            id=client.id,
            kind="offline",
            name=client.name,
            phone=client.phone,
            email=client.email,
            status=status.value,
            status_label=status.label,
            expiration_date=client.expiration_date,
            days_until_expiration=days_until(client.expiration_date, today),
            plan_tier=plan.tier,
            plan_type=plan.plan_type,
            plan_label=plan.label,
            migration_state=client.migration_state.value,
            migrated_to_user_id=client.migrated_to_user_id,
        )
