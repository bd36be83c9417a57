"""
Composition-root do *reseller_billing*.

• Devolve um singleton `container` com todos os providers + handlers
  registrados no `command_bus` / `query_bus`.
• `engine` e `policy` opcionais substituem os configurados (testes usam
  SQLite em memória).
"""
from dependency_injector import containers, providers

container = None  # type: ignore


# ────────────────────────────────────────────────────────────────────
def setup_di_container_from_settings(settings, engine=None, policy=None):  # noqa: PLR0915
    """
    Lazy-factory do DI container.  Pode ser chamada quantas vezes
    for necessário – sempre retorna a mesma instância.
    """
    global container                                                 # noqa: PLW0603
    if container is not None:
        import structlog

        structlog.get_logger(__name__).debug(
            "ResellerBilling DI container já instanciado."
        )
        return container

    import structlog

    from reseller_billing.adapters.repositories.commission_account_repo_impl import (
        CommissionAccountRepoImpl,
    )
    from reseller_billing.adapters.repositories.identity_provider_impl import SqlIdentityProvider
    from reseller_billing.adapters.repositories.ledger_repo_impl import LedgerRepoImpl
    from reseller_billing.adapters.repositories.offline_client_repo_impl import OfflineClientRepoImpl
    from reseller_billing.adapters.repositories.recharge_option_repo_impl import RechargeOptionRepoImpl
    from reseller_billing.adapters.repositories.referral_repo_impl import ReferralRepoImpl
    from reseller_billing.adapters.repositories.subscription_repo_impl import SubscriptionRepoImpl
    from reseller_billing.adapters.repositories.tables import build_engine
    from reseller_billing.adapters.repositories.transaction_repo_impl import TransactionRepoImpl
    from reseller_billing.adapters.repositories.user_repo_impl import UserRepoImpl
    from reseller_billing.adapters.security.hash_service import HashService
    from reseller_billing.adapters.security.jwt_service import JWTService
    from reseller_billing.core.application.commands.client_commands import (
        CreateOfflineClientCommand,
        DeleteClientCommand,
        DeleteOfflineClientCommand,
        UpdateOfflineClientCommand,
    )
    from reseller_billing.core.application.commands.commission_commands import (
        ApplyCommissionCommand,
        WithdrawCommissionCommand,
    )
    from reseller_billing.core.application.commands.credit_commands import (
        GrantCreditsCommand,
        GrantOfflineCreditsCommand,
    )
    from reseller_billing.core.application.commands.migration_commands import MigrateOfflineClientCommand
    from reseller_billing.core.application.commands.payment_commands import ProcessPaymentNotificationCommand
    from reseller_billing.core.application.commands.withdrawal_commands import (
        ApproveWithdrawalCommand,
        RejectWithdrawalCommand,
        RequestPixWithdrawalCommand,
    )
    from reseller_billing.core.application.cqrs import CommandBusImpl, QueryBusImpl
    from reseller_billing.core.application.handlers.client_handlers import (
        CreateOfflineClientHandler,
        DeleteClientHandler,
        DeleteOfflineClientHandler,
        UpdateOfflineClientHandler,
    )
    from reseller_billing.core.application.handlers.client_query_handlers import (
        GetClientOverviewHandler,
        GetOfflineClientOverviewHandler,
    )
    from reseller_billing.core.application.handlers.commission_handlers import (
        ApplyCommissionHandler,
        WithdrawCommissionHandler,
    )
    from reseller_billing.core.application.handlers.credit_handlers import (
        GrantCreditsHandler,
        GrantOfflineCreditsHandler,
    )
    from reseller_billing.core.application.handlers.migration_handlers import MigrateOfflineClientHandler
    from reseller_billing.core.application.handlers.payment_handlers import ProcessPaymentNotificationHandler
    from reseller_billing.core.application.handlers.report_handlers import (
        CashSummaryHandler,
        CreditsSoldSummaryHandler,
        GetCommissionAuditHandler,
        ListPendingWithdrawalsHandler,
    )
    from reseller_billing.core.application.handlers.withdrawal_handlers import (
        ApproveWithdrawalHandler,
        RejectWithdrawalHandler,
        RequestPixWithdrawalHandler,
    )
    from reseller_billing.core.application.policy import BillingPolicy
    from reseller_billing.core.application.queries.client_queries import (
        GetClientOverviewQuery,
        GetOfflineClientOverviewQuery,
    )
    from reseller_billing.core.application.queries.report_queries import (
        CashSummaryQuery,
        CreditsSoldSummaryQuery,
        GetCommissionAuditQuery,
        ListPendingWithdrawalsQuery,
    )
    from reseller_billing.core.application.services.commission_reconciler import CommissionReconciler
    from reseller_billing.core.application.services.credit_grant_service import CreditGrantService
    from reseller_billing.core.application.services.keyed_lock import KeyedLock
    from reseller_billing.core.application.services.ledger_recorder import LedgerRecorder
    from reseller_billing.core.application.services.referral_commission_service import (
        ReferralCommissionService,
    )
    from reseller_billing.core.domain.events.events import PaymentCompletedEvent
    from reseller_billing.core.domain.services.event_dispatcher import EventDispatcher

    # política montada aqui: o módulo `settings` não pode ser argumento de provider
    resolved_policy = policy if policy is not None else BillingPolicy.from_settings(settings)


    # ─── CONTAINER ─────────────────────────────────────────────────
    class Container(containers.DeclarativeContainer):
        wiring_config = containers.WiringConfiguration(packages=[])

        # --- configuração -----------------------------------------
        config = providers.Configuration()
        policy = providers.Object(resolved_policy)

        # --- cross-cutting ----------------------------------------
        logger      = providers.Singleton(structlog.get_logger, __name__)
        dispatcher  = providers.Singleton(EventDispatcher)
        command_bus = providers.Singleton(CommandBusImpl, dispatcher=dispatcher)
        query_bus   = providers.Singleton(QueryBusImpl)
        locks       = providers.Singleton(KeyedLock)

        # --- conexões externas ------------------------------------
        engine = providers.Singleton(
            build_engine,
            dsn=config.database.dsn,
            pool_size=config.database.pool_size,
            max_overflow=config.database.max_overflow,
            echo=config.database.echo,
        )

        # --- segurança ---------------------------------------------
        hash_service = providers.Singleton(HashService)
        jwt_service  = providers.Singleton(
            JWTService,
            secret=config.jwt.secret,
            algorithm=config.jwt.algorithm,
        )

        # --- repositórios -----------------------------------------
        user_repo            = providers.Singleton(UserRepoImpl, engine=engine)
        subscription_repo    = providers.Singleton(SubscriptionRepoImpl, engine=engine)
        offline_client_repo  = providers.Singleton(OfflineClientRepoImpl, engine=engine)
        transaction_repo     = providers.Singleton(TransactionRepoImpl, engine=engine)
        referral_repo        = providers.Singleton(ReferralRepoImpl, engine=engine)
        recharge_option_repo = providers.Singleton(RechargeOptionRepoImpl, engine=engine)
        ledger_repo          = providers.Singleton(LedgerRepoImpl, engine=engine)
        account_repo         = providers.Singleton(CommissionAccountRepoImpl, engine=engine)
        identity_provider    = providers.Singleton(SqlIdentityProvider, engine=engine, hasher=hash_service)

        # --- serviços --------------------------------------------
        ledger = providers.Singleton(
            LedgerRecorder,
            ledger_repo=ledger_repo,
            dispatcher=dispatcher,
            policy=policy,
            logger=logger,
        )
        grant_service = providers.Singleton(
            CreditGrantService,
            subscription_repo=subscription_repo,
            offline_client_repo=offline_client_repo,
            ledger=ledger,
            dispatcher=dispatcher,
            policy=policy,
            locks=locks,
            logger=logger,
        )
        reconciler = providers.Singleton(
            CommissionReconciler,
            account_repo=account_repo,
            transaction_repo=transaction_repo,
            referral_repo=referral_repo,
            ledger=ledger,
            dispatcher=dispatcher,
            policy=policy,
            locks=locks,
            logger=logger,
        )
        referral_commission_service = providers.Singleton(
            ReferralCommissionService,
            reconciler=reconciler,
            referral_repo=referral_repo,
            user_repo=user_repo,
            policy=policy,
            logger=logger,
        )

        # --- handlers de comando ----------------------------------
        grant_credits_handler = providers.Factory(
            GrantCreditsHandler,
            user_repo=user_repo,
            recharge_option_repo=recharge_option_repo,
            transaction_repo=transaction_repo,
            grant_service=grant_service,
            ledger=ledger,
            dispatcher=dispatcher,
            logger=logger,
        )
        grant_offline_credits_handler = providers.Factory(
            GrantOfflineCreditsHandler,
            offline_client_repo=offline_client_repo,
            grant_service=grant_service,
            logger=logger,
        )
        payment_notification_handler = providers.Factory(
            ProcessPaymentNotificationHandler,
            transaction_repo=transaction_repo,
            user_repo=user_repo,
            grant_service=grant_service,
            dispatcher=dispatcher,
            policy=policy,
            locks=locks,
            logger=logger,
        )
        apply_commission_handler = providers.Factory(
            ApplyCommissionHandler,
            reconciler=reconciler,
            logger=logger,
        )
        withdraw_commission_handler = providers.Factory(
            WithdrawCommissionHandler,
            reconciler=reconciler,
            user_repo=user_repo,
            subscription_repo=subscription_repo,
            recharge_option_repo=recharge_option_repo,
            grant_service=grant_service,
            logger=logger,
        )
        request_pix_handler = providers.Factory(
            RequestPixWithdrawalHandler,
            reconciler=reconciler,
            dispatcher=dispatcher,
            policy=policy,
            logger=logger,
        )
        approve_withdrawal_handler = providers.Factory(
            ApproveWithdrawalHandler,
            transaction_repo=transaction_repo,
            user_repo=user_repo,
            reconciler=reconciler,
            ledger=ledger,
            dispatcher=dispatcher,
            policy=policy,
            locks=locks,
            logger=logger,
        )
        reject_withdrawal_handler = providers.Factory(
            RejectWithdrawalHandler,
            transaction_repo=transaction_repo,
            dispatcher=dispatcher,
            policy=policy,
            locks=locks,
            logger=logger,
        )
        migrate_handler = providers.Factory(
            MigrateOfflineClientHandler,
            offline_client_repo=offline_client_repo,
            user_repo=user_repo,
            subscription_repo=subscription_repo,
            identity_provider=identity_provider,
            ledger=ledger,
            dispatcher=dispatcher,
            policy=policy,
            locks=locks,
            logger=logger,
        )
        create_offline_client_handler = providers.Factory(
            CreateOfflineClientHandler,
            offline_client_repo=offline_client_repo,
            logger=logger,
        )
        update_offline_client_handler = providers.Factory(
            UpdateOfflineClientHandler,
            offline_client_repo=offline_client_repo,
            locks=locks,
            logger=logger,
        )
        delete_offline_client_handler = providers.Factory(
            DeleteOfflineClientHandler,
            offline_client_repo=offline_client_repo,
            dispatcher=dispatcher,
            locks=locks,
            logger=logger,
        )
        delete_client_handler = providers.Factory(
            DeleteClientHandler,
            user_repo=user_repo,
            subscription_repo=subscription_repo,
            transaction_repo=transaction_repo,
            identity_provider=identity_provider,
            dispatcher=dispatcher,
            locks=locks,
            logger=logger,
        )

        # --- handlers de consulta ---------------------------------
        client_overview_handler = providers.Factory(
            GetClientOverviewHandler,
            user_repo=user_repo,
            subscription_repo=subscription_repo,
            policy=policy,
        )
        offline_overview_handler = providers.Factory(
            GetOfflineClientOverviewHandler,
            offline_client_repo=offline_client_repo,
            policy=policy,
        )
        cash_summary_handler    = providers.Factory(CashSummaryHandler, ledger_repo=ledger_repo)
        credits_summary_handler = providers.Factory(CreditsSoldSummaryHandler, ledger_repo=ledger_repo)
        pending_withdrawals_handler = providers.Factory(
            ListPendingWithdrawalsHandler,
            transaction_repo=transaction_repo,
            user_repo=user_repo,
        )
        commission_audit_handler = providers.Factory(
            GetCommissionAuditHandler,
            reconciler=reconciler,
            logger=logger,
        )

        # ----------------------------------------------------------
        def init(self) -> None:
            """Registra handlers em CommandBus / QueryBus e listeners – executa 1×."""
            bus = self.command_bus()
            bus.register(GrantCreditsCommand, self.grant_credits_handler())
            bus.register(GrantOfflineCreditsCommand, self.grant_offline_credits_handler())
            bus.register(ProcessPaymentNotificationCommand, self.payment_notification_handler())
            bus.register(ApplyCommissionCommand, self.apply_commission_handler())
            bus.register(WithdrawCommissionCommand, self.withdraw_commission_handler())
            bus.register(RequestPixWithdrawalCommand, self.request_pix_handler())
            bus.register(ApproveWithdrawalCommand, self.approve_withdrawal_handler())
            bus.register(RejectWithdrawalCommand, self.reject_withdrawal_handler())
            bus.register(MigrateOfflineClientCommand, self.migrate_handler())
            bus.register(CreateOfflineClientCommand, self.create_offline_client_handler())
            bus.register(UpdateOfflineClientCommand, self.update_offline_client_handler())
            bus.register(DeleteOfflineClientCommand, self.delete_offline_client_handler())
            bus.register(DeleteClientCommand, self.delete_client_handler())

            qry = self.query_bus()
            qry.register(GetClientOverviewQuery, self.client_overview_handler())
            qry.register(GetOfflineClientOverviewQuery, self.offline_overview_handler())
            qry.register(CashSummaryQuery, self.cash_summary_handler())
            qry.register(CreditsSoldSummaryQuery, self.credits_summary_handler())
            qry.register(ListPendingWithdrawalsQuery, self.pending_withdrawals_handler())
            qry.register(GetCommissionAuditQuery, self.commission_audit_handler())

            # comissão de indicação sai de todo pagamento concluído
            self.dispatcher().subscribe(
                PaymentCompletedEvent,
                self.referral_commission_service().on_payment_completed,
            )

    # ─── INSTANTIAÇÃO + CONFIG ─────────────────────────────────────
    container = Container()
    container.config.database.dsn.from_value(settings.DATABASE_DSN)
    container.config.database.pool_size.from_value(settings.DB_POOL_SIZE)
    container.config.database.max_overflow.from_value(settings.DB_MAX_OVERFLOW)
    container.config.database.echo.from_value(settings.DB_ECHO)
    container.config.jwt.secret.from_value(settings.JWT_SECRET)
    container.config.jwt.algorithm.from_value(settings.JWT_ALGORITHM)
    if engine is not None:
        container.engine.override(providers.Object(engine))

    # registra os handlers
    Container.init(container)                                             # type: ignore[attr-defined]
    return container


def reset_container() -> None:
    """Descarta o singleton (testes)."""
    global container                                                 # noqa: PLW0603
    container = None


def bootstrap(settings=None):
    """Configura logging e devolve o container pronto para uso."""
    if settings is None:
        from config import settings as default_settings

        settings = default_settings
    from config.structlog_config import configure_logging

    configure_logging(settings.LOG_LEVEL, settings.JSON_LOGS)
    return setup_di_container_from_settings(settings)
