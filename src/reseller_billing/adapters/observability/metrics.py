from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

registry = CollectorRegistry()

CREDITS_GRANTED = Counter(
    "billing_credits_granted_total",
    "Concessoes de credito aplicadas",
    ["channel"],
    registry=registry,
)

CREDIT_QUANTITY = Counter(
    "billing_credit_quantity_total",
    "Creditos vendidos (pontos x meses)",
    ["channel"],
    registry=registry,
)

PARTIAL_WRITES = Counter(
    "billing_partial_writes_total",
    "Escritas secundarias que falharam apos a mudanca principal",
    ["table"],
    registry=registry,
)

COMMISSION_MOVEMENTS = Counter(
    "billing_commission_movements_total",
    "Movimentacoes de saldo de comissao",
    ["kind"],
    registry=registry,
)

MIGRATIONS = Counter(
    "billing_migrations_total",
    "Migracoes de clientes offline",
    ["outcome"],
    registry=registry,
)

WITHDRAWALS = Counter(
    "billing_withdrawals_total",
    "Solicitacoes de resgate por desfecho",
    ["outcome"],
    registry=registry,
)

COMMAND_DURATION = Histogram(
    "billing_command_duration_seconds",
    "Tempo de execucao dos comandos",
    ["command"],
    registry=registry,
)


def render_metrics() -> tuple[bytes, str]:
    """Payload de exposição + content-type, para qualquer endpoint HTTP."""
    return generate_latest(registry), CONTENT_TYPE_LATEST
