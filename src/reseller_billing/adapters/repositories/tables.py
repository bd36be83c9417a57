"""
Esquema relacional (SQLAlchemy Core) compartilhado pelos repositórios.

`transactions.user_id` não tem FK: o histórico financeiro sobrevive à
exclusão do usuário.
"""
import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

metadata = sa.MetaData()

MONEY = sa.Numeric(12, 2)

users = sa.Table(
    "users",
    metadata,
    sa.Column("id", sa.Uuid, primary_key=True),
    sa.Column("full_name", sa.String(255), nullable=False),
    sa.Column("email", sa.String(255), unique=True),
    sa.Column("phone", sa.String(20), index=True),
    sa.Column("cpf", sa.String(14)),
    sa.Column("referral_code", sa.String(32), unique=True),
    sa.Column("referred_by", sa.Uuid),
    sa.Column("total_commission", MONEY, nullable=False, server_default="0"),
    sa.Column("contact_id", sa.Integer),
    sa.Column("birth_date", sa.Date),
    sa.Column("created_at", sa.DateTime(timezone=True)),
    sa.Column("updated_at", sa.DateTime(timezone=True)),
)

subscriptions = sa.Table(
    "subscriptions",
    metadata,
    sa.Column("id", sa.Uuid, primary_key=True),
    sa.Column("user_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False, index=True),
    sa.Column("app_username", sa.String(255), nullable=False),
    sa.Column("app_password", sa.String(255), nullable=False),
    sa.Column("status", sa.String(20), nullable=False, server_default="active"),
    sa.Column("panel_name", sa.String(120)),
    sa.Column("expiration_date", sa.Date),
    sa.Column("monthly_value", MONEY),
    sa.Column("plan_id", sa.Uuid),
    sa.Column("created_at", sa.DateTime(timezone=True)),
    sa.Column("updated_at", sa.DateTime(timezone=True)),
)

offline_clients = sa.Table(
    "offline_clients",
    metadata,
    sa.Column("id", sa.Uuid, primary_key=True),
    sa.Column("name", sa.String(255), nullable=False),
    sa.Column("phone", sa.String(20), nullable=False, index=True),
    sa.Column("email", sa.String(255)),
    sa.Column("cpf", sa.String(14)),
    sa.Column("contact_id", sa.Integer),
    sa.Column("monthly_value", MONEY),
    sa.Column("expiration_date", sa.Date),
    *[
        col
        for pos in (1, 2, 3)
        for col in (
            sa.Column(f"panel_{pos}", sa.String(120)),
            sa.Column(f"username_{pos}", sa.String(255)),
            sa.Column(f"password_{pos}", sa.String(255)),
        )
    ],
    sa.Column("migrated_to_user_id", sa.Uuid),
    sa.Column("migrated_at", sa.DateTime(timezone=True)),
    sa.Column("created_at", sa.DateTime(timezone=True)),
    sa.Column("updated_at", sa.DateTime(timezone=True)),
)

transactions = sa.Table(
    "transactions",
    metadata,
    sa.Column("id", sa.Uuid, primary_key=True),
    sa.Column("user_id", sa.Uuid, nullable=False, index=True),
    sa.Column("type", sa.String(32), nullable=False),
    sa.Column("amount", MONEY, nullable=False),
    sa.Column("status", sa.String(16), nullable=False),
    sa.Column("payment_method", sa.String(32)),
    sa.Column("description", sa.Text),
    sa.Column("details", sa.JSON, nullable=False, default=dict),
    sa.Column("source_id", sa.Uuid),
    sa.Column("created_at", sa.DateTime(timezone=True)),
    sa.Column("updated_at", sa.DateTime(timezone=True)),
    # uma comissão por pagamento de origem
    sa.UniqueConstraint("type", "source_id", name="uq_transactions_type_source"),
)

referrals = sa.Table(
    "referrals",
    metadata,
    sa.Column("id", sa.Uuid, primary_key=True),
    sa.Column("referrer_id", sa.Uuid, nullable=False, index=True),
    sa.Column("referred_id", sa.Uuid, nullable=False, unique=True),
    sa.Column("total_commission_earned", MONEY, nullable=False, server_default="0"),
    sa.Column("last_commission_date", sa.Date),
    sa.Column("created_at", sa.DateTime(timezone=True)),
)

recharge_options = sa.Table(
    "recharge_options",
    metadata,
    sa.Column("id", sa.Uuid, primary_key=True),
    sa.Column("display_name", sa.String(120), nullable=False),
    sa.Column("duration_months", sa.Integer, nullable=False),
    sa.Column("price", MONEY, nullable=False),
    sa.Column("plan_type", sa.String(32)),
    sa.Column("period", sa.String(32)),
    sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
)

cash_movements = sa.Table(
    "cash_movements",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("date", sa.Date, nullable=False, index=True),
    sa.Column("description", sa.Text, nullable=False),
    sa.Column("inflow", MONEY, nullable=False, server_default="0"),
    sa.Column("outflow", MONEY, nullable=False, server_default="0"),
    sa.Column("created_at", sa.DateTime(timezone=True)),
)

credits_sold = sa.Table(
    "credits_sold",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("date", sa.Date, nullable=False, index=True),
    sa.Column("description", sa.Text, nullable=False),
    sa.Column("credit_quantity", sa.Integer, nullable=False),
    sa.Column("panel_name", sa.String(120)),
    sa.Column("created_at", sa.DateTime(timezone=True)),
)

auth_identities = sa.Table(
    "auth_identities",
    metadata,
    sa.Column("id", sa.Uuid, primary_key=True),
    sa.Column("email", sa.String(255), nullable=False, unique=True),
    sa.Column("password_hash", sa.String(255), nullable=False),
    sa.Column("user_metadata", sa.JSON),
    sa.Column("created_at", sa.DateTime(timezone=True)),
)


def build_engine(dsn: str, pool_size: int = 5, max_overflow: int = 2, echo: bool = False) -> AsyncEngine:
    """Engine async. SQLite em memória usa uma única conexão compartilhada."""
    if dsn.startswith("sqlite"):
        if ":memory:" in dsn or dsn.rstrip("/").endswith(":"):
            return create_async_engine(dsn, poolclass=StaticPool, echo=echo)
        return create_async_engine(dsn, echo=echo)
    return create_async_engine(dsn, pool_size=pool_size, max_overflow=max_overflow, echo=echo)


async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
