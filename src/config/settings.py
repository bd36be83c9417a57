from pathlib import Path

from decouple import config

# -------------------------------
# Diretórios base
# -------------------------------
BASE_DIR = Path(__file__).resolve().parents[2]

# -------------------------------
# Banco de dados (SQLAlchemy async)
# -------------------------------
DATABASE_DSN    = config("DATABASE_DSN", default=f"sqlite+aiosqlite:///{BASE_DIR / 'reseller_billing.db'}")
DB_POOL_SIZE    = config("DB_POOL_SIZE", default=5, cast=int)
DB_MAX_OVERFLOW = config("DB_MAX_OVERFLOW", default=2, cast=int)
DB_ECHO         = config("DB_ECHO", default=False, cast=bool)

# -------------------------------
# Fuso horário do negócio
# -------------------------------
# Datas de caixa / créditos vendidos e o "hoje" das expirações usam este fuso,
# nunca o "agora" em UTC.
BUSINESS_TIMEZONE = config("BUSINESS_TIMEZONE", default="America/Sao_Paulo")

# -------------------------------
# Política financeira
# -------------------------------
PIX_MIN_WITHDRAWAL    = config("PIX_MIN_WITHDRAWAL", default="50.00")
CREDIT_MIN_REDEMPTION = config("CREDIT_MIN_REDEMPTION", default="35.00")
COMMISSION_RATE       = config("COMMISSION_RATE", default="0.10")

DEFAULT_PAYMENT_DURATION_DAYS = config("DEFAULT_PAYMENT_DURATION_DAYS", default=30, cast=int)
LEDGER_WRITE_MAX_TRIES        = config("LEDGER_WRITE_MAX_TRIES", default=3, cast=int)

# -------------------------------
# Migração de clientes offline
# -------------------------------
REFERRAL_CODE_LENGTH       = config("REFERRAL_CODE_LENGTH", default=8, cast=int)
REFERRAL_CODE_MAX_ATTEMPTS = config("REFERRAL_CODE_MAX_ATTEMPTS", default=10, cast=int)
TEMP_PASSWORD_LENGTH       = config("TEMP_PASSWORD_LENGTH", default=8, cast=int)

# -------------------------------
# Autenticação
# -------------------------------
JWT_SECRET    = config("JWT_SECRET", default="")
JWT_ALGORITHM = config("JWT_ALGORITHM", default="HS256")

# -------------------------------
# Logging
# -------------------------------
LOG_LEVEL = config("LOG_LEVEL", default="INFO")
JSON_LOGS = config("JSON_LOGS", default=False, cast=bool)
