from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True, slots=True)
class BillingPolicy:
    """Constantes de negócio configuráveis (ver `config.settings`)."""
    business_timezone: str = "America/Sao_Paulo"
    pix_min_withdrawal: Decimal = Decimal("50.00")
    credit_min_redemption: Decimal = Decimal("35.00")
    commission_rate: Decimal = Decimal("0.10")
    default_payment_duration_days: int = 30
    ledger_write_max_tries: int = 3
    referral_code_length: int = 8
    referral_code_max_attempts: int = 10
    temp_password_length: int = 8

    @classmethod
    def from_settings(cls, settings) -> BillingPolicy:
        return cls(
            business_timezone=settings.BUSINESS_TIMEZONE,
            pix_min_withdrawal=Decimal(str(settings.PIX_MIN_WITHDRAWAL)),
            credit_min_redemption=Decimal(str(settings.CREDIT_MIN_REDEMPTION)),
            commission_rate=Decimal(str(settings.COMMISSION_RATE)),
            default_payment_duration_days=int(settings.DEFAULT_PAYMENT_DURATION_DAYS),
            ledger_write_max_tries=int(settings.LEDGER_WRITE_MAX_TRIES),
            referral_code_length=int(settings.REFERRAL_CODE_LENGTH),
            referral_code_max_attempts=int(settings.REFERRAL_CODE_MAX_ATTEMPTS),
            temp_password_length=int(settings.TEMP_PASSWORD_LENGTH),
        )
