"""
Cálculo de novas datas de expiração.

Regra de base: se a expiração atual é posterior a hoje, estende a partir
dela; caso contrário (vencida, sem data ou vencendo hoje) a base é hoje.
Quando a expiração é igual a hoje as duas bases coincidem.
"""
from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from reseller_billing.core.domain.events.exceptions import ValidationError
from reseller_billing.core.domain.services.status_classifier import as_date


def _require_positive_int(value: object, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{name} deve ser um número inteiro maior que 0")
    return value


def add_months(base: date, months: int) -> date:
    """Soma meses de calendário, limitando ao último dia do mês de destino."""
    month_index = base.month - 1 + months
    year = base.year + month_index // 12
    month = month_index % 12 + 1
    day = min(base.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def baseline(current_expiration: date | datetime | None, now: date | datetime) -> date:
    current = as_date(current_expiration)
    today = as_date(now)
    if current is not None and current > today:
        return current
    return today


def extend(current_expiration: date | datetime | None, duration_months: int, now: date | datetime) -> date:
    _require_positive_int(duration_months, "durationMonths")
    return add_months(baseline(current_expiration, now), duration_months)


def extend_by_days(current_expiration: date | datetime | None, duration_days: int, now: date | datetime) -> date:
    _require_positive_int(duration_days, "durationDays")
    return baseline(current_expiration, now) + timedelta(days=duration_days)


def business_now(tz_name: str) -> datetime:
    return datetime.now(ZoneInfo(tz_name))


def business_today(tz_name: str) -> date:
    """'Hoje' no fuso do negócio (nunca a data UTC)."""
    return business_now(tz_name).date()
