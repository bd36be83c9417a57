from __future__ import annotations

import re

import phonenumbers
from phonenumbers import NumberParseException


def only_digits(s: str | None) -> str:
    return re.sub(r"\D+", "", s or "")


def _br_basic_normalize(d: str) -> str | None:
    """
    Fallback focado no Brasil:
      - remove prefixos '00' e '0'
      - aceita 10-11 dígitos como DDD+número
      - prefixa 55
      - rejeita <10
    """
    d = only_digits(d)
    if not d:
        return None
    if d.startswith("00"):
        d = d[2:]
    while d.startswith("0"):
        d = d[1:]

    if d.startswith("55") and len(d) in (12, 13):
        return d
    if len(d) in (10, 11):
        return "55" + d
    return None


def normalize_phone(raw: str | None, default_region: str = "BR") -> str | None:
    """
    Telefone só com dígitos e código do país ('5511987654321').
    Retorna None para entradas que não formam um número possível.
    """
    if not raw or not raw.strip():
        return None

    digits = only_digits(raw)
    if digits.startswith("00"):
        digits = digits[2:]

    candidates = []
    # já veio com código do país (com ou sem '+')
    if raw.strip().startswith("+") or (digits.startswith("55") and len(digits) in (12, 13)):
        candidates.append("+" + digits)
    candidates.append(raw)

    for candidate in candidates:
        try:
            num = phonenumbers.parse(candidate, default_region)
        except NumberParseException:
            continue
        if not phonenumbers.is_possible_number(num):
            continue
        e164 = phonenumbers.format_number(num, phonenumbers.PhoneNumberFormat.E164)
        return only_digits(e164)

    return _br_basic_normalize(raw)
