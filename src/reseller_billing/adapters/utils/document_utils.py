import re

_CPF_LENGTH = 11


def normalize_cpf(cpf: str) -> str:
    """Remove máscara/pontuação (123.456.789-09 → 12345678909)."""
    return re.sub(r"\D", "", cpf or "")


def _check_digit(digits: str, weight_start: int) -> int:
    total = sum(int(d) * w for d, w in zip(digits, range(weight_start, 1, -1), strict=False))
    rest = total % 11
    return 0 if rest < 2 else 11 - rest  # noqa: PLR2004


def is_valid_cpf(cpf: str) -> bool:
    digits = normalize_cpf(cpf)
    if len(digits) != _CPF_LENGTH or digits == digits[0] * _CPF_LENGTH:
        return False
    first = _check_digit(digits[:9], 10)
    second = _check_digit(digits[:9] + str(first), 11)
    return digits[-2:] == f"{first}{second}"
