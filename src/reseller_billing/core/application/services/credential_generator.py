import secrets
import string
from collections.abc import Awaitable, Callable

from reseller_billing.core.domain.events.exceptions import GenerationExhaustedError

_UPPER = string.ascii_uppercase
_LOWER = string.ascii_lowercase
_DIGITS = string.digits
REFERRAL_ALPHABET = _UPPER + _DIGITS


def generate_temp_password(length: int = 8) -> str:
    """Senha temporária com ao menos uma maiúscula, uma minúscula e um dígito."""
    length = max(length, 8)
    chars = [secrets.choice(_UPPER), secrets.choice(_LOWER), secrets.choice(_DIGITS)]
    pool = _UPPER + _LOWER + _DIGITS
    chars += [secrets.choice(pool) for _ in range(length - len(chars))]
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


def generate_referral_code(length: int = 8) -> str:
    return "".join(secrets.choice(REFERRAL_ALPHABET) for _ in range(length))


async def generate_unique_referral_code(
    is_taken: Callable[[str], Awaitable[bool]],
    length: int = 8,
    max_attempts: int = 10,
    generator: Callable[[int], str] = generate_referral_code,
) -> str:
    for _ in range(max_attempts):
        code = generator(length)
        if not await is_taken(code):
            return code
    raise GenerationExhaustedError(
        f"Não foi possível gerar um código de indicação único após {max_attempts} tentativas"
    )
