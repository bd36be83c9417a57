import uuid
from datetime import datetime, timedelta, timezone

import jwt

from reseller_billing.core.application.authorization import Actor
from reseller_billing.core.domain.events.exceptions import AuthorizationError


class JWTService:
    """
    Emissão e validação de tokens JWT dos operadores do painel.
    """

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self._secret = secret
        self._algorithm = algorithm

    def create_token(self, subject: uuid.UUID | str, role: str, expires_in: int = 3600) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(subject),
            "role": role,
            "iat": now,
            "exp": now + timedelta(seconds=int(expires_in)),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode_token(self, token: str) -> dict:
        """
        Decodifica e valida o token. Lança jwt.PyJWTError se inválido ou expirado.
        """
        return jwt.decode(token, self._secret, algorithms=[self._algorithm])

    def actor_from_token(self, token: str) -> Actor:
        try:
            payload = self.decode_token(token)
            return Actor(id=uuid.UUID(payload["sub"]), role=payload.get("role", "user"))
        except (jwt.PyJWTError, KeyError, ValueError) as exc:
            raise AuthorizationError("Token inválido ou expirado") from exc
