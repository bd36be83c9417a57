import uuid
from abc import ABC, abstractmethod

from reseller_billing.core.domain.entities.client_entity import UserEntity


class UserRepository(ABC):
    @abstractmethod
    async def find_by_id(self, user_id: uuid.UUID) -> UserEntity | None: ...

    @abstractmethod
    async def find_by_email(self, email: str) -> UserEntity | None:
        """Busca case-insensitive por e-mail."""
        ...

    @abstractmethod
    async def find_by_phone(self, phone: str) -> UserEntity | None: ...

    @abstractmethod
    async def find_by_referral_code(self, code: str) -> UserEntity | None: ...

    @abstractmethod
    async def create(self, user: UserEntity) -> UserEntity: ...

    @abstractmethod
    async def delete(self, user_id: uuid.UUID) -> bool:
        """Remove o registro do usuário. Transações e livros-caixa não são tocados."""
        ...
