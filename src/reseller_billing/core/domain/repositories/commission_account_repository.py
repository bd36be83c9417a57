import uuid
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any

from reseller_billing.core.domain.entities.transaction_entity import TransactionEntity


class CommissionAccountRepository(ABC):
    """
    Saldo de comissão (`users.total_commission`) e a transação que o
    movimenta são gravados na mesma transação de banco.
    """

    @abstractmethod
    async def balance(self, user_id: uuid.UUID) -> Decimal | None:
        """Saldo atual ou None se o usuário não existe."""
        ...

    @abstractmethod
    async def post_movement(self, transaction: TransactionEntity) -> Decimal | None:
        """
        Soma `transaction.amount` (com sinal) ao saldo e insere a transação.
        O update é condicional a `saldo + amount >= 0`; retorna None (sem
        nenhuma escrita) quando o saldo ficaria negativo.
        """
        ...

    @abstractmethod
    async def settle_payout(
        self, transaction_id: uuid.UUID, user_id: uuid.UUID, amount: Decimal, metadata: dict[str, Any]
    ) -> Decimal:
        """
        pending → completed e débito de `amount` no saldo, juntos.
        Levanta ConflictError se a transação não está mais pendente e
        InsufficientBalanceError se o saldo não cobre o valor.
        """
        ...

    @abstractmethod
    async def sum_commission_movements(self, user_id: uuid.UUID) -> Decimal:
        """Soma das transações de comissão/saque concluídas do usuário."""
        ...
