class BillingError(Exception):
    """Classe base para todos os erros de negócio do core financeiro."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BillingError):
    """
    Entrada com formato ou faixa inválida.
    Exemplos:
    - duração em meses não positiva ou não inteira;
    - e-mail inválido;
    - chave PIX ou motivo de cancelamento em branco;
    - valor abaixo do mínimo de resgate.
    """


class NotFoundError(BillingError):
    """Cliente, cliente offline, assinatura, opção de recarga ou transação inexistente."""


class ConflictError(BillingError):
    """
    Estado atual impede a operação.
    Exemplos:
    - cliente offline já migrado;
    - e-mail já cadastrado;
    - resgate que não está mais pendente.
    """


class InsufficientBalanceError(ConflictError):
    """Saque/aprovação acima do saldo de comissão disponível."""


class GenerationExhaustedError(BillingError):
    """Não foi possível gerar um código de indicação único dentro do limite de tentativas."""


class AuthorizationError(BillingError):
    """O ator da requisição não tem permissão para a operação."""


class PartialWriteWarning(Warning):
    """
    Escrita secundária (caixa, créditos vendidos, transação) falhou depois
    que a mudança principal já foi confirmada. Não aborta a operação: é
    registrada em log, métrica e evento para conciliação posterior.
    """

    def __init__(self, table: str, reference: str, error: str):
        super().__init__(f"Falha ao gravar em {table} ({reference}): {error}")
        self.table = table
        self.reference = reference
        self.error = error
