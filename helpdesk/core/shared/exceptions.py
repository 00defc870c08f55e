"""
Exceções de Domínio do Helpdesk.

Este módulo define exceções específicas do domínio que permitem
comunicar erros de forma clara e tipada entre as camadas.

Hierarquia:
    DomainException (base)
    ├── ValidationError (entrada malformada ou ausente)
    ├── PermissionDeniedError (papel ou propriedade violados)
    ├── EntityNotFoundError (entidade não existe)
    ├── ConflictError (estado mudou ou é terminal)
    │   ├── ConcurrencyError (compare-and-swap falhou)
    │   └── TerminalStateError (chamado em estado terminal)
    ├── BusinessRuleViolationError (regra de negócio violada)
    └── DependencyFailureError (store/sequência indisponível, retentável)
        └── LockTimeoutError (linha do chamado não obtida a tempo)
"""


class DomainException(Exception):
    """
    Exceção base para todos os erros de domínio.

    Todas as exceções específicas do domínio devem herdar desta classe.
    Isso permite capturar qualquer erro de domínio de forma genérica.

    Example:
        try:
            service.execute(input_dto)
        except DomainException as e:
            logger.error(f"Erro de domínio: {e}")
    """

    retryable = False

    def __init__(self, message: str, code: str = None):
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict:
        """Serializa exceção para dicionário (útil para APIs)."""
        return {
            "error": self.code,
            "message": self.message,
        }


class ValidationError(DomainException):
    """
    Erro de validação de dados de entrada.

    Lançada quando dados fornecidos não atendem aos requisitos
    mínimos para processamento. Nunca é retentada.

    Example:
        if not descricao.strip():
            raise ValidationError("Descrição é obrigatória", field="descricao")
    """

    def __init__(self, message: str, field: str = None):
        self.field = field
        code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(message, code)

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        return result


class PermissionDeniedError(DomainException):
    """
    Ator sem permissão para a operação.

    Violação de papel (técnico tentando cancelar) ou de
    propriedade (usuário reabrindo chamado de outra pessoa).
    """

    def __init__(self, message: str, action: str = None):
        self.action = action
        super().__init__(message, "PERMISSION_DENIED")

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.action:
            result["action"] = self.action
        return result


class EntityNotFoundError(DomainException):
    """
    Entidade não encontrada no repositório.

    Lançada quando uma busca por ID não retorna resultado.

    Example:
        ticket = repo.get_by_id(ticket_id)
        if not ticket:
            raise EntityNotFoundError(f"Chamado {ticket_id} não encontrado")
    """

    def __init__(self, message: str, entity_type: str = None, entity_id: str = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(message, "ENTITY_NOT_FOUND")

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.entity_type:
            result["entity_type"] = self.entity_type
        if self.entity_id:
            result["entity_id"] = self.entity_id
        return result


class ConflictError(DomainException):
    """
    O estado atual do chamado impede a operação.

    O chamador pode tentar novamente após reler o estado atual.
    """

    def __init__(self, message: str, rule: str = None, code: str = "CONFLICT"):
        self.rule = rule
        super().__init__(message, code)

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.rule:
            result["rule"] = self.rule
        return result


class ConcurrencyError(ConflictError):
    """
    Erro de concorrência/conflito de versão.

    Lançada quando o compare-and-swap do repositório não encontra
    a versão esperada: outro processo alterou o chamado antes.

    Example:
        if atual.versao != expected_version:
            raise ConcurrencyError("Chamado foi modificado por outro processo")
    """

    def __init__(self, message: str):
        super().__init__(message, rule="modificacao_concorrente", code="CONCURRENCY_ERROR")


class TerminalStateError(ConflictError):
    """Transição solicitada a partir de um estado terminal."""

    def __init__(self, message: str):
        super().__init__(message, rule="estado_terminal", code="TERMINAL_STATE")


class BusinessRuleViolationError(DomainException):
    """
    Violação de regra de negócio.

    Lançada quando uma operação viola uma regra de negócio
    estabelecida no domínio. O atributo `rule` distingue cada regra
    (fora_do_expediente, prazo_reabertura_expirado, ...).

    Example:
        if not checker.is_within_working_hours(tecnico_id, agora):
            raise BusinessRuleViolationError(
                "Fora do horário de expediente",
                rule="fora_do_expediente",
            )
    """

    def __init__(self, message: str, rule: str = None):
        self.rule = rule
        super().__init__(message, "BUSINESS_RULE_VIOLATION")

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.rule:
            result["rule"] = self.rule
        return result


class DependencyFailureError(DomainException):
    """
    Falha transitória de infraestrutura.

    Banco, contador de sequência ou lock indisponíveis. Nunca
    resulta em chamado parcialmente criado; seguro para retentar.
    """

    retryable = True

    def __init__(self, message: str, dependency: str = None, code: str = "DEPENDENCY_FAILURE"):
        self.dependency = dependency
        super().__init__(message, code)

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.dependency:
            result["dependency"] = self.dependency
        result["retryable"] = self.retryable
        return result


class LockTimeoutError(DependencyFailureError):
    """Linha do chamado não pôde ser travada dentro do tempo limite."""

    def __init__(self, message: str):
        super().__init__(message, dependency="ticket_repository", code="LOCK_TIMEOUT")
