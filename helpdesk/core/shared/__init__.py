"""
Shared Domain Components.

Contém componentes compartilhados entre todos os domínios:
- Exceções de domínio
- Interfaces (Ports) 
- Base classes para Domain Events
"""

from .exceptions import (
    DomainException,
    ValidationError,
    PermissionDeniedError,
    EntityNotFoundError,
    ConflictError,
    ConcurrencyError,
    TerminalStateError,
    BusinessRuleViolationError,
    DependencyFailureError,
    LockTimeoutError,
)
from .events import DomainEvent
from .interfaces import UnitOfWork, EventPublisher

__all__ = [
    "DomainException",
    "ValidationError",
    "PermissionDeniedError",
    "EntityNotFoundError",
    "ConflictError",
    "ConcurrencyError",
    "TerminalStateError",
    "BusinessRuleViolationError",
    "DependencyFailureError",
    "LockTimeoutError",
    "DomainEvent",
    "UnitOfWork",
    "EventPublisher",
]
