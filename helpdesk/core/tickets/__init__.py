"""
Domínio de Chamados - Ciclo de vida do chamado.

Este módulo contém a lógica de negócio do chamado de suporte:
- Entidades (TicketEntity, TicketStatus, ActorRole)
- Máquina de estados com tabela de guardas por papel
- Geração do número sequencial (INC0001, INC0002, ...)
- Verificação de expediente do técnico
- Trilha de auditoria append-only
- Use Cases (abrir, alterar status, reabrir, cancelar, histórico)
"""

from .entities import Actor, ActorRole, ServiceRef, TicketEntity, TicketStatus
from .audit import AuditEntry, AuditEventHandler, AuditKind
from .availability import AvailabilityChecker, WorkingHoursWindow
from .sequence import TicketNumberGenerator
from .state_machine import TicketStateMachine, TransitionRule, avaliar_transicao
from .events import (
    TicketCriadoEvent,
    TicketStatusAlteradoEvent,
    TicketReabertoEvent,
    TicketCanceladoEvent,
)
from .ports import TicketRepository, AuditTrail, SequenceCounter
from .use_cases import (
    CriarTicketService,
    AlterarStatusService,
    ReabrirTicketService,
    CancelarTicketService,
    ObterHistoricoService,
    ExcluirTicketService,
    ObterTicketService,
    ListarTicketsService,
)

__all__ = [
    # Entities
    "Actor",
    "ActorRole",
    "ServiceRef",
    "TicketEntity",
    "TicketStatus",
    # Lifecycle
    "AuditEntry",
    "AuditEventHandler",
    "AuditKind",
    "AvailabilityChecker",
    "WorkingHoursWindow",
    "TicketNumberGenerator",
    "TicketStateMachine",
    "TransitionRule",
    "avaliar_transicao",
    # Events
    "TicketCriadoEvent",
    "TicketStatusAlteradoEvent",
    "TicketReabertoEvent",
    "TicketCanceladoEvent",
    # Ports
    "TicketRepository",
    "AuditTrail",
    "SequenceCounter",
    # Use Cases
    "CriarTicketService",
    "AlterarStatusService",
    "ReabrirTicketService",
    "CancelarTicketService",
    "ObterHistoricoService",
    "ExcluirTicketService",
    "ObterTicketService",
    "ListarTicketsService",
]
