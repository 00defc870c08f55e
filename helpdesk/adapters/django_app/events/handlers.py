"""
Event Handlers - Tarefas Celery dos eventos de chamado.

A transição de estado é comitada primeiro; a gravação do histórico
é uma tarefa separada e retentável. Isso evita uma transação
distribuída entre o chamado e o histórico.

Tarefas:
- dispatch_domain_event: Roteia eventos publicados pelo CeleryEventPublisher
- registrar_entrada_auditoria: Grava uma AuditEntry (idempotente)

Padrão:
    @shared_task(bind=True, ...)
    def tarefa(self, payload: dict) -> None:
        ...
"""

import logging
from typing import Dict, Any

from celery import shared_task

from helpdesk.core.tickets.audit import AuditEntry
from helpdesk.core.tickets.events import EVENTOS_AUDITAVEIS, TicketAuditavelEvent

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=10,
    default_retry_delay=30,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=600,
    acks_late=True,
)
def registrar_entrada_auditoria(self, entry_data: Dict[str, Any]) -> str:
    """
    Grava uma entrada de histórico.

    Idempotente: a entrada carrega o event_id de origem como chave,
    então reentregas (acks_late, retry) não duplicam o histórico.

    Args:
        entry_data: AuditEntry.to_dict()

    Returns:
        ID da entrada gravada
    """
    from helpdesk.config.container import get_container

    entry = AuditEntry.from_dict(entry_data)

    if self.request.retries:
        logger.warning(
            f"[AUDIT] Retentativa {self.request.retries} para entrada {entry.id} "
            f"do chamado {entry.ticket_id}"
        )

    get_container().audit_trail().record(entry)
    logger.info(f"[AUDIT] {entry.tipo.value} gravado para chamado {entry.ticket_id}")
    return entry.id


@shared_task(bind=True, max_retries=5, default_retry_delay=30)
def dispatch_domain_event(self, event_type: str, event_data: Dict[str, Any]) -> None:
    """
    Dispatcher central para Domain Events.

    Args:
        event_type: Tipo do evento (ex: 'TicketCriadoEvent')
        event_data: Evento serializado com to_dict()
    """
    if event_type not in EVENTOS_AUDITAVEIS:
        logger.warning(f"[DISPATCHER] Handler não encontrado para {event_type}")
        return

    entry = TicketAuditavelEvent.audit_entry_from_dict(event_data)
    logger.info(f"[DISPATCHER] Roteando {event_type} para auditoria")
    registrar_entrada_auditoria.delay(entry.to_dict())


def agendar_reenvio_auditoria(entry: AuditEntry) -> None:
    """
    Fallback do AuditEventHandler: entrega a entrada ao Celery.

    Usado quando as tentativas síncronas se esgotam.
    """
    registrar_entrada_auditoria.apply_async(args=[entry.to_dict()], countdown=30)
    logger.warning(f"[AUDIT] Entrada {entry.id} agendada para reprocessamento")
