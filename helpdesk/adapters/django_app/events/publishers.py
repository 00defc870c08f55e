"""
Event Publishers - Publicadores de Eventos de Domínio.

Responsável por entregar eventos já comitados aos handlers.
Implementações:
- LoggingEventPublisher: Loga e executa handlers síncronos (modo sync)
- CeleryEventPublisher: Envia ao dispatcher Celery (modo celery)
- InMemoryEventPublisher: Para testes

O único consumidor interno é o AuditEventHandler, que grava o
histórico do chamado.
"""

from typing import List, Callable, Dict, Optional
import logging
import json

from helpdesk.core.shared.events import DomainEvent
from helpdesk.core.shared.interfaces import EventPublisher
from helpdesk.core.tickets.events import EVENTOS_AUDITAVEIS

logger = logging.getLogger(__name__)


Handler = Callable[[DomainEvent], None]


class _HandlerRegistry:
    """Registro de handlers síncronos por tipo de evento."""

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = {}

    def register_handler(self, event_type: str, handler: Handler) -> None:
        """Registra handler para tipo de evento."""
        self._handlers.setdefault(event_type, []).append(handler)

    def _dispatch_to_handlers(self, event: DomainEvent) -> None:
        for handler in self._handlers.get(event.event_type, []):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Erro em handler para {event.event_type}: {e}", exc_info=True)


class LoggingEventPublisher(_HandlerRegistry, EventPublisher):
    """
    Publisher síncrono.

    Loga o evento e executa os handlers registrados no mesmo
    processo, logo após o commit.
    """

    def __init__(self, log_level: int = logging.INFO):
        super().__init__()
        self._log_level = log_level

    def publish(self, event: DomainEvent) -> None:
        logger.log(
            self._log_level,
            f"[EVENT] {event.event_type} | "
            f"aggregate={event.aggregate_id} | "
            f"data={json.dumps(event.to_dict(), default=str)}"
        )
        self._dispatch_to_handlers(event)


class CeleryEventPublisher(EventPublisher):
    """
    Publisher que envia eventos para o dispatcher Celery.

    Se o broker estiver indisponível, cai para o fallback síncrono
    (quando configurado) para que o histórico não se perca.
    """

    def __init__(self, fallback: Optional[EventPublisher] = None, also_log: bool = True):
        self._fallback = fallback
        self._also_log = also_log

    def publish(self, event: DomainEvent) -> None:
        if self._also_log:
            logger.info(
                f"[EVENT->CELERY] {event.event_type} | "
                f"aggregate={event.aggregate_id}"
            )

        from helpdesk.adapters.django_app.events.handlers import dispatch_domain_event

        try:
            dispatch_domain_event.delay(event.event_type, event.to_dict())
        except Exception as e:
            logger.error(f"Falha ao publicar evento no Celery: {e}", exc_info=True)
            if self._fallback is not None:
                self._fallback.publish(event)


class InMemoryEventPublisher(_HandlerRegistry, EventPublisher):
    """
    Publisher em memória para testes.

    Armazena eventos publicados e executa handlers registrados.
    """

    def __init__(self):
        super().__init__()
        self._published_events: List[DomainEvent] = []

    def publish(self, event: DomainEvent) -> None:
        self._published_events.append(event)
        self._dispatch_to_handlers(event)

    @property
    def published_events(self) -> List[DomainEvent]:
        return self._published_events.copy()


def registrar_handler_auditoria(publisher: _HandlerRegistry, audit_handler: Handler) -> None:
    """Inscreve o handler de auditoria em todos os eventos auditáveis."""
    for event_type in EVENTOS_AUDITAVEIS:
        publisher.register_handler(event_type, audit_handler)


def get_event_publisher(
    use_celery: bool = False,
    audit_handler: Optional[Handler] = None,
) -> EventPublisher:
    """
    Factory para obter publisher apropriado.

    Args:
        use_celery: Entregar eventos via Celery (worker grava histórico)
        audit_handler: Handler síncrono de auditoria

    Returns:
        Publisher configurado
    """
    sincrono = LoggingEventPublisher()
    if audit_handler is not None:
        registrar_handler_auditoria(sincrono, audit_handler)

    if use_celery:
        return CeleryEventPublisher(fallback=sincrono)
    return sincrono
