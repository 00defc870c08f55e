"""
Unit of Work - Implementação Django.

Gerencia a transação de cada use case, garantindo que o estado do
chamado (status, timestamps, motivo, versão) seja gravado por
inteiro ou não seja gravado.

Responsabilidades:
- Iniciar/finalizar transações (transaction.atomic)
- Commit/Rollback coordenado
- Publicar eventos somente após commit bem-sucedido

Falhas na publicação são logadas e não desfazem o commit: o
histórico é um efeito colateral retentável da transição.
"""

from typing import List, Optional
import logging

from django.db import transaction

from helpdesk.core.shared.interfaces import UnitOfWork, EventPublisher
from helpdesk.core.shared.events import DomainEvent

logger = logging.getLogger(__name__)


class DjangoUnitOfWork(UnitOfWork):
    """
    Implementação Django do Unit of Work.

    Usa transaction.atomic() aberto manualmente, o que permite
    aninhar em transações externas (savepoint) como nos testes
    com pytest-django.

    Example:
        with DjangoUnitOfWork(event_publisher) as uow:
            repo.add(ticket)
            uow.publish_event(TicketCriadoEvent(...))
        # Commit + eventos publicados

    Example com rollback:
        with DjangoUnitOfWork() as uow:
            repo.add(ticket)
            raise Exception("Erro!")
        # Rollback (número da sequência também é desfeito)
    """

    def __init__(self, event_publisher: Optional[EventPublisher] = None, using: str = None):
        """
        Args:
            event_publisher: Publicador de eventos (sync ou Celery)
            using: Alias do banco (default do Django se None)
        """
        super().__init__()
        self._event_publisher = event_publisher
        self._using = using
        self._atomic = None
        self._committed = False
        self._rolled_back = False

    def _begin_transaction(self) -> None:
        self._atomic = transaction.atomic(using=self._using)
        self._atomic.__enter__()
        self._committed = False
        self._rolled_back = False
        logger.debug("Transaction started")

    def commit(self) -> None:
        """
        Persiste mudanças e publica eventos.

        Raises:
            Exception: Se commit falhar, eventos são descartados
        """
        if self._atomic is None:
            logger.warning("Transaction already finalized")
            return

        atomic, self._atomic = self._atomic, None
        try:
            atomic.__exit__(None, None, None)
        except Exception as e:
            logger.error(f"Commit failed: {e}")
            self._rolled_back = True
            self.clear_events()
            raise

        self._committed = True
        logger.debug("Transaction committed")
        self._publish_events()

    def rollback(self) -> None:
        """Desfaz mudanças e descarta eventos."""
        if self._atomic is None:
            return

        atomic, self._atomic = self._atomic, None
        try:
            transaction.set_rollback(True, using=self._using)
            atomic.__exit__(None, None, None)
            logger.debug("Transaction rolled back")
        finally:
            self._rolled_back = True
            self.clear_events()

    def _publish_events(self) -> None:
        eventos = self.collect_events()
        self.clear_events()

        for event in eventos:
            logger.info(
                f"Publishing event: {event.event_type} "
                f"for aggregate {event.aggregate_id}"
            )
            if self._event_publisher is None:
                continue
            try:
                self._event_publisher.publish(event)
            except Exception as e:
                # Transição já comitada; histórico será reprocessado
                logger.error(f"Failed to publish event {event.event_id}: {e}")

    @property
    def is_committed(self) -> bool:
        return self._committed

    @property
    def is_rolled_back(self) -> bool:
        return self._rolled_back


class InMemoryUnitOfWork(UnitOfWork):
    """
    Unit of Work em memória para testes.

    Não persiste nada; publica os eventos no publisher informado
    (se houver) ao comitar, como o DjangoUnitOfWork.

    Example:
        uow = InMemoryUnitOfWork()
        with uow:
            uow.publish_event(event)

        assert uow.committed
        assert len(uow.published_events) == 1
    """

    def __init__(self, event_publisher: Optional[EventPublisher] = None):
        super().__init__()
        self._event_publisher = event_publisher
        self._committed = False
        self._rolled_back = False
        self._published_events: List[DomainEvent] = []

    def _begin_transaction(self) -> None:
        self._committed = False
        self._rolled_back = False

    def commit(self) -> None:
        eventos = self.collect_events()
        self.clear_events()
        self._committed = True
        self._published_events.extend(eventos)

        if self._event_publisher:
            for event in eventos:
                try:
                    self._event_publisher.publish(event)
                except Exception as e:
                    logger.error(f"Failed to publish event {event.event_id}: {e}")

    def rollback(self) -> None:
        self._rolled_back = True
        self.clear_events()

    @property
    def committed(self) -> bool:
        return self._committed

    @property
    def rolled_back(self) -> bool:
        return self._rolled_back

    @property
    def published_events(self) -> List[DomainEvent]:
        """Eventos publicados em todos os commits."""
        return list(self._published_events)
