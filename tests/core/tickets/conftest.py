"""
Fixtures compartilhadas dos testes do Core de Chamados.

Todas usam as implementações InMemory dos ports.
"""

from datetime import datetime, timedelta

import pytest

from helpdesk.adapters.django_app.events.publishers import (
    InMemoryEventPublisher,
    registrar_handler_auditoria,
)
from helpdesk.adapters.django_app.shared.unit_of_work import InMemoryUnitOfWork
from helpdesk.core.tickets.audit import AuditEventHandler
from helpdesk.core.tickets.availability import AvailabilityChecker, WorkingHoursWindow
from helpdesk.core.tickets.entities import ServiceRef
from helpdesk.core.tickets.ports import (
    InMemoryAuditTrail,
    InMemoryScheduleRepository,
    InMemorySequenceCounter,
    InMemoryServiceCatalog,
    InMemoryTicketRepository,
)
from helpdesk.core.tickets.sequence import TicketNumberGenerator
from helpdesk.core.tickets.state_machine import TicketStateMachine


class FakeClock:
    """Relógio controlado pelo teste."""

    def __init__(self, agora: datetime):
        self.agora = agora

    def __call__(self) -> datetime:
        return self.agora

    def avancar(self, **kwargs) -> datetime:
        self.agora = self.agora + timedelta(**kwargs)
        return self.agora


@pytest.fixture
def relogio():
    """Segunda-feira, 10:00."""
    return FakeClock(datetime(2024, 5, 6, 10, 0))


@pytest.fixture
def ticket_repo():
    return InMemoryTicketRepository()


@pytest.fixture
def counter():
    return InMemorySequenceCounter()


@pytest.fixture
def number_generator(counter):
    return TicketNumberGenerator(counter)


@pytest.fixture
def audit_trail():
    return InMemoryAuditTrail()


@pytest.fixture
def catalog():
    return InMemoryServiceCatalog([
        ServiceRef("srv-1", "Suporte"),
        ServiceRef("srv-2", "Impressoras"),
    ])


@pytest.fixture
def schedules():
    """tec-1 trabalha das 08:00 às 18:00; tec-2 não tem expediente."""
    repo = InMemoryScheduleRepository()
    repo.definir("tec-1", WorkingHoursWindow.from_strings("08:00", "18:00"))
    return repo


@pytest.fixture
def state_machine(schedules):
    return TicketStateMachine(AvailabilityChecker(schedules))


@pytest.fixture
def publisher(audit_trail):
    publisher = InMemoryEventPublisher()
    registrar_handler_auditoria(publisher, AuditEventHandler(audit_trail))
    return publisher


@pytest.fixture
def uow(publisher):
    return InMemoryUnitOfWork(event_publisher=publisher)
