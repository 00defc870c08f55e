"""
Dependency Injection Container.

Configura e gerencia todas as dependências da aplicação.
Usa dependency-injector para lazy-loading e injeção automática.

Padrões:
- Singleton: Uma instância para toda app (repositories, publisher)
- Factory: Nova instância por chamada (services, UoW)
- Configuration: Valores vindos de django.conf.settings

Adapters Django são importados sob demanda: o container pode ser
importado (e o TestingContainer usado) sem o Django configurado.
"""

from datetime import datetime, timedelta
from typing import Optional

from dependency_injector import containers, providers

from helpdesk.core.tickets.audit import AuditEventHandler
from helpdesk.core.tickets.availability import AvailabilityChecker
from helpdesk.core.tickets.sequence import TicketNumberGenerator
from helpdesk.core.tickets.state_machine import TicketStateMachine
from helpdesk.core.tickets import use_cases
from helpdesk.core.tickets.ports import (
    InMemoryAuditTrail,
    InMemoryScheduleRepository,
    InMemorySequenceCounter,
    InMemoryServiceCatalog,
    InMemoryTicketRepository,
)


PADROES = {
    'event_publisher_mode': 'sync',
    'ticket_number_prefix': 'INC',
    'ticket_number_width': 4,
    'reopen_window_hours': 48,
    'lock_timeout_ms': 2000,
    'audit_max_tentativas': 3,
    'audit_espera_segundos': 0.05,
}


def _lazy(caminho: str):
    """Callable que importa `modulo.Nome` só quando chamado."""
    modulo, nome = caminho.rsplit('.', 1)

    def criar(*args, **kwargs):
        return getattr(__import__(modulo, fromlist=[nome]), nome)(*args, **kwargs)

    return criar


def _agora_local() -> datetime:
    """Relógio da aplicação: horário local do TIME_ZONE configurado."""
    from django.conf import settings
    from django.utils import timezone

    if settings.USE_TZ:
        return timezone.localtime()
    return timezone.now()


def _reenviar_auditoria(entry) -> None:
    from helpdesk.adapters.django_app.events.handlers import agendar_reenvio_auditoria
    agendar_reenvio_auditoria(entry)


def _publisher(modo: str, audit_handler):
    from helpdesk.adapters.django_app.events.publishers import get_event_publisher
    return get_event_publisher(use_celery=(modo == 'celery'), audit_handler=audit_handler)


def _publisher_em_memoria(audit_handler):
    from helpdesk.adapters.django_app.events.publishers import (
        InMemoryEventPublisher,
        registrar_handler_auditoria,
    )
    publisher = InMemoryEventPublisher()
    registrar_handler_auditoria(publisher, audit_handler)
    return publisher


class Container(containers.DeclarativeContainer):
    """
    Container principal de Dependency Injection.

    Organização:
    - Configuration: settings do Django
    - Repositories: Persistência (Django ORM)
    - Domain services: sequência, expediente, máquina de estados
    - Events: handler de auditoria e publisher
    - Unit of Work: Transações
    - Services: Use Cases

    Example:
        container = get_container()
        service = container.criar_ticket_service()
        output = service.execute(input_dto)
    """

    config = providers.Configuration(default=PADROES)

    clock = providers.Object(_agora_local)

    # =========================================================================
    # Repositories (Singleton)
    # =========================================================================

    ticket_repository = providers.Singleton(
        _lazy('helpdesk.adapters.django_app.tickets.repositories.DjangoTicketRepository'),
        lock_timeout_ms=config.lock_timeout_ms.as_int(),
    )

    sequence_counter = providers.Singleton(
        _lazy('helpdesk.adapters.django_app.tickets.repositories.DjangoSequenceCounter'),
        lock_timeout_ms=config.lock_timeout_ms.as_int(),
    )

    audit_trail = providers.Singleton(
        _lazy('helpdesk.adapters.django_app.tickets.repositories.DjangoAuditTrail'),
    )

    service_catalog = providers.Singleton(
        _lazy('helpdesk.adapters.django_app.tickets.repositories.DjangoServiceCatalog'),
    )

    schedule_repository = providers.Singleton(
        _lazy('helpdesk.adapters.django_app.tickets.repositories.DjangoTechnicianScheduleRepository'),
    )

    # =========================================================================
    # Domain services
    # =========================================================================

    number_generator = providers.Singleton(
        TicketNumberGenerator,
        counter=sequence_counter,
        prefixo=config.ticket_number_prefix,
        largura=config.ticket_number_width.as_int(),
    )

    availability_checker = providers.Singleton(
        AvailabilityChecker,
        schedules=schedule_repository,
    )

    state_machine = providers.Singleton(
        TicketStateMachine,
        availability=availability_checker,
        janela_reabertura=providers.Factory(timedelta, hours=config.reopen_window_hours.as_int()),
    )

    # =========================================================================
    # Events
    # =========================================================================

    audit_handler = providers.Singleton(
        AuditEventHandler,
        trail=audit_trail,
        max_tentativas=config.audit_max_tentativas.as_int(),
        espera=config.audit_espera_segundos.as_float(),
        fallback=providers.Object(_reenviar_auditoria),
    )

    event_publisher = providers.Singleton(
        _publisher,
        modo=config.event_publisher_mode,
        audit_handler=audit_handler,
    )

    # =========================================================================
    # Unit of Work (Factory - nova instância por operação)
    # =========================================================================

    unit_of_work = providers.Factory(
        _lazy('helpdesk.adapters.django_app.shared.unit_of_work.DjangoUnitOfWork'),
        event_publisher=event_publisher,
    )

    # =========================================================================
    # Services / Use Cases (Factory - nova instância por chamada)
    # =========================================================================

    criar_ticket_service = providers.Factory(
        use_cases.CriarTicketService,
        ticket_repo=ticket_repository,
        service_catalog=service_catalog,
        number_generator=number_generator,
        uow=unit_of_work,
        clock=clock,
    )

    alterar_status_service = providers.Factory(
        use_cases.AlterarStatusService,
        ticket_repo=ticket_repository,
        state_machine=state_machine,
        uow=unit_of_work,
        clock=clock,
    )

    reabrir_ticket_service = providers.Factory(
        use_cases.ReabrirTicketService,
        ticket_repo=ticket_repository,
        state_machine=state_machine,
        uow=unit_of_work,
        clock=clock,
    )

    cancelar_ticket_service = providers.Factory(
        use_cases.CancelarTicketService,
        ticket_repo=ticket_repository,
        state_machine=state_machine,
        uow=unit_of_work,
        clock=clock,
    )

    obter_historico_service = providers.Factory(
        use_cases.ObterHistoricoService,
        ticket_repo=ticket_repository,
        audit_trail=audit_trail,
    )

    excluir_ticket_service = providers.Factory(
        use_cases.ExcluirTicketService,
        ticket_repo=ticket_repository,
        audit_trail=audit_trail,
        uow=unit_of_work,
    )

    obter_ticket_service = providers.Factory(
        use_cases.ObterTicketService,
        ticket_repo=ticket_repository,
    )

    listar_tickets_service = providers.Factory(
        use_cases.ListarTicketsService,
        ticket_repo=ticket_repository,
    )


# =============================================================================
# Container Global (Singleton)
# =============================================================================

_container: Optional[Container] = None


def _config_do_django() -> dict:
    from django.conf import settings

    return {
        'event_publisher_mode': getattr(settings, 'EVENT_PUBLISHER_MODE', PADROES['event_publisher_mode']),
        'ticket_number_prefix': getattr(settings, 'TICKET_NUMBER_PREFIX', PADROES['ticket_number_prefix']),
        'ticket_number_width': getattr(settings, 'TICKET_NUMBER_WIDTH', PADROES['ticket_number_width']),
        'reopen_window_hours': getattr(settings, 'REOPEN_WINDOW_HOURS', PADROES['reopen_window_hours']),
        'lock_timeout_ms': getattr(settings, 'TICKET_LOCK_TIMEOUT_MS', PADROES['lock_timeout_ms']),
        'audit_max_tentativas': getattr(settings, 'AUDIT_MAX_TENTATIVAS', PADROES['audit_max_tentativas']),
        'audit_espera_segundos': getattr(settings, 'AUDIT_ESPERA_SEGUNDOS', PADROES['audit_espera_segundos']),
    }


def get_container() -> Container:
    """
    Retorna instância global do container.

    Cria se não existir (lazy initialization), carregando a
    configuração dos settings do Django.
    """
    global _container

    if _container is None:
        container = Container()
        container.config.from_dict(_config_do_django())
        _container = container

    return _container


def reset_container() -> None:
    """
    Reset do container (para testes).

    Permite criar novo container limpo.
    """
    global _container
    _container = None


# =============================================================================
# Testing Container
# =============================================================================

class TestingContainer(containers.DeclarativeContainer):
    """
    Container para testes com implementações InMemory.

    Mesmos services do Container; o histórico é gravado de forma
    síncrona pelo InMemoryEventPublisher ao comitar.

    Example:
        container = TestingContainer()
        container.service_catalog().adicionar(ServiceRef("s1", "Suporte"))
        container.criar_ticket_service().execute(input_dto)
    """

    __test__ = False

    config = providers.Configuration(default=PADROES)

    clock = providers.Object(datetime.now)

    ticket_repository = providers.Singleton(InMemoryTicketRepository)

    sequence_counter = providers.Singleton(InMemorySequenceCounter)

    audit_trail = providers.Singleton(InMemoryAuditTrail)

    service_catalog = providers.Singleton(InMemoryServiceCatalog)

    schedule_repository = providers.Singleton(InMemoryScheduleRepository)

    number_generator = providers.Singleton(
        TicketNumberGenerator,
        counter=sequence_counter,
        prefixo=config.ticket_number_prefix,
        largura=config.ticket_number_width.as_int(),
    )

    availability_checker = providers.Singleton(
        AvailabilityChecker,
        schedules=schedule_repository,
    )

    state_machine = providers.Singleton(
        TicketStateMachine,
        availability=availability_checker,
        janela_reabertura=providers.Factory(timedelta, hours=config.reopen_window_hours.as_int()),
    )

    audit_handler = providers.Singleton(
        AuditEventHandler,
        trail=audit_trail,
        max_tentativas=config.audit_max_tentativas.as_int(),
    )

    event_publisher = providers.Singleton(
        _publisher_em_memoria,
        audit_handler=audit_handler,
    )

    unit_of_work = providers.Factory(
        _lazy('helpdesk.adapters.django_app.shared.unit_of_work.InMemoryUnitOfWork'),
        event_publisher=event_publisher,
    )

    criar_ticket_service = providers.Factory(
        use_cases.CriarTicketService,
        ticket_repo=ticket_repository,
        service_catalog=service_catalog,
        number_generator=number_generator,
        uow=unit_of_work,
        clock=clock,
    )

    alterar_status_service = providers.Factory(
        use_cases.AlterarStatusService,
        ticket_repo=ticket_repository,
        state_machine=state_machine,
        uow=unit_of_work,
        clock=clock,
    )

    reabrir_ticket_service = providers.Factory(
        use_cases.ReabrirTicketService,
        ticket_repo=ticket_repository,
        state_machine=state_machine,
        uow=unit_of_work,
        clock=clock,
    )

    cancelar_ticket_service = providers.Factory(
        use_cases.CancelarTicketService,
        ticket_repo=ticket_repository,
        state_machine=state_machine,
        uow=unit_of_work,
        clock=clock,
    )

    obter_historico_service = providers.Factory(
        use_cases.ObterHistoricoService,
        ticket_repo=ticket_repository,
        audit_trail=audit_trail,
    )

    excluir_ticket_service = providers.Factory(
        use_cases.ExcluirTicketService,
        ticket_repo=ticket_repository,
        audit_trail=audit_trail,
        uow=unit_of_work,
    )

    obter_ticket_service = providers.Factory(
        use_cases.ObterTicketService,
        ticket_repo=ticket_repository,
    )

    listar_tickets_service = providers.Factory(
        use_cases.ListarTicketsService,
        ticket_repo=ticket_repository,
    )
