"""
Testes do Container de Dependency Injection.

Usa o TestingContainer (implementações InMemory) para exercitar a
fiação completa: services → state machine → UoW → publisher → histórico.
"""

import pytest
from datetime import timedelta

from helpdesk.config.container import PADROES, Container, TestingContainer
from helpdesk.core.tickets.availability import WorkingHoursWindow
from helpdesk.core.tickets.dtos import (
    AlterarStatusInputDTO,
    CriarTicketInputDTO,
)
from helpdesk.core.tickets.entities import ServiceRef
from helpdesk.core.tickets.use_cases import CriarTicketService


@pytest.fixture
def container():
    container = TestingContainer()
    container.service_catalog().adicionar(ServiceRef("srv-1", "Suporte"))
    container.schedule_repository().definir(
        "tec-1", WorkingHoursWindow.from_strings("00:00", "23:59")
    )
    return container


class TestTestingContainer:

    def test_services_sao_factories(self, container):
        """Deve criar novo service (e novo UoW) a cada chamada."""
        a = container.criar_ticket_service()
        b = container.criar_ticket_service()

        assert isinstance(a, CriarTicketService)
        assert a is not b
        assert a.uow is not b.uow

    def test_repositorios_sao_singletons(self, container):
        assert container.ticket_repository() is container.ticket_repository()
        assert container.audit_trail() is container.audit_trail()

    def test_configuracao_padrao(self, container):
        assert container.number_generator().prefixo == PADROES['ticket_number_prefix']
        assert container.state_machine()._janela_reabertura == timedelta(hours=48)

    def test_configuracao_sobrescrita(self):
        container = TestingContainer()
        container.config.from_dict({'ticket_number_prefix': 'OS', 'ticket_number_width': 6})

        assert container.number_generator().next() == "OS000001"

    def test_fluxo_grava_historico(self, container):
        """Deve gravar o histórico via publisher após cada commit."""
        criado = container.criar_ticket_service().execute(CriarTicketInputDTO(
            descricao="Impressora travando",
            solicitante_id="user-1",
            servicos=("Suporte",),
        ))
        container.alterar_status_service().execute(AlterarStatusInputDTO(
            ticket_id=criado.id,
            ator_id="tec-1",
            ator_papel="TECNICO",
            status="EM_ATENDIMENTO",
        ))

        historico = container.obter_historico_service().execute(criado.id)

        assert [h.para_status for h in historico] == ["ABERTO", "EM_ATENDIMENTO"]
        assert len(container.event_publisher().published_events) == 2


class TestContainer:

    def test_providers_equivalentes(self):
        """Deve expor os mesmos services nos dois containers."""
        services = {
            nome for nome in Container.providers if nome.endswith('_service')
        }

        assert services == {
            nome for nome in TestingContainer.providers if nome.endswith('_service')
        }
        assert len(services) == 8
