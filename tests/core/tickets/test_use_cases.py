"""
Testes Unitários para Use Cases do Domínio de Chamados.

Estratégia de Teste:
- Implementações InMemory dos ports (conftest.py)
- InMemoryUnitOfWork + InMemoryEventPublisher: histórico gravado
  pelo AuditEventHandler logo após o commit
- Relógio controlado (FakeClock)

Coverage:
- CriarTicketService
- AlterarStatusService
- ReabrirTicketService
- CancelarTicketService
- ObterHistoricoService
- ExcluirTicketService
- ObterTicketService / ListarTicketsService (inclui fila de atendimento)
- Tempo limite ao travar a linha do chamado
- Concorrência: dois técnicos assumindo, rajada de aberturas
"""

import re
import threading
from datetime import timedelta

import pytest

from helpdesk.adapters.django_app.shared.unit_of_work import InMemoryUnitOfWork
from helpdesk.core.shared.exceptions import (
    BusinessRuleViolationError,
    ConflictError,
    DependencyFailureError,
    EntityNotFoundError,
    LockTimeoutError,
    PermissionDeniedError,
    TerminalStateError,
    ValidationError,
)
from helpdesk.core.tickets.availability import AvailabilityChecker, WorkingHoursWindow
from helpdesk.core.tickets.dtos import (
    AlterarStatusInputDTO,
    CancelarTicketInputDTO,
    CriarTicketInputDTO,
    ExcluirTicketInputDTO,
    ReabrirTicketInputDTO,
)
from helpdesk.core.tickets.events import (
    TicketCanceladoEvent,
    TicketCriadoEvent,
    TicketReabertoEvent,
    TicketStatusAlteradoEvent,
)
from helpdesk.core.tickets.ports import InMemoryScheduleRepository, InMemoryTicketRepository
from helpdesk.core.tickets.sequence import TicketNumberGenerator
from helpdesk.core.tickets.state_machine import TicketStateMachine
from helpdesk.core.tickets.use_cases import (
    AlterarStatusService,
    CancelarTicketService,
    CriarTicketService,
    ExcluirTicketService,
    ListarTicketsService,
    ObterHistoricoService,
    ObterTicketService,
    ReabrirTicketService,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def criar_service(ticket_repo, catalog, number_generator, uow, relogio):
    return CriarTicketService(ticket_repo, catalog, number_generator, uow, clock=relogio)


@pytest.fixture
def status_service(ticket_repo, state_machine, uow, relogio):
    return AlterarStatusService(ticket_repo, state_machine, uow, clock=relogio)


@pytest.fixture
def reabrir_service(ticket_repo, state_machine, uow, relogio):
    return ReabrirTicketService(ticket_repo, state_machine, uow, clock=relogio)


@pytest.fixture
def cancelar_service(ticket_repo, state_machine, uow, relogio):
    return CancelarTicketService(ticket_repo, state_machine, uow, clock=relogio)


@pytest.fixture
def historico_service(ticket_repo, audit_trail):
    return ObterHistoricoService(ticket_repo, audit_trail)


@pytest.fixture
def aberto(criar_service):
    """Chamado ABERTO de user-1."""
    return criar_service.execute(CriarTicketInputDTO(
        descricao="Impressora travando",
        solicitante_id="user-1",
        servicos=("Suporte",),
        solicitante_nome="Ana",
        solicitante_email="ana@example.com",
    ))


def assumir(ticket_id, tecnico="tec-1"):
    return AlterarStatusInputDTO(
        ticket_id=ticket_id,
        ator_id=tecnico,
        ator_papel="TECNICO",
        status="EM_ATENDIMENTO",
    )


def encerrar(ticket_id, motivo="Resolvido", ator="tec-1", papel="TECNICO"):
    return AlterarStatusInputDTO(
        ticket_id=ticket_id,
        ator_id=ator,
        ator_papel=papel,
        status="ENCERRADO",
        motivo_encerramento=motivo,
    )


# =============================================================================
# Cenário completo
# =============================================================================

class TestCicloDeVida:
    """Abertura → atendimento → encerramento → reabertura."""

    def test_cenario_impressora(self, criar_service, status_service, reabrir_service,
                                cancelar_service, historico_service, schedules, relogio):
        """Deve percorrer o ciclo e recusar cancelamento pelo técnico."""
        schedules.definir("tec-1", WorkingHoursWindow.from_strings("09:00", "17:00"))

        criado = criar_service.execute(CriarTicketInputDTO(
            descricao="Printer jam",
            solicitante_id="user-1",
            servicos=("Suporte",),
        ))
        assert criado.status == "ABERTO"
        assert re.fullmatch(r"INC\d+", criado.numero)

        relogio.avancar(minutes=30)
        em_atendimento = status_service.execute(assumir(criado.id))
        assert em_atendimento.status == "EM_ATENDIMENTO"
        assert em_atendimento.tecnico_id == "tec-1"

        relogio.avancar(hours=1)
        encerrado = status_service.execute(encerrar(criado.id, motivo="Fixed"))
        assert encerrado.status == "ENCERRADO"
        assert encerrado.encerrado_em == relogio.agora
        assert encerrado.motivo_encerramento == "Fixed"

        relogio.avancar(minutes=10)
        reaberto = reabrir_service.execute(ReabrirTicketInputDTO(ticket_id=criado.id, ator_id="user-1"))
        assert reaberto.status == "REABERTO"
        assert reaberto.encerrado_em is None

        with pytest.raises(PermissionDeniedError):
            cancelar_service.execute(CancelarTicketInputDTO(
                ticket_id=criado.id,
                ator_id="tec-1",
                ator_papel="TECNICO",
                motivo="Não é comigo",
            ))

        historico = historico_service.execute(criado.id)
        assert [(h.de_status, h.para_status) for h in historico] == [
            (None, "ABERTO"),
            ("ABERTO", "EM_ATENDIMENTO"),
            ("EM_ATENDIMENTO", "ENCERRADO"),
            ("ENCERRADO", "REABERTO"),
        ]
        assert [h.tipo for h in historico] == ["ABERTURA", "STATUS", "STATUS", "REABERTURA"]


# =============================================================================
# CriarTicketService
# =============================================================================

class TestCriarTicketService:
    """Testes para CriarTicketService."""

    def test_criar_ticket_sucesso(self, aberto, relogio):
        """Deve criar chamado ABERTO com o primeiro número."""
        assert aberto.numero == "INC0001"
        assert aberto.status == "ABERTO"
        assert aberto.tecnico_id is None
        assert aberto.servicos == ["Suporte"]
        assert aberto.criado_em == relogio.agora
        assert aberto.versao == 1

    def test_criar_ticket_persiste_no_repositorio(self, aberto, ticket_repo):
        assert ticket_repo.get_by_id(aberto.id).numero == aberto.numero

    def test_criar_ticket_publica_evento_e_grava_historico(self, aberto, uow, audit_trail):
        """Deve publicar TicketCriadoEvent e gravar ABERTURA."""
        [evento] = uow.published_events
        assert isinstance(evento, TicketCriadoEvent)
        assert evento.aggregate_id == aberto.id

        [entrada] = audit_trail.history(aberto.id)
        assert entrada.de_status is None
        assert entrada.para_status == "ABERTO"
        assert entrada.nota == "Impressora travando"
        assert entrada.autor_nome == "Ana"
        assert entrada.autor_email == "ana@example.com"

    def test_servico_por_id_ou_nome(self, criar_service):
        output = criar_service.execute(CriarTicketInputDTO(
            descricao="Sem toner",
            solicitante_id="user-1",
            servicos=("srv-2", "Suporte"),
        ))

        assert sorted(output.servicos) == ["Impressoras", "Suporte"]

    def test_servico_como_string(self, criar_service):
        output = criar_service.execute(CriarTicketInputDTO(
            descricao="Sem toner",
            solicitante_id="user-1",
            servicos="Impressoras",
        ))

        assert output.servicos == ["Impressoras"]

    def test_numeros_sequenciais(self, criar_service):
        numeros = [
            criar_service.execute(CriarTicketInputDTO(
                descricao=f"Chamado {i}", solicitante_id="user-1", servicos=("Suporte",),
            )).numero
            for i in range(3)
        ]

        assert numeros == ["INC0001", "INC0002", "INC0003"]

    def test_descricao_vazia_erro(self, criar_service, counter):
        with pytest.raises(ValidationError) as exc_info:
            criar_service.execute(CriarTicketInputDTO(
                descricao="   ", solicitante_id="user-1", servicos=("Suporte",),
            ))

        assert exc_info.value.field == "descricao"
        assert counter.valor_atual == 0

    def test_servico_inexistente_nao_consome_numero(self, criar_service, counter, ticket_repo):
        """Deve validar serviços antes de gerar o número."""
        with pytest.raises(ValidationError) as exc_info:
            criar_service.execute(CriarTicketInputDTO(
                descricao="Sem rede", solicitante_id="user-1", servicos=("Suporte", "Telefonia"),
            ))

        assert "Telefonia" in exc_info.value.message
        assert counter.valor_atual == 0
        assert ticket_repo.count() == 0

    def test_sem_servicos_erro(self, criar_service):
        with pytest.raises(ValidationError):
            criar_service.execute(CriarTicketInputDTO(
                descricao="Sem rede", solicitante_id="user-1", servicos=(),
            ))

    def test_contador_indisponivel(self, ticket_repo, catalog, uow):
        """Deve falhar com DependencyFailureError sem criar chamado."""

        class ContadorQuebrado:
            def next_value(self):
                raise OSError("sem conexão")

        service = CriarTicketService(ticket_repo, catalog, TicketNumberGenerator(ContadorQuebrado()), uow)

        with pytest.raises(DependencyFailureError):
            service.execute(CriarTicketInputDTO(
                descricao="Sem rede", solicitante_id="user-1", servicos=("Suporte",),
            ))

        assert ticket_repo.count() == 0
        assert uow.rolled_back
        assert uow.published_events == []


# =============================================================================
# AlterarStatusService
# =============================================================================

class TestAlterarStatusService:
    """Testes para AlterarStatusService."""

    def test_tecnico_assume(self, status_service, aberto, uow):
        output = status_service.execute(assumir(aberto.id))

        assert output.status == "EM_ATENDIMENTO"
        assert output.tecnico_id == "tec-1"
        assert output.versao == 2
        assert isinstance(uow.published_events[-1], TicketStatusAlteradoEvent)

    def test_tecnico_fora_do_expediente(self, status_service, aberto, relogio, ticket_repo, audit_trail):
        """Deve recusar e manter o chamado inalterado."""
        relogio.agora = relogio.agora.replace(hour=20)

        with pytest.raises(BusinessRuleViolationError) as exc_info:
            status_service.execute(assumir(aberto.id))

        assert exc_info.value.rule == "fora_do_expediente"
        assert ticket_repo.get_by_id(aberto.id).status.value == "ABERTO"
        assert len(audit_trail.history(aberto.id)) == 1

    def test_admin_fora_do_expediente(self, status_service, aberto, relogio):
        """Deve permitir ao admin colocar em atendimento a qualquer hora."""
        relogio.agora = relogio.agora.replace(hour=20)

        output = status_service.execute(AlterarStatusInputDTO(
            ticket_id=aberto.id,
            ator_id="adm-1",
            ator_papel="ADMIN",
            status="EM_ATENDIMENTO",
            tecnico_id="tec-2",
        ))

        assert output.status == "EM_ATENDIMENTO"
        assert output.tecnico_id == "tec-2"

    def test_status_invalido(self, status_service, aberto):
        with pytest.raises(ValidationError) as exc_info:
            status_service.execute(AlterarStatusInputDTO(
                ticket_id=aberto.id, ator_id="tec-1", ator_papel="TECNICO", status="PAUSADO",
            ))

        assert exc_info.value.field == "status"

    def test_status_invalido_antes_de_buscar(self, status_service):
        """Deve validar o status mesmo para chamado inexistente."""
        with pytest.raises(ValidationError):
            status_service.execute(AlterarStatusInputDTO(
                ticket_id="nao-existe", ator_id="tec-1", ator_papel="TECNICO", status="",
            ))

    def test_papel_invalido(self, status_service, aberto):
        with pytest.raises(ValidationError) as exc_info:
            status_service.execute(AlterarStatusInputDTO(
                ticket_id=aberto.id, ator_id="x", ator_papel="GERENTE", status="ENCERRADO",
            ))

        assert exc_info.value.field == "papel"

    def test_chamado_inexistente(self, status_service):
        with pytest.raises(EntityNotFoundError):
            status_service.execute(assumir("nao-existe"))

    def test_encerrar_sem_motivo(self, status_service, aberto, ticket_repo):
        status_service.execute(assumir(aberto.id))

        with pytest.raises(ValidationError):
            status_service.execute(encerrar(aberto.id, motivo=""))

        assert ticket_repo.get_by_id(aberto.id).status.value == "EM_ATENDIMENTO"

    def test_usuario_nao_encerra(self, status_service, aberto):
        with pytest.raises(PermissionDeniedError):
            status_service.execute(encerrar(aberto.id, ator="user-1", papel="USUARIO"))

    def test_segundo_tecnico_recebe_conflito(self, status_service, aberto, schedules):
        schedules.definir("tec-2", WorkingHoursWindow.from_strings("08:00", "18:00"))
        status_service.execute(assumir(aberto.id, "tec-1"))

        with pytest.raises(ConflictError):
            status_service.execute(assumir(aberto.id, "tec-2"))

    def test_encerrado_imutavel_para_tecnico(self, status_service, aberto):
        status_service.execute(assumir(aberto.id))
        status_service.execute(encerrar(aberto.id))

        with pytest.raises(BusinessRuleViolationError):
            status_service.execute(encerrar(aberto.id, motivo="De novo"))

    def test_admin_encerra_sem_atendimento(self, status_service, aberto):
        output = status_service.execute(encerrar(aberto.id, motivo="Duplicado", ator="adm-1", papel="ADMIN"))

        assert output.status == "ENCERRADO"
        assert output.tecnico_id is None


# =============================================================================
# ReabrirTicketService
# =============================================================================

class TestReabrirTicketService:
    """Testes para ReabrirTicketService."""

    @pytest.fixture
    def encerrado(self, status_service, aberto):
        status_service.execute(assumir(aberto.id))
        return status_service.execute(encerrar(aberto.id))

    def test_reabrir_dentro_do_prazo(self, reabrir_service, encerrado, relogio, uow):
        relogio.avancar(hours=47, minutes=59)

        output = reabrir_service.execute(ReabrirTicketInputDTO(ticket_id=encerrado.id, ator_id="user-1"))

        assert output.status == "REABERTO"
        assert output.encerrado_em is None
        assert output.motivo_encerramento is None
        assert isinstance(uow.published_events[-1], TicketReabertoEvent)

    def test_reabrir_apos_prazo(self, reabrir_service, encerrado, relogio):
        relogio.avancar(hours=48, minutes=1)

        with pytest.raises(BusinessRuleViolationError) as exc_info:
            reabrir_service.execute(ReabrirTicketInputDTO(ticket_id=encerrado.id, ator_id="user-1"))

        assert exc_info.value.rule == "prazo_reabertura_expirado"

    def test_outro_usuario(self, reabrir_service, encerrado):
        with pytest.raises(PermissionDeniedError):
            reabrir_service.execute(ReabrirTicketInputDTO(ticket_id=encerrado.id, ator_id="user-2"))

    def test_outro_usuario_em_chamado_aberto(self, reabrir_service, aberto):
        """Deve checar o dono antes do status."""
        with pytest.raises(PermissionDeniedError):
            reabrir_service.execute(ReabrirTicketInputDTO(ticket_id=aberto.id, ator_id="user-2"))

    def test_chamado_nao_encerrado(self, reabrir_service, aberto):
        with pytest.raises(BusinessRuleViolationError) as exc_info:
            reabrir_service.execute(ReabrirTicketInputDTO(ticket_id=aberto.id, ator_id="user-1"))

        assert exc_info.value.rule == "ticket_nao_encerrado"

    def test_reaberto_pode_ser_assumido_novamente(self, reabrir_service, status_service, encerrado):
        reabrir_service.execute(ReabrirTicketInputDTO(ticket_id=encerrado.id, ator_id="user-1"))

        output = status_service.execute(assumir(encerrado.id))

        assert output.status == "EM_ATENDIMENTO"
        assert output.versao == 5


# =============================================================================
# CancelarTicketService
# =============================================================================

class TestCancelarTicketService:
    """Testes para CancelarTicketService."""

    def test_dono_cancela(self, cancelar_service, aberto, uow, audit_trail):
        output = cancelar_service.execute(CancelarTicketInputDTO(
            ticket_id=aberto.id, ator_id="user-1", ator_papel="USUARIO", motivo="Resolvido sozinho",
        ))

        assert output.status == "CANCELADO"
        assert output.motivo_encerramento == "Resolvido sozinho"
        assert output.encerrado_em is not None
        assert isinstance(uow.published_events[-1], TicketCanceladoEvent)
        assert audit_trail.history(aberto.id)[-1].tipo.value == "CANCELAMENTO"

    def test_motivo_obrigatorio(self, cancelar_service, aberto):
        with pytest.raises(ValidationError):
            cancelar_service.execute(CancelarTicketInputDTO(
                ticket_id=aberto.id, ator_id="user-1", ator_papel="USUARIO", motivo="  ",
            ))

    def test_motivo_nao_texto(self, cancelar_service, aberto, ticket_repo):
        with pytest.raises(ValidationError) as exc:
            cancelar_service.execute(CancelarTicketInputDTO(
                ticket_id=aberto.id, ator_id="user-1", ator_papel="USUARIO", motivo=5,
            ))

        assert exc.value.field == "motivo_encerramento"
        assert ticket_repo.get_by_id(aberto.id).status.value == "ABERTO"

    def test_tecnico_nao_cancela(self, cancelar_service, aberto):
        with pytest.raises(PermissionDeniedError):
            cancelar_service.execute(CancelarTicketInputDTO(
                ticket_id=aberto.id, ator_id="tec-1", ator_papel="TECNICO", motivo="x",
            ))

    def test_cancelado_e_terminal(self, cancelar_service, status_service, reabrir_service, aberto):
        """Deve recusar qualquer operação posterior ao cancelamento."""
        cancelar_service.execute(CancelarTicketInputDTO(
            ticket_id=aberto.id, ator_id="adm-1", ator_papel="ADMIN", motivo="Aberto por engano",
        ))

        with pytest.raises(TerminalStateError):
            status_service.execute(assumir(aberto.id))
        with pytest.raises(TerminalStateError):
            reabrir_service.execute(ReabrirTicketInputDTO(ticket_id=aberto.id, ator_id="user-1"))
        with pytest.raises(TerminalStateError):
            cancelar_service.execute(CancelarTicketInputDTO(
                ticket_id=aberto.id, ator_id="user-1", ator_papel="USUARIO", motivo="De novo",
            ))


# =============================================================================
# Histórico, exclusão e consultas
# =============================================================================

class TestObterHistoricoService:

    def test_historico_cresce_uma_entrada_por_transicao(self, historico_service, status_service,
                                                         aberto, relogio):
        assert len(historico_service.execute(aberto.id)) == 1

        relogio.avancar(minutes=1)
        status_service.execute(assumir(aberto.id))
        assert len(historico_service.execute(aberto.id)) == 2

        relogio.avancar(minutes=1)
        status_service.execute(encerrar(aberto.id))
        historico = historico_service.execute(aberto.id)

        assert len(historico) == 3
        assert [h.timestamp for h in historico] == sorted(h.timestamp for h in historico)
        assert historico[1].nota == "Chamado assumido pelo técnico"
        assert historico[1].autor_id == "tec-1"

    def test_transicao_recusada_nao_gera_entrada(self, historico_service, status_service, aberto):
        with pytest.raises(PermissionDeniedError):
            status_service.execute(encerrar(aberto.id, ator="user-1", papel="USUARIO"))

        assert len(historico_service.execute(aberto.id)) == 1

    def test_chamado_inexistente(self, historico_service):
        with pytest.raises(EntityNotFoundError):
            historico_service.execute("nao-existe")


class TestExcluirTicketService:

    def test_admin_exclui_chamado_e_historico(self, ticket_repo, audit_trail, uow, aberto):
        service = ExcluirTicketService(ticket_repo, audit_trail, uow)

        output = service.execute(ExcluirTicketInputDTO(ticket_id=aberto.id, ator_id="adm-1", ator_papel="ADMIN"))

        assert output.numero == aberto.numero
        assert ticket_repo.get_by_id(aberto.id) is None
        assert audit_trail.history(aberto.id) == []

    def test_nao_admin_nao_exclui(self, ticket_repo, audit_trail, uow, aberto):
        service = ExcluirTicketService(ticket_repo, audit_trail, uow)

        with pytest.raises(PermissionDeniedError):
            service.execute(ExcluirTicketInputDTO(ticket_id=aberto.id, ator_id="tec-1", ator_papel="TECNICO"))

        assert ticket_repo.get_by_id(aberto.id) is not None


class TestConsultas:

    def test_obter_ticket(self, ticket_repo, aberto):
        assert ObterTicketService(ticket_repo).execute(aberto.id).numero == "INC0001"

    def test_obter_ticket_inexistente(self, ticket_repo):
        with pytest.raises(EntityNotFoundError):
            ObterTicketService(ticket_repo).execute("nao-existe")

    def test_listar_com_filtros(self, ticket_repo, criar_service, status_service, relogio):
        ids = []
        for solicitante in ("user-1", "user-1", "user-2"):
            relogio.avancar(minutes=1)
            ids.append(criar_service.execute(CriarTicketInputDTO(
                descricao="Sem rede", solicitante_id=solicitante, servicos=("Suporte",),
            )).id)
        status_service.execute(assumir(ids[0]))

        service = ListarTicketsService(ticket_repo)

        assert len(service.execute()) == 3
        assert [t.id for t in service.execute(solicitante_id="user-1")] == [ids[1], ids[0]]
        assert [t.id for t in service.execute(tecnico_id="tec-1")] == [ids[0]]
        assert len(service.execute(status="ABERTO")) == 2
        assert service.execute(status="ABERTO", solicitante_id="user-2")[0].id == ids[2]

    def test_listar_status_invalido(self, ticket_repo):
        with pytest.raises(ValidationError):
            ListarTicketsService(ticket_repo).execute(status="PAUSADO")

    def test_listar_ordenacao_invalida(self, ticket_repo):
        with pytest.raises(ValidationError) as exc:
            ListarTicketsService(ticket_repo).execute(ordenacao="aleatoria")

        assert exc.value.field == "ordenacao"


class TestFilaDeAtendimento:
    """Fila de chamados que um técnico pode assumir."""

    @pytest.fixture
    def fila(self, criar_service, status_service, reabrir_service, relogio):
        """A reaberto, B em atendimento, C e D abertos (criados nesta ordem)."""
        ids = {}
        for nome in ("A", "B", "C", "D"):
            relogio.avancar(minutes=1)
            ids[nome] = criar_service.execute(CriarTicketInputDTO(
                descricao=f"Chamado {nome}", solicitante_id="user-1", servicos=("Suporte",),
            )).id
        status_service.execute(assumir(ids["A"]))
        status_service.execute(encerrar(ids["A"]))
        reabrir_service.execute(ReabrirTicketInputDTO(ticket_id=ids["A"], ator_id="user-1"))
        status_service.execute(assumir(ids["B"]))
        return ids

    def test_repositorio_lista_apenas_abertos_e_reabertos(self, ticket_repo, fila):
        ids = [t.id for t in ticket_repo.list_claimable()]

        assert ids == [fila["D"], fila["C"], fila["A"]]

    def test_ordenacoes(self, ticket_repo, fila):
        service = ListarTicketsService(ticket_repo)

        def ordem(ordenacao):
            return [t.id for t in service.execute(fila=True, ordenacao=ordenacao)]

        assert ordem(None) == [fila["D"], fila["C"], fila["A"]]
        assert ordem("antigos") == [fila["A"], fila["C"], fila["D"]]
        assert ordem("prioridade") == [fila["A"], fila["D"], fila["C"]]

    def test_fila_combina_com_filtro_de_status(self, ticket_repo, fila):
        service = ListarTicketsService(ticket_repo)

        assert [t.id for t in service.execute(fila=True, status="REABERTO")] == [fila["A"]]
        assert service.execute(fila=True, status="EM_ATENDIMENTO") == []


class TestLockTimeout:
    """Linha do chamado travada por outra transação."""

    def test_alterar_status_com_linha_travada(self, catalog, number_generator, state_machine,
                                              publisher, audit_trail, relogio):
        repo = InMemoryTicketRepository(lock_timeout=0.05)
        uow = InMemoryUnitOfWork(event_publisher=publisher)
        ticket = CriarTicketService(repo, catalog, number_generator, uow, clock=relogio).execute(
            CriarTicketInputDTO(descricao="Sem rede", solicitante_id="user-1", servicos=("Suporte",))
        )
        historico_antes = audit_trail.history(ticket.id)

        travado, liberar = threading.Event(), threading.Event()

        def segurar_linha():
            with repo._row_locks[ticket.id]:
                travado.set()
                liberar.wait(timeout=5)

        outra = threading.Thread(target=segurar_linha)
        outra.start()
        travado.wait(timeout=5)
        try:
            service = AlterarStatusService(repo, state_machine, uow, clock=relogio)
            with pytest.raises(LockTimeoutError) as exc:
                service.execute(assumir(ticket.id))
        finally:
            liberar.set()
            outra.join()

        assert exc.value.retryable is True
        atual = repo.get_by_id(ticket.id)
        assert atual.status.value == "ABERTO"
        assert atual.tecnico_id is None
        assert atual.versao == 1
        assert audit_trail.history(ticket.id) == historico_antes


# =============================================================================
# Concorrência
# =============================================================================

class AgendaComBarreira(InMemoryScheduleRepository):
    """Segura as threads depois da leitura do chamado até todas chegarem."""

    def __init__(self, barreira: threading.Barrier):
        super().__init__()
        self._barreira = barreira

    def windows_for(self, tecnico_id):
        self._barreira.wait(timeout=5)
        return super().windows_for(tecnico_id)


@pytest.mark.slow
class TestConcorrencia:

    def test_dois_tecnicos_assumem_ao_mesmo_tempo(self, ticket_repo, publisher, aberto, relogio):
        """Deve aceitar exatamente um e recusar o outro com ConflictError."""
        agenda = AgendaComBarreira(threading.Barrier(2))
        for tecnico in ("tec-1", "tec-2"):
            agenda.definir(tecnico, WorkingHoursWindow.from_strings("08:00", "18:00"))
        machine = TicketStateMachine(AvailabilityChecker(agenda))

        sucessos, erros = [], []

        def tentar(tecnico):
            service = AlterarStatusService(
                ticket_repo, machine, InMemoryUnitOfWork(event_publisher=publisher), clock=relogio
            )
            try:
                sucessos.append(service.execute(assumir(aberto.id, tecnico)))
            except ConflictError as e:
                erros.append(e)

        threads = [threading.Thread(target=tentar, args=(t,)) for t in ("tec-1", "tec-2")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(sucessos) == 1
        assert len(erros) == 1
        atual = ticket_repo.get_by_id(aberto.id)
        assert atual.tecnico_id == sucessos[0].tecnico_id
        assert atual.versao == 2

    def test_rajada_de_aberturas_gera_numeros_distintos(self, ticket_repo, catalog, number_generator,
                                                        publisher, relogio):
        barreira = threading.Barrier(10)
        numeros = []
        lock = threading.Lock()

        def abrir(i):
            service = CriarTicketService(
                ticket_repo, catalog, number_generator,
                InMemoryUnitOfWork(event_publisher=publisher), clock=relogio,
            )
            barreira.wait(timeout=5)
            output = service.execute(CriarTicketInputDTO(
                descricao=f"Chamado {i}", solicitante_id=f"user-{i}", servicos=("Suporte",),
            ))
            with lock:
                numeros.append(output.numero)

        threads = [threading.Thread(target=abrir, args=(i,)) for i in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(numeros) == 10
        assert len(set(numeros)) == 10
        assert ticket_repo.count() == 10
