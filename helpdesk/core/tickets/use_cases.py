"""
Use Cases (Application Services) do Domínio de Chamados.

Orquestram entidades, máquina de estados, repositórios e eventos.

Use Cases implementados:
- CriarTicketService: Abre chamado com número sequencial
- AlterarStatusService: Transição de status por técnico/admin
- ReabrirTicketService: Reabertura pelo solicitante em até 48h
- CancelarTicketService: Cancelamento pelo solicitante ou admin
- ObterHistoricoService: Histórico ordenado do chamado
- ExcluirTicketService: Exclusão definitiva (admin)
- ObterTicketService / ListarTicketsService: Consultas e fila de atendimento

Responsabilidades dos Use Cases:
- Validar entrada antes de qualquer mutação
- Gerenciar transações (via UoW) e compare-and-swap
- Disparar eventos de domínio (histórico é gravado após commit)
- Retornar DTOs de saída
"""

from datetime import datetime
from typing import Callable, List, Optional
import logging

from helpdesk.core.shared.interfaces import UnitOfWork
from helpdesk.core.shared.exceptions import (
    EntityNotFoundError,
    PermissionDeniedError,
    ValidationError,
)

from .dtos import (
    AlterarStatusInputDTO,
    AuditEntryOutputDTO,
    CancelarTicketInputDTO,
    CriarTicketInputDTO,
    ExcluirTicketInputDTO,
    ReabrirTicketInputDTO,
    TicketOutputDTO,
)
from .entities import Actor, ActorRole, TicketEntity, TicketStatus, normalizar_texto
from .events import TicketCriadoEvent, evento_da_transicao
from .ports import AuditTrail, ServiceCatalog, TicketRepository
from .sequence import TicketNumberGenerator
from .state_machine import TicketStateMachine

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _papel(valor: str) -> ActorRole:
    try:
        return ActorRole.from_string(valor)
    except ValueError as e:
        raise ValidationError(str(e), field="papel")


def _buscar_ticket(ticket_repo: TicketRepository, ticket_id: str) -> TicketEntity:
    ticket = ticket_repo.get_by_id(ticket_id)
    if not ticket:
        raise EntityNotFoundError(
            f"Chamado {ticket_id} não encontrado",
            entity_type="Ticket",
            entity_id=ticket_id,
        )
    return ticket


class CriarTicketService:
    """
    Use Case: Abrir um novo chamado.

    Fluxo:
    1. Validar descrição e serviços
    2. Resolver serviços no catálogo (antes de consumir número)
    3. Em transação: gerar número, inserir chamado, enfileirar evento
    4. Retornar DTO de saída

    Example:
        service = CriarTicketService(ticket_repo, catalog, generator, uow)
        output = service.execute(CriarTicketInputDTO(
            descricao="Impressora travando",
            solicitante_id="user-1",
            servicos=("Suporte",),
        ))
        output.numero  # "INC0001"
    """

    def __init__(
        self,
        ticket_repo: TicketRepository,
        service_catalog: ServiceCatalog,
        number_generator: TicketNumberGenerator,
        uow: UnitOfWork,
        clock: Clock = datetime.now,
    ):
        self.ticket_repo = ticket_repo
        self.service_catalog = service_catalog
        self.number_generator = number_generator
        self.uow = uow
        self.clock = clock

    def execute(self, input_dto: CriarTicketInputDTO) -> TicketOutputDTO:
        """
        Raises:
            ValidationError: Descrição vazia ou serviços não encontrados
            DependencyFailureError: Sequência ou banco indisponíveis
        """
        descricao = TicketEntity.validar_descricao(input_dto.descricao)
        servicos = self._resolver_servicos(input_dto.servicos)

        with self.uow:
            numero = self.number_generator.next()
            ticket = TicketEntity.criar(
                numero=numero,
                descricao=descricao,
                solicitante_id=input_dto.solicitante_id,
                servicos=servicos,
                agora=self.clock(),
            )
            self.ticket_repo.add(ticket)

            self.uow.publish_event(
                TicketCriadoEvent(
                    aggregate_id=ticket.id,
                    occurred_at=ticket.criado_em,
                    numero=ticket.numero,
                    para_status=ticket.status.value,
                    nota=ticket.descricao,
                    autor_id=input_dto.solicitante_id,
                    autor_nome=input_dto.solicitante_nome,
                    autor_email=input_dto.solicitante_email,
                )
            )

        logger.info(f"Chamado {ticket.numero} aberto por {ticket.solicitante_id}")
        return TicketOutputDTO.from_entity(ticket)

    def _resolver_servicos(self, referencias):
        if isinstance(referencias, str):
            referencias = [referencias]
        refs = [r.strip() for r in (referencias or []) if isinstance(r, str) and r.strip()]

        if not refs:
            raise ValidationError(
                "É obrigatório informar pelo menos um serviço válido",
                field="servicos",
            )

        encontrados = self.service_catalog.find_active(refs)
        conhecidos = {s.id for s in encontrados} | {s.nome for s in encontrados}
        faltando = [r for r in refs if r not in conhecidos]

        if faltando:
            raise ValidationError(
                f"Serviço(s) não encontrado(s) ou inativo(s): {', '.join(faltando)}",
                field="servicos",
            )
        return encontrados


class _TransicaoService:
    """Base das operações que passam pela máquina de estados."""

    def __init__(
        self,
        ticket_repo: TicketRepository,
        state_machine: TicketStateMachine,
        uow: UnitOfWork,
        clock: Clock = datetime.now,
    ):
        self.ticket_repo = ticket_repo
        self.state_machine = state_machine
        self.uow = uow
        self.clock = clock

    def _aplicar(
        self,
        ticket_id: str,
        ator: Actor,
        destino: TicketStatus,
        motivo: Optional[str] = None,
        nota: Optional[str] = None,
        tecnico_id: Optional[str] = None,
        verificar: Optional[Callable[[TicketEntity], None]] = None,
    ) -> TicketOutputDTO:
        with self.uow:
            ticket = _buscar_ticket(self.ticket_repo, ticket_id)
            if verificar:
                verificar(ticket)

            transicao = self.state_machine.transicionar(
                ticket,
                destino,
                ator,
                self.clock(),
                motivo=motivo,
                nota=nota,
                tecnico_id=tecnico_id,
            )
            self.ticket_repo.compare_and_swap(transicao.atual, expected_version=ticket.versao)
            self.uow.publish_event(evento_da_transicao(transicao, ator))

        logger.info(
            f"Chamado {ticket.numero}: {ticket.status.value} → {destino.value} "
            f"por {ator.role.value} {ator.id}"
        )
        return TicketOutputDTO.from_entity(transicao.atual)


class AlterarStatusService(_TransicaoService):
    """
    Use Case: Alterar status (assumir, encerrar, cancelar, reencerrar).

    O status de destino é validado antes de ler o chamado: valor
    fora dos cinco estados é erro de entrada para qualquer ator.
    """

    def execute(self, input_dto: AlterarStatusInputDTO) -> TicketOutputDTO:
        """
        Raises:
            ValidationError: Status inválido ou motivo ausente
            EntityNotFoundError: Chamado não existe
            PermissionDeniedError: Papel sem permissão
            BusinessRuleViolationError: Fora do expediente, encerrado imutável
            ConflictError: Estado terminal ou alteração concorrente
        """
        try:
            destino = TicketStatus.from_string(input_dto.status)
        except ValueError as e:
            raise ValidationError(str(e), field="status")

        ator = Actor(
            id=input_dto.ator_id,
            role=_papel(input_dto.ator_papel),
            nome=input_dto.ator_nome,
            email=input_dto.ator_email,
        )

        return self._aplicar(
            input_dto.ticket_id,
            ator,
            destino,
            motivo=input_dto.motivo_encerramento,
            nota=input_dto.nota,
            tecnico_id=input_dto.tecnico_id,
        )


class ReabrirTicketService(_TransicaoService):
    """
    Use Case: Reabrir chamado encerrado.

    Somente o solicitante, e até 48h após o encerramento. A
    propriedade é conferida antes do status e do prazo.
    """

    def execute(self, input_dto: ReabrirTicketInputDTO) -> TicketOutputDTO:
        ator = Actor(
            id=input_dto.ator_id,
            role=ActorRole.USUARIO,
            nome=input_dto.ator_nome,
            email=input_dto.ator_email,
        )

        def verificar_proprietario(ticket: TicketEntity) -> None:
            if ticket.solicitante_id != ator.id:
                raise PermissionDeniedError(
                    "Você só pode reabrir chamados abertos por você",
                    action="reabrir",
                )

        return self._aplicar(
            input_dto.ticket_id,
            ator,
            TicketStatus.REABERTO,
            nota=input_dto.nota,
            verificar=verificar_proprietario,
        )


class CancelarTicketService(_TransicaoService):
    """
    Use Case: Cancelar chamado.

    Técnicos nunca cancelam; o motivo é obrigatório e conferido
    antes de carregar o chamado.
    """

    def execute(self, input_dto: CancelarTicketInputDTO) -> TicketOutputDTO:
        papel = _papel(input_dto.ator_papel)
        if papel == ActorRole.TECNICO:
            raise PermissionDeniedError("Técnicos não podem cancelar chamados", action="cancelar")

        if not normalizar_texto(input_dto.motivo, "motivo_encerramento"):
            raise ValidationError(
                "Motivo do cancelamento é obrigatório",
                field="motivo_encerramento",
            )

        ator = Actor(
            id=input_dto.ator_id,
            role=papel,
            nome=input_dto.ator_nome,
            email=input_dto.ator_email,
        )
        return self._aplicar(
            input_dto.ticket_id,
            ator,
            TicketStatus.CANCELADO,
            motivo=input_dto.motivo,
            nota=input_dto.nota,
        )


class ObterHistoricoService:
    """Use Case: Histórico do chamado em ordem cronológica."""

    def __init__(self, ticket_repo: TicketRepository, audit_trail: AuditTrail):
        self.ticket_repo = ticket_repo
        self.audit_trail = audit_trail

    def execute(self, ticket_id: str) -> List[AuditEntryOutputDTO]:
        _buscar_ticket(self.ticket_repo, ticket_id)
        return [
            AuditEntryOutputDTO.from_entry(entry)
            for entry in self.audit_trail.history(ticket_id)
        ]


class ExcluirTicketService:
    """
    Use Case: Exclusão definitiva (administrativa).

    Remove o chamado, seus vínculos de serviço e todo o histórico.
    """

    def __init__(self, ticket_repo: TicketRepository, audit_trail: AuditTrail, uow: UnitOfWork):
        self.ticket_repo = ticket_repo
        self.audit_trail = audit_trail
        self.uow = uow

    def execute(self, input_dto: ExcluirTicketInputDTO) -> TicketOutputDTO:
        if _papel(input_dto.ator_papel) != ActorRole.ADMIN:
            raise PermissionDeniedError(
                "Somente administradores podem excluir chamados",
                action="excluir",
            )

        with self.uow:
            ticket = _buscar_ticket(self.ticket_repo, input_dto.ticket_id)
            self.ticket_repo.delete(ticket.id)
            removidas = self.audit_trail.delete_for_ticket(ticket.id)

        logger.warning(
            f"Chamado {ticket.numero} excluído por {input_dto.ator_id} "
            f"({removidas} entradas de histórico removidas)"
        )
        return TicketOutputDTO.from_entity(ticket)


class ObterTicketService:
    """Use Case: Obter chamado específico."""

    def __init__(self, ticket_repo: TicketRepository):
        self.ticket_repo = ticket_repo

    def execute(self, ticket_id: str) -> TicketOutputDTO:
        return TicketOutputDTO.from_entity(_buscar_ticket(self.ticket_repo, ticket_id))


ORDENACOES = ("recentes", "antigos", "prioridade")


def ordenar_fila(tickets: List[TicketEntity], ordenacao: str = "recentes") -> List[TicketEntity]:
    """
    Ordena uma listagem de chamados.

    - recentes: criação mais nova primeiro
    - antigos: criação mais antiga primeiro
    - prioridade: REABERTO primeiro, depois os mais recentes
    """
    if ordenacao == "antigos":
        return sorted(tickets, key=lambda t: t.criado_em)

    recentes = sorted(tickets, key=lambda t: t.criado_em, reverse=True)
    if ordenacao == "prioridade":
        return sorted(recentes, key=lambda t: t.status != TicketStatus.REABERTO)
    return recentes


class ListarTicketsService:
    """
    Use Case: Listar chamados com filtros.

    Cobre "meus chamados" (solicitante), "chamados atribuídos"
    (técnico), a fila de atendimento (ABERTO ou REABERTO) e a
    listagem por status do administrador. Filtros são combinados
    com AND.
    """

    def __init__(self, ticket_repo: TicketRepository):
        self.ticket_repo = ticket_repo

    def execute(
        self,
        status: Optional[str] = None,
        solicitante_id: Optional[str] = None,
        tecnico_id: Optional[str] = None,
        fila: bool = False,
        ordenacao: Optional[str] = None,
    ) -> List[TicketOutputDTO]:
        """
        Raises:
            ValidationError: Status ou ordenação inválidos
        """
        status_enum = None
        if status:
            try:
                status_enum = TicketStatus.from_string(status)
            except ValueError as e:
                raise ValidationError(str(e), field="status")

        ordenacao = (ordenacao or "recentes").strip().lower()
        if ordenacao not in ORDENACOES:
            raise ValidationError(
                f"Ordenação inválida: {ordenacao}. Use {', '.join(ORDENACOES)}",
                field="ordenacao",
            )

        if fila:
            tickets = self.ticket_repo.list_claimable()
        elif solicitante_id:
            tickets = self.ticket_repo.list_by_solicitante(solicitante_id)
        elif tecnico_id:
            tickets = self.ticket_repo.list_by_tecnico(tecnico_id)
        elif status_enum:
            tickets = self.ticket_repo.list_by_status(status_enum)
        else:
            tickets = self.ticket_repo.list_all()

        if status_enum:
            tickets = [t for t in tickets if t.status == status_enum]
        if solicitante_id:
            tickets = [t for t in tickets if t.solicitante_id == solicitante_id]
        if tecnico_id:
            tickets = [t for t in tickets if t.tecnico_id == tecnico_id]

        return [TicketOutputDTO.from_entity(t) for t in ordenar_fila(tickets, ordenacao)]
