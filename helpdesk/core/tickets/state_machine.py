"""
Máquina de estados do chamado.

As regras de papel são uma tabela explícita indexada por
(status de origem, status de destino, papel do ator). Cada entrada
diz quais guardas se aplicam e quais efeitos a transição produz.
Combinações ausentes da tabela são rejeitadas com o erro mais
específico possível (terminal, permissão, regra de negócio).

Tabela:
    ABERTO/REABERTO  → EM_ATENDIMENTO   TECNICO  expediente; assume o chamado
    ABERTO/REABERTO  → EM_ATENDIMENTO   ADMIN    sem guarda; pode designar técnico
    ativos           → ENCERRADO        TECNICO/ADMIN  motivo obrigatório
    ativos           → CANCELADO        USUARIO (dono)/ADMIN  motivo obrigatório
    ENCERRADO        → ENCERRADO        ADMIN    reencerrar com novo motivo
    ENCERRADO        → REABERTO         USUARIO (dono)  até 48h após encerramento
    CANCELADO        → qualquer         rejeitado (terminal)

Todas as guardas são avaliadas antes de qualquer mutação.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple
import logging

from helpdesk.core.shared.exceptions import (
    BusinessRuleViolationError,
    ConflictError,
    DomainException,
    PermissionDeniedError,
    TerminalStateError,
    ValidationError,
)

from .audit import AuditKind
from .availability import AvailabilityChecker
from .entities import ATIVOS, Actor, ActorRole, TicketEntity, TicketStatus, normalizar_texto

logger = logging.getLogger(__name__)


JANELA_REABERTURA_PADRAO = timedelta(hours=48)


@dataclass(frozen=True)
class TransitionRule:
    """Guardas e efeitos de uma entrada da tabela de transições."""

    tipo: AuditKind = AuditKind.STATUS
    exige_motivo: bool = False
    exige_expediente: bool = False
    exige_proprietario: bool = False
    exige_janela_reabertura: bool = False
    assume_ticket: bool = False
    permite_designar_tecnico: bool = False
    nota_padrao: str = "Alteração de status"


@dataclass(frozen=True)
class Transicao:
    """Resultado de uma transição aprovada."""

    anterior: TicketEntity
    atual: TicketEntity
    regra: TransitionRule
    nota: str


Chave = Tuple[TicketStatus, TicketStatus, ActorRole]


def _montar_tabela() -> Dict[Chave, TransitionRule]:
    assumir_tecnico = TransitionRule(
        exige_expediente=True,
        assume_ticket=True,
        nota_padrao="Chamado assumido pelo técnico",
    )
    assumir_admin = TransitionRule(
        permite_designar_tecnico=True,
        nota_padrao="Chamado colocado em atendimento pelo administrador",
    )
    encerrar = TransitionRule(exige_motivo=True, nota_padrao="Chamado encerrado")
    cancelar_usuario = TransitionRule(
        tipo=AuditKind.CANCELAMENTO,
        exige_motivo=True,
        exige_proprietario=True,
        nota_padrao="Chamado cancelado",
    )
    cancelar_admin = TransitionRule(
        tipo=AuditKind.CANCELAMENTO,
        exige_motivo=True,
        nota_padrao="Chamado cancelado",
    )
    reabrir = TransitionRule(
        tipo=AuditKind.REABERTURA,
        exige_proprietario=True,
        exige_janela_reabertura=True,
        nota_padrao="Chamado reaberto pelo usuário dentro do prazo",
    )

    tabela: Dict[Chave, TransitionRule] = {}

    for origem in (TicketStatus.ABERTO, TicketStatus.REABERTO):
        tabela[(origem, TicketStatus.EM_ATENDIMENTO, ActorRole.TECNICO)] = assumir_tecnico
        tabela[(origem, TicketStatus.EM_ATENDIMENTO, ActorRole.ADMIN)] = assumir_admin

    for origem in ATIVOS:
        tabela[(origem, TicketStatus.ENCERRADO, ActorRole.TECNICO)] = encerrar
        tabela[(origem, TicketStatus.ENCERRADO, ActorRole.ADMIN)] = encerrar
        tabela[(origem, TicketStatus.CANCELADO, ActorRole.USUARIO)] = cancelar_usuario
        tabela[(origem, TicketStatus.CANCELADO, ActorRole.ADMIN)] = cancelar_admin

    tabela[(TicketStatus.ENCERRADO, TicketStatus.ENCERRADO, ActorRole.ADMIN)] = encerrar
    tabela[(TicketStatus.ENCERRADO, TicketStatus.REABERTO, ActorRole.USUARIO)] = reabrir

    return tabela


GUARD_TABLE: Dict[Chave, TransitionRule] = _montar_tabela()


def _negacao(origem: TicketStatus, destino: TicketStatus, papel: ActorRole) -> DomainException:
    """Erro para uma combinação ausente da tabela."""
    if origem == TicketStatus.CANCELADO:
        return TerminalStateError(
            "Chamados cancelados não podem ser reabertos ou alterados"
        )

    if destino == TicketStatus.CANCELADO and papel == ActorRole.TECNICO:
        return PermissionDeniedError(
            "Técnicos não podem cancelar chamados",
            action="cancelar",
        )

    if destino in (TicketStatus.EM_ATENDIMENTO, TicketStatus.ENCERRADO) and papel == ActorRole.USUARIO:
        return PermissionDeniedError(
            f"Usuários não podem alterar o status para {destino.value}",
            action="alterar_status",
        )

    if origem == TicketStatus.ENCERRADO:
        if destino == TicketStatus.REABERTO:
            return PermissionDeniedError(
                "Somente o solicitante pode reabrir o chamado",
                action="reabrir",
            )
        if papel == ActorRole.TECNICO:
            return BusinessRuleViolationError(
                "Chamados encerrados não podem ser alterados por técnicos",
                rule="ticket_encerrado_imutavel",
            )
        if destino == TicketStatus.CANCELADO:
            return TerminalStateError("Não é possível cancelar um chamado encerrado")
        return BusinessRuleViolationError(
            "Chamados encerrados só podem ser reabertos pelo solicitante "
            "ou reencerrados por um administrador",
            rule="ticket_encerrado_imutavel",
        )

    if destino == TicketStatus.REABERTO:
        return BusinessRuleViolationError(
            "Somente chamados encerrados podem ser reabertos",
            rule="ticket_nao_encerrado",
        )

    if origem == TicketStatus.EM_ATENDIMENTO and destino == TicketStatus.EM_ATENDIMENTO:
        return ConflictError("Chamado já está em atendimento", rule="ticket_ja_assumido")

    return BusinessRuleViolationError(
        f"Transição de {origem.value} para {destino.value} não é permitida",
        rule="transicao_invalida",
    )


def avaliar_transicao(origem: TicketStatus, destino: TicketStatus, papel: ActorRole) -> TransitionRule:
    """
    Função pura: regra aplicável ou exceção explicando a recusa.

    Raises:
        TerminalStateError, PermissionDeniedError, ConflictError,
        BusinessRuleViolationError
    """
    regra = GUARD_TABLE.get((origem, destino, papel))
    if regra is None:
        raise _negacao(origem, destino, papel)
    return regra


class TicketStateMachine:
    """
    Valida e aplica transições de status.

    Não persiste nada: devolve uma Transicao com o novo estado, que
    o use case grava via compare-and-swap dentro do UnitOfWork.

    Example:
        machine = TicketStateMachine(AvailabilityChecker(schedules))
        transicao = machine.transicionar(
            ticket, TicketStatus.EM_ATENDIMENTO, tecnico, agora
        )
        transicao.atual.tecnico_id  # == tecnico.id
    """

    def __init__(
        self,
        availability: AvailabilityChecker,
        janela_reabertura: timedelta = JANELA_REABERTURA_PADRAO,
    ):
        self._availability = availability
        self._janela_reabertura = janela_reabertura

    def transicionar(
        self,
        ticket: TicketEntity,
        destino: TicketStatus,
        ator: Actor,
        agora: datetime,
        motivo: Optional[str] = None,
        nota: Optional[str] = None,
        tecnico_id: Optional[str] = None,
    ) -> Transicao:
        regra = avaliar_transicao(ticket.status, destino, ator.role)

        if regra.exige_proprietario and ticket.solicitante_id != ator.id:
            raise PermissionDeniedError(
                "Você só pode alterar chamados abertos por você",
                action="proprietario",
            )

        if tecnico_id and not regra.permite_designar_tecnico and tecnico_id != ator.id:
            raise PermissionDeniedError(
                "Somente administradores podem designar o técnico responsável",
                action="designar_tecnico",
            )

        motivo = normalizar_texto(motivo, "motivo_encerramento")
        nota = normalizar_texto(nota, "nota")
        if regra.exige_motivo and not motivo:
            raise ValidationError(
                f"Motivo é obrigatório para status {destino.value}",
                field="motivo_encerramento",
            )

        if regra.exige_janela_reabertura:
            self._verificar_janela_reabertura(ticket, agora)

        if regra.exige_expediente and not self._availability.is_within_working_hours(ator.id, agora):
            raise BusinessRuleViolationError(
                "Chamado só pode ser assumido dentro do horário de expediente",
                rule="fora_do_expediente",
            )

        responsavel = None
        if regra.assume_ticket:
            responsavel = ator.id
        elif regra.permite_designar_tecnico:
            responsavel = tecnico_id

        atual = ticket.com_transicao(destino, agora, motivo=motivo, tecnico_id=responsavel)

        logger.debug(
            f"Transição aprovada {ticket.numero}: {ticket.status.value} → "
            f"{destino.value} por {ator.role.value} {ator.id}"
        )

        return Transicao(
            anterior=ticket,
            atual=atual,
            regra=regra,
            nota=nota or regra.nota_padrao,
        )

    def _verificar_janela_reabertura(self, ticket: TicketEntity, agora: datetime) -> None:
        if ticket.encerrado_em is None:
            raise BusinessRuleViolationError(
                "Data de encerramento não localizada",
                rule="data_encerramento_ausente",
            )

        if agora - ticket.encerrado_em > self._janela_reabertura:
            horas = int(self._janela_reabertura.total_seconds() // 3600)
            raise BusinessRuleViolationError(
                f"Só é possível reabrir até {horas}h após o encerramento",
                rule="prazo_reabertura_expirado",
            )
