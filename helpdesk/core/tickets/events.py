"""
Domain Events do Domínio de Chamados.

Todo evento de chamado é auditável: carrega o que é preciso para
produzir a AuditEntry correspondente depois do commit.

Eventos:
- TicketCriadoEvent: Chamado aberto (ABERTURA)
- TicketStatusAlteradoEvent: Assumido, encerrado ou alterado (STATUS)
- TicketReabertoEvent: Reaberto pelo solicitante (REABERTURA)
- TicketCanceladoEvent: Cancelado (CANCELAMENTO)

Uso:
    with uow:
        repo.compare_and_swap(novo, expected_version=atual.versao)
        uow.publish_event(evento_da_transicao(transicao, ator))
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from helpdesk.core.shared.events import DomainEvent

from .audit import AuditEntry, AuditKind
from .entities import Actor


@dataclass
class TicketAuditavelEvent(DomainEvent):
    """
    Base dos eventos de chamado.

    Attributes:
        numero: Número (OS) do chamado
        de_status: Status anterior (None na abertura)
        para_status: Status resultante
        nota: Texto livre registrado no histórico
        autor_id / autor_nome / autor_email: Quem executou a operação
    """

    numero: str = ""
    de_status: Optional[str] = None
    para_status: Optional[str] = None
    nota: str = ""
    autor_id: str = ""
    autor_nome: Optional[str] = None
    autor_email: Optional[str] = None

    audit_kind = AuditKind.STATUS

    @property
    def aggregate_type(self) -> str:
        return "Ticket"

    def to_audit_entry(self) -> AuditEntry:
        return AuditEntry(
            id=self.event_id,
            ticket_id=self.aggregate_id,
            timestamp=self.occurred_at,
            tipo=self.audit_kind,
            de_status=self.de_status,
            para_status=self.para_status,
            nota=self.nota,
            autor_id=self.autor_id,
            autor_nome=self.autor_nome,
            autor_email=self.autor_email,
        )

    @staticmethod
    def audit_entry_from_dict(event_dict: Dict[str, Any]) -> AuditEntry:
        """Reconstrói a AuditEntry a partir de to_dict() (lado do worker)."""
        evento = EVENTOS_AUDITAVEIS[event_dict["event_type"]].from_dict(event_dict)
        return evento.to_audit_entry()


@dataclass
class TicketCriadoEvent(TicketAuditavelEvent):
    """Chamado aberto pelo solicitante."""

    audit_kind = AuditKind.ABERTURA


@dataclass
class TicketStatusAlteradoEvent(TicketAuditavelEvent):
    """
    Status alterado por técnico ou administrador.

    Attributes:
        tecnico_id: Responsável após a transição
    """

    tecnico_id: Optional[str] = None

    audit_kind = AuditKind.STATUS


@dataclass
class TicketReabertoEvent(TicketAuditavelEvent):
    """Chamado encerrado reaberto dentro do prazo."""

    audit_kind = AuditKind.REABERTURA


@dataclass
class TicketCanceladoEvent(TicketAuditavelEvent):
    """Chamado cancelado pelo solicitante ou administrador."""

    audit_kind = AuditKind.CANCELAMENTO


EVENTOS_AUDITAVEIS = {
    cls.__name__: cls
    for cls in (
        TicketCriadoEvent,
        TicketStatusAlteradoEvent,
        TicketReabertoEvent,
        TicketCanceladoEvent,
    )
}


def evento_da_transicao(transicao, ator: Actor) -> TicketAuditavelEvent:
    """
    Cria o evento correspondente a uma Transicao aplicada.

    O tipo de evento segue o tipo de auditoria da regra usada.
    """
    anterior, atual = transicao.anterior, transicao.atual
    dados = dict(
        aggregate_id=atual.id,
        occurred_at=atual.atualizado_em,
        numero=atual.numero,
        de_status=anterior.status.value,
        para_status=atual.status.value,
        nota=transicao.nota,
        autor_id=ator.id,
        autor_nome=ator.nome,
        autor_email=ator.email,
    )

    tipo = transicao.regra.tipo
    if tipo == AuditKind.REABERTURA:
        return TicketReabertoEvent(**dados)
    if tipo == AuditKind.CANCELAMENTO:
        return TicketCanceladoEvent(**dados)
    return TicketStatusAlteradoEvent(tecnico_id=atual.tecnico_id, **dados)
