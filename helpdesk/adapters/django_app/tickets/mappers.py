"""
Mappers para conversão entre Entities (Core) e Models (Django).

Responsabilidades:
- TicketModel ↔ TicketEntity
- AuditEntryModel ↔ AuditEntry
- ExpedienteModel → WorkingHoursWindow
- ServiceModel → ServiceRef

Mappers são stateless e não contêm lógica de negócio.
"""

from typing import Any, Dict, List

from helpdesk.core.tickets.audit import AuditEntry, AuditKind
from helpdesk.core.tickets.availability import WorkingHoursWindow
from helpdesk.core.tickets.entities import ServiceRef, TicketEntity, TicketStatus

from .models import AuditEntryModel, ExpedienteModel, ServiceModel, TicketModel


class TicketMapper:
    """
    Mapper para conversão entre TicketEntity e TicketModel.

    to_entity() espera servicos pré-carregados (prefetch_related)
    para evitar N+1 em listagens.
    """

    @staticmethod
    def to_fields(entity: TicketEntity) -> Dict[str, Any]:
        """Campos escalares do model (sem o M2M de serviços)."""
        return {
            'id': entity.id,
            'numero': entity.numero,
            'descricao': entity.descricao,
            'status': entity.status.value,
            'solicitante_id': entity.solicitante_id,
            'tecnico_id': entity.tecnico_id,
            'criado_em': entity.criado_em,
            'atualizado_em': entity.atualizado_em,
            'encerrado_em': entity.encerrado_em,
            'motivo_encerramento': entity.motivo_encerramento,
            'versao': entity.versao,
        }

    @staticmethod
    def to_state_fields(entity: TicketEntity) -> Dict[str, Any]:
        """Campos alterados por uma transição (UPDATE do compare-and-swap)."""
        return {
            'status': entity.status.value,
            'tecnico_id': entity.tecnico_id,
            'atualizado_em': entity.atualizado_em,
            'encerrado_em': entity.encerrado_em,
            'motivo_encerramento': entity.motivo_encerramento,
            'versao': entity.versao,
        }

    @staticmethod
    def to_entity(model: TicketModel) -> TicketEntity:
        return TicketEntity(
            id=model.id,
            numero=model.numero,
            descricao=model.descricao,
            status=TicketStatus(model.status),
            solicitante_id=model.solicitante_id,
            tecnico_id=model.tecnico_id,
            criado_em=model.criado_em,
            atualizado_em=model.atualizado_em,
            encerrado_em=model.encerrado_em,
            motivo_encerramento=model.motivo_encerramento,
            servicos=[ServiceMapper.to_ref(s) for s in model.servicos.all()],
            versao=model.versao,
        )

    @staticmethod
    def to_entity_list(models: List[TicketModel]) -> List[TicketEntity]:
        return [TicketMapper.to_entity(m) for m in models]


class ServiceMapper:
    @staticmethod
    def to_ref(model: ServiceModel) -> ServiceRef:
        return ServiceRef(id=model.id, nome=model.nome)


class ExpedienteMapper:
    @staticmethod
    def to_window(model: ExpedienteModel) -> WorkingHoursWindow:
        return WorkingHoursWindow(entrada=model.entrada, saida=model.saida)


class AuditEntryMapper:
    """Mapper para conversão entre AuditEntry e AuditEntryModel."""

    @staticmethod
    def to_fields(entry: AuditEntry) -> Dict[str, Any]:
        return {
            'ticket_id': entry.ticket_id,
            'registrado_em': entry.timestamp,
            'tipo': entry.tipo.value,
            'de_status': entry.de_status,
            'para_status': entry.para_status,
            'nota': entry.nota or '',
            'autor_id': entry.autor_id,
            'autor_nome': entry.autor_nome,
            'autor_email': entry.autor_email,
        }

    @staticmethod
    def to_entry(model: AuditEntryModel) -> AuditEntry:
        return AuditEntry(
            id=model.entry_id,
            ticket_id=model.ticket_id,
            timestamp=model.registrado_em,
            tipo=AuditKind(model.tipo),
            de_status=model.de_status,
            para_status=model.para_status,
            nota=model.nota,
            autor_id=model.autor_id,
            autor_nome=model.autor_nome,
            autor_email=model.autor_email,
        )
