"""
Data Transfer Objects (DTOs) do Domínio de Chamados.

DTOs são estruturas simples para transportar dados entre camadas,
evitando vazamento das entidades para a camada HTTP.

Tipos de DTOs:
- Input DTOs: Dados de entrada de cada operação (já extraídos do request)
- Output DTOs: Formato de resposta (to_dict() pronto para JSON)
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List

from .audit import AuditEntry
from .entities import TicketEntity


# =============================================================================
# INPUT DTOs (Entrada)
# =============================================================================

@dataclass(frozen=True)
class CriarTicketInputDTO:
    """
    DTO de entrada para abrir chamado.

    Attributes:
        descricao: Descrição do problema
        solicitante_id: ID do usuário autenticado
        servicos: Nomes ou IDs de serviços (tuple para ser hashable)
        solicitante_nome / solicitante_email: Autor gravado no histórico
    """

    descricao: str
    solicitante_id: str
    servicos: tuple = field(default_factory=tuple)
    solicitante_nome: Optional[str] = None
    solicitante_email: Optional[str] = None


@dataclass(frozen=True)
class AlterarStatusInputDTO:
    """
    DTO de entrada para alteração de status.

    Attributes:
        ticket_id: ID do chamado
        ator_id: Quem solicita a alteração
        ator_papel: ADMIN, TECNICO ou USUARIO
        status: Status de destino (string ainda não validada)
        motivo_encerramento: Obrigatório para ENCERRADO/CANCELADO
        nota: Texto livre para o histórico
        tecnico_id: Técnico designado (apenas ADMIN)
    """

    ticket_id: str
    ator_id: str
    ator_papel: str
    status: str
    motivo_encerramento: Optional[str] = None
    nota: Optional[str] = None
    tecnico_id: Optional[str] = None
    ator_nome: Optional[str] = None
    ator_email: Optional[str] = None


@dataclass(frozen=True)
class ReabrirTicketInputDTO:
    """DTO de entrada para reabertura (sempre pelo solicitante)."""

    ticket_id: str
    ator_id: str
    nota: Optional[str] = None
    ator_nome: Optional[str] = None
    ator_email: Optional[str] = None


@dataclass(frozen=True)
class CancelarTicketInputDTO:
    """DTO de entrada para cancelamento."""

    ticket_id: str
    ator_id: str
    ator_papel: str
    motivo: str
    nota: Optional[str] = None
    ator_nome: Optional[str] = None
    ator_email: Optional[str] = None


@dataclass(frozen=True)
class ExcluirTicketInputDTO:
    """DTO de entrada para exclusão definitiva (administrativa)."""

    ticket_id: str
    ator_id: str
    ator_papel: str


# =============================================================================
# OUTPUT DTOs (Saída)
# =============================================================================

@dataclass(frozen=True)
class TicketOutputDTO:
    """
    DTO de saída com dados completos do chamado.

    Example:
        output = TicketOutputDTO.from_entity(ticket)
        return JsonResponse(output.to_dict())
    """

    id: str
    numero: str
    descricao: str
    status: str
    solicitante_id: str
    tecnico_id: Optional[str]
    servicos: List[str]
    criado_em: datetime
    atualizado_em: datetime
    encerrado_em: Optional[datetime]
    motivo_encerramento: Optional[str]
    versao: int

    @classmethod
    def from_entity(cls, entity: TicketEntity) -> "TicketOutputDTO":
        return cls(
            id=entity.id,
            numero=entity.numero,
            descricao=entity.descricao,
            status=entity.status.value,
            solicitante_id=entity.solicitante_id,
            tecnico_id=entity.tecnico_id,
            servicos=entity.nomes_servicos,
            criado_em=entity.criado_em,
            atualizado_em=entity.atualizado_em,
            encerrado_em=entity.encerrado_em,
            motivo_encerramento=entity.motivo_encerramento,
            versao=entity.versao,
        )

    def to_dict(self) -> dict:
        """Converte para dicionário (para JSON)."""
        return {
            "id": self.id,
            "numero": self.numero,
            "descricao": self.descricao,
            "status": self.status,
            "solicitante_id": self.solicitante_id,
            "tecnico_id": self.tecnico_id,
            "servicos": list(self.servicos),
            "criado_em": self.criado_em.isoformat(),
            "atualizado_em": self.atualizado_em.isoformat(),
            "encerrado_em": self.encerrado_em.isoformat() if self.encerrado_em else None,
            "motivo_encerramento": self.motivo_encerramento,
            "versao": self.versao,
        }


@dataclass(frozen=True)
class AuditEntryOutputDTO:
    """Uma linha do histórico do chamado."""

    ticket_id: str
    timestamp: datetime
    tipo: str
    de_status: Optional[str]
    para_status: Optional[str]
    nota: str
    autor_id: str
    autor_nome: Optional[str]
    autor_email: Optional[str]

    @classmethod
    def from_entry(cls, entry: AuditEntry) -> "AuditEntryOutputDTO":
        return cls(
            ticket_id=entry.ticket_id,
            timestamp=entry.timestamp,
            tipo=entry.tipo.value,
            de_status=entry.de_status,
            para_status=entry.para_status,
            nota=entry.nota,
            autor_id=entry.autor_id,
            autor_nome=entry.autor_nome,
            autor_email=entry.autor_email,
        )

    def to_dict(self) -> dict:
        return {
            "ticket_id": self.ticket_id,
            "timestamp": self.timestamp.isoformat(),
            "tipo": self.tipo,
            "de": self.de_status,
            "para": self.para_status,
            "nota": self.nota,
            "autor": {
                "id": self.autor_id,
                "nome": self.autor_nome,
                "email": self.autor_email,
            },
        }
