"""
Entidades do Domínio de Chamados.

Este módulo define as entidades e value objects do ciclo de vida
de um chamado de suporte.

Entidades:
- TicketEntity: Agregado principal do domínio
- TicketStatus: Estados possíveis de um chamado
- ActorRole / Actor: Quem solicita a operação
- ServiceRef: Referência somente-leitura a um serviço do catálogo

Regras encapsuladas:
- Validação da descrição na criação
- encerrado_em preenchido se, e somente se, o status for final
- Versão incrementada a cada transição (compare-and-swap)
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, List
import uuid

from helpdesk.core.shared.exceptions import ValidationError


class TicketStatus(Enum):
    """
    Estados possíveis de um chamado.

    Fluxo de Estados:
        ABERTO → EM_ATENDIMENTO → ENCERRADO → REABERTO → EM_ATENDIMENTO
           └──────────┴──────────────┴──→ CANCELADO (terminal)
    """

    ABERTO = "ABERTO"
    EM_ATENDIMENTO = "EM_ATENDIMENTO"
    ENCERRADO = "ENCERRADO"
    CANCELADO = "CANCELADO"
    REABERTO = "REABERTO"

    @property
    def finalizado(self) -> bool:
        """Status com encerrado_em obrigatório."""
        return self in (TicketStatus.ENCERRADO, TicketStatus.CANCELADO)

    @classmethod
    def from_string(cls, value: str) -> "TicketStatus":
        """
        Converte string para enum.

        Args:
            value: Nome do status (ex: "em_atendimento", "EM ATENDIMENTO")

        Returns:
            TicketStatus correspondente

        Raises:
            ValueError: Se valor inválido
        """
        if not isinstance(value, str):
            raise ValueError(f"Status inválido: {value!r}")

        normalizado = value.strip().upper().replace(" ", "_")
        try:
            return cls[normalizado]
        except KeyError:
            raise ValueError(f"Status inválido: {value}")


ATIVOS = (TicketStatus.ABERTO, TicketStatus.EM_ATENDIMENTO, TicketStatus.REABERTO)

# Fila de atendimento: chamados que um técnico pode assumir
NA_FILA = (TicketStatus.ABERTO, TicketStatus.REABERTO)


def normalizar_texto(valor, campo: str) -> Optional[str]:
    """
    Remove espaços das bordas de um campo de texto livre.

    None e texto em branco viram None.

    Raises:
        ValidationError: Se o valor não for texto
    """
    if valor is None:
        return None
    if not isinstance(valor, str):
        raise ValidationError(f"Campo {campo} deve ser texto", field=campo)
    return valor.strip() or None


class ActorRole(Enum):
    """Papéis reconhecidos pelas regras de transição."""

    ADMIN = "ADMIN"
    TECNICO = "TECNICO"
    USUARIO = "USUARIO"

    @classmethod
    def from_string(cls, value: str) -> "ActorRole":
        try:
            return cls[(value or "").strip().upper()]
        except KeyError:
            raise ValueError(f"Papel inválido: {value}")


@dataclass(frozen=True)
class Actor:
    """
    Autor de uma operação.

    A identidade é verificada fora do core; aqui ela só é usada
    para as regras de papel/propriedade e para o histórico.
    """

    id: str
    role: ActorRole
    nome: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class ServiceRef:
    """Serviço ativo do catálogo vinculado ao chamado."""

    id: str
    nome: str


@dataclass
class TicketEntity:
    """
    Entidade de Domínio: Chamado.

    Invariantes:
    - numero é único e nunca muda após atribuído
    - descricao não pode ser vazia
    - encerrado_em não nulo se, e somente se, status ∈ {ENCERRADO, CANCELADO}
    - tecnico_id só é preenchido ao passar por EM_ATENDIMENTO
    - versao cresce exatamente 1 a cada transição persistida

    Transições não são feitas aqui: TicketStateMachine decide se a
    transição é permitida e usa com_transicao() para produzir o
    novo estado.

    Example:
        ticket = TicketEntity.criar(
            numero="INC0001",
            descricao="Impressora travando",
            solicitante_id="user-1",
            servicos=[ServiceRef("srv-1", "Suporte")],
            agora=datetime.now(),
        )
    """

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    numero: str = ""
    descricao: str = ""
    status: TicketStatus = TicketStatus.ABERTO

    solicitante_id: str = ""
    tecnico_id: Optional[str] = None

    criado_em: datetime = field(default_factory=datetime.now)
    atualizado_em: datetime = field(default_factory=datetime.now)
    encerrado_em: Optional[datetime] = None
    motivo_encerramento: Optional[str] = None

    servicos: List[ServiceRef] = field(default_factory=list)
    versao: int = 1

    @classmethod
    def criar(
        cls,
        numero: str,
        descricao: str,
        solicitante_id: str,
        servicos: List[ServiceRef],
        agora: Optional[datetime] = None,
    ) -> "TicketEntity":
        """
        Factory method para criar novo chamado com validações.

        Raises:
            ValidationError: Se descrição ou serviços ausentes
        """
        descricao = cls.validar_descricao(descricao)

        if not servicos:
            raise ValidationError(
                "É obrigatório informar pelo menos um serviço válido",
                field="servicos",
            )

        if not solicitante_id:
            raise ValidationError("Solicitante é obrigatório", field="solicitante_id")

        agora = agora or datetime.now()
        return cls(
            numero=numero,
            descricao=descricao,
            status=TicketStatus.ABERTO,
            solicitante_id=solicitante_id,
            criado_em=agora,
            atualizado_em=agora,
            servicos=list(servicos),
        )

    @staticmethod
    def validar_descricao(descricao: Optional[str]) -> str:
        """Retorna a descrição sem espaços nas bordas ou falha se vazia."""
        descricao = normalizar_texto(descricao, "descricao")
        if not descricao:
            raise ValidationError("Descrição é obrigatória", field="descricao")
        return descricao

    def com_transicao(
        self,
        destino: TicketStatus,
        agora: datetime,
        motivo: Optional[str] = None,
        tecnico_id: Optional[str] = None,
    ) -> "TicketEntity":
        """
        Retorna cópia do chamado no status de destino.

        Não valida permissões: isso é feito pela máquina de estados
        antes de qualquer mutação.
        """
        if destino.finalizado:
            encerrado_em, motivo_encerramento = agora, motivo
        else:
            encerrado_em, motivo_encerramento = None, None

        return replace(
            self,
            status=destino,
            atualizado_em=agora,
            encerrado_em=encerrado_em,
            motivo_encerramento=motivo_encerramento,
            tecnico_id=tecnico_id or self.tecnico_id,
            servicos=list(self.servicos),
            versao=self.versao + 1,
        )

    @property
    def esta_finalizado(self) -> bool:
        return self.status.finalizado

    @property
    def nomes_servicos(self) -> List[str]:
        return [s.nome for s in self.servicos]

    def __eq__(self, other: object) -> bool:
        """Igualdade baseada em ID (Entity pattern)."""
        if not isinstance(other, TicketEntity):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)
