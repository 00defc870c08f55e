"""
Ports (Interfaces) do Domínio de Chamados.

Define os contratos que os Adapters de infraestrutura devem implementar.

Ports:
- TicketRepository: Persistência com compare-and-swap por versão
- SequenceCounter: Contador atômico (fetch-and-add) do número do chamado
- AuditTrail: Histórico append-only por chamado
- ServiceCatalog: Catálogo de serviços (colaborador externo, leitura)
- TechnicianScheduleRepository: Expedientes dos técnicos (leitura)

Também contém as implementações InMemory usadas nos testes e no
TestingContainer.

Princípio:
    Core define interfaces → Adapters implementam
"""

from collections import defaultdict
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, runtime_checkable
import threading

from helpdesk.core.shared.exceptions import (
    ConcurrencyError,
    ConflictError,
    EntityNotFoundError,
    LockTimeoutError,
)

from .entities import NA_FILA, TicketEntity, TicketStatus, ServiceRef
from .audit import AuditEntry, ordenar_historico
from .availability import WorkingHoursWindow


@runtime_checkable
class TicketRepository(Protocol):
    """
    Interface para persistência de chamados.

    Implementações:
    - DjangoTicketRepository (PostgreSQL/SQLite via ORM)
    - InMemoryTicketRepository (para testes)

    A atualização é sempre um compare-and-swap: grava somente se a
    versão persistida ainda for expected_version. Quem perde a
    corrida recebe ConcurrencyError; nenhuma atualização é perdida.
    """

    def add(self, ticket: TicketEntity) -> None:
        """
        Insere chamado novo.

        Raises:
            ConflictError: Se id ou numero já existirem
        """
        ...

    def get_by_id(self, ticket_id: str) -> Optional[TicketEntity]:
        ...

    def compare_and_swap(self, ticket: TicketEntity, expected_version: int) -> None:
        """
        Substitui o estado persistido se a versão não mudou.

        Raises:
            ConcurrencyError: Versão persistida diferente da esperada
            EntityNotFoundError: Chamado removido nesse meio tempo
            LockTimeoutError: Linha não obtida dentro do tempo limite
        """
        ...

    def delete(self, ticket_id: str) -> bool:
        ...

    def list_all(self) -> List[TicketEntity]:
        ...

    def list_by_status(self, status: TicketStatus) -> List[TicketEntity]:
        ...

    def list_by_solicitante(self, solicitante_id: str) -> List[TicketEntity]:
        ...

    def list_by_tecnico(self, tecnico_id: str) -> List[TicketEntity]:
        ...

    def list_claimable(self) -> List[TicketEntity]:
        """Chamados ABERTO ou REABERTO (fila de atendimento), mais recentes primeiro."""
        ...


@runtime_checkable
class SequenceCounter(Protocol):
    """Contador compartilhado com incremento atômico."""

    def next_value(self) -> int:
        """Incrementa e retorna o novo valor (primeiro valor = 1)."""
        ...


@runtime_checkable
class AuditTrail(Protocol):
    """Log append-only das transições de cada chamado."""

    def record(self, entry: AuditEntry) -> None:
        """Acrescenta uma entrada. Reentrega do mesmo id é ignorada."""
        ...

    def history(self, ticket_id: str) -> List[AuditEntry]:
        """Entradas do chamado em ordem crescente de timestamp."""
        ...

    def delete_for_ticket(self, ticket_id: str) -> int:
        """Remove o histórico (apenas na exclusão definitiva do chamado)."""
        ...


@runtime_checkable
class ServiceCatalog(Protocol):
    """Serviços ativos, resolvidos por id ou nome."""

    def find_active(self, referencias: Sequence[str]) -> List[ServiceRef]:
        ...


@runtime_checkable
class TechnicianScheduleRepository(Protocol):
    """Janelas de expediente configuradas por técnico."""

    def windows_for(self, tecnico_id: str) -> List[WorkingHoursWindow]:
        ...


# =============================================================================
# Implementações InMemory
# =============================================================================

def _copiar(ticket: TicketEntity) -> TicketEntity:
    return replace(ticket, servicos=list(ticket.servicos))


class InMemoryTicketRepository:
    """
    Implementação em memória do TicketRepository.

    Thread-safe: um lock por chamado serializa o compare-and-swap,
    com tempo limite de espera como no adapter Django.

    Example:
        repo = InMemoryTicketRepository()
        repo.add(ticket)
        found = repo.get_by_id(ticket.id)
    """

    def __init__(self, lock_timeout: float = 2.0):
        self._tickets: Dict[str, TicketEntity] = {}
        self._lock = threading.Lock()
        self._row_locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._lock_timeout = lock_timeout

    def add(self, ticket: TicketEntity) -> None:
        with self._lock:
            if ticket.id in self._tickets:
                raise ConflictError(f"Chamado {ticket.id} já existe", rule="id_duplicado")
            if any(t.numero == ticket.numero for t in self._tickets.values()):
                raise ConflictError(
                    f"Número {ticket.numero} já utilizado",
                    rule="numero_duplicado",
                )
            self._tickets[ticket.id] = _copiar(ticket)

    def get_by_id(self, ticket_id: str) -> Optional[TicketEntity]:
        with self._lock:
            ticket = self._tickets.get(ticket_id)
        return _copiar(ticket) if ticket else None

    def compare_and_swap(self, ticket: TicketEntity, expected_version: int) -> None:
        with self._lock:
            row_lock = self._row_locks[ticket.id]

        if not row_lock.acquire(timeout=self._lock_timeout):
            raise LockTimeoutError(f"Tempo esgotado aguardando o chamado {ticket.id}")
        try:
            with self._lock:
                atual = self._tickets.get(ticket.id)
                if atual is None:
                    raise EntityNotFoundError(
                        f"Chamado {ticket.id} não encontrado",
                        entity_type="Ticket",
                        entity_id=ticket.id,
                    )
                if atual.versao != expected_version:
                    raise ConcurrencyError(
                        f"Chamado {ticket.numero} foi alterado por outra operação"
                    )
                self._tickets[ticket.id] = _copiar(ticket)
        finally:
            row_lock.release()

    def delete(self, ticket_id: str) -> bool:
        with self._lock:
            self._row_locks.pop(ticket_id, None)
            return self._tickets.pop(ticket_id, None) is not None

    def list_all(self) -> List[TicketEntity]:
        with self._lock:
            tickets = [_copiar(t) for t in self._tickets.values()]
        return sorted(tickets, key=lambda t: t.criado_em, reverse=True)

    def list_by_status(self, status: TicketStatus) -> List[TicketEntity]:
        return [t for t in self.list_all() if t.status == status]

    def list_by_solicitante(self, solicitante_id: str) -> List[TicketEntity]:
        return [t for t in self.list_all() if t.solicitante_id == solicitante_id]

    def list_by_tecnico(self, tecnico_id: str) -> List[TicketEntity]:
        return [t for t in self.list_all() if t.tecnico_id == tecnico_id]

    def list_claimable(self) -> List[TicketEntity]:
        return [t for t in self.list_all() if t.status in NA_FILA]

    def count(self) -> int:
        with self._lock:
            return len(self._tickets)


class InMemorySequenceCounter:
    """Contador em memória com incremento sob lock."""

    def __init__(self, inicio: int = 0):
        self._valor = inicio
        self._lock = threading.Lock()

    def next_value(self) -> int:
        with self._lock:
            self._valor += 1
            return self._valor

    @property
    def valor_atual(self) -> int:
        return self._valor


class InMemoryAuditTrail:
    """Histórico em memória; ordem de inserção desempata timestamps."""

    def __init__(self):
        self._entries: List[AuditEntry] = []
        self._ids = set()
        self._lock = threading.Lock()

    def record(self, entry: AuditEntry) -> None:
        with self._lock:
            if entry.id in self._ids:
                return
            self._ids.add(entry.id)
            self._entries.append(entry)

    def history(self, ticket_id: str) -> List[AuditEntry]:
        with self._lock:
            entradas = [e for e in self._entries if e.ticket_id == ticket_id]
        return ordenar_historico(entradas)

    def delete_for_ticket(self, ticket_id: str) -> int:
        with self._lock:
            removidas = [e for e in self._entries if e.ticket_id == ticket_id]
            self._entries = [e for e in self._entries if e.ticket_id != ticket_id]
            self._ids.difference_update(e.id for e in removidas)
        return len(removidas)

    @property
    def entries(self) -> List[AuditEntry]:
        return list(self._entries)


class InMemoryServiceCatalog:
    """Catálogo fixo de serviços ativos."""

    def __init__(self, servicos: Iterable[ServiceRef] = ()):
        self._servicos: List[ServiceRef] = list(servicos)

    def adicionar(self, servico: ServiceRef) -> None:
        self._servicos.append(servico)

    def find_active(self, referencias: Sequence[str]) -> List[ServiceRef]:
        refs = set(referencias)
        return [s for s in self._servicos if s.id in refs or s.nome in refs]


class InMemoryScheduleRepository:
    """Expedientes por técnico mantidos em dicionário."""

    def __init__(self):
        self._janelas: Dict[str, List[WorkingHoursWindow]] = {}

    def definir(self, tecnico_id: str, *janelas: WorkingHoursWindow) -> None:
        self._janelas[tecnico_id] = list(janelas)

    def windows_for(self, tecnico_id: str) -> List[WorkingHoursWindow]:
        return list(self._janelas.get(tecnico_id, []))
