"""
Repositórios Django para persistência de Chamados.

Implementam os Ports definidos em helpdesk/core/tickets/ports.py.
São DRIVEN ADAPTERS - acionados pelo Core.

Repositórios:
- DjangoTicketRepository: CRUD + compare-and-swap por versão
- DjangoSequenceCounter: Fetch-and-add do número do chamado
- DjangoAuditTrail: Histórico append-only
- DjangoServiceCatalog: Leitura do catálogo de serviços
- DjangoTechnicianScheduleRepository: Leitura dos expedientes

Erros de banco viram exceções de domínio:
- IntegrityError na inserção → ConflictError
- OperationalError ao aguardar lock → LockTimeoutError
- DatabaseError no contador → DependencyFailureError
"""

from typing import List, Optional, Sequence
import logging

from django.db import DatabaseError, IntegrityError, OperationalError, connections, transaction
from django.db.models import F, Q

from helpdesk.core.shared.exceptions import (
    ConcurrencyError,
    ConflictError,
    DependencyFailureError,
    EntityNotFoundError,
    LockTimeoutError,
    ValidationError,
)
from helpdesk.core.tickets.audit import AuditEntry
from helpdesk.core.tickets.availability import WorkingHoursWindow
from helpdesk.core.tickets.entities import NA_FILA, ServiceRef, TicketEntity, TicketStatus

from .mappers import AuditEntryMapper, ExpedienteMapper, ServiceMapper, TicketMapper
from .models import (
    AuditEntryModel,
    ExpedienteModel,
    ServiceModel,
    TicketModel,
    TicketSequenceModel,
)

logger = logging.getLogger(__name__)


def aplicar_lock_timeout(using: str, timeout_ms: int) -> None:
    """
    Limita a espera por locks de linha na transação corrente.

    set_config(..., true) vale só até o fim da transação. Apenas
    PostgreSQL; nos demais bancos não faz nada.
    """
    connection = connections[using]
    if connection.vendor != 'postgresql':
        return
    with connection.cursor() as cursor:
        cursor.execute(
            "SELECT set_config('lock_timeout', %s, true)",
            [f"{int(timeout_ms)}ms"],
        )


class DjangoTicketRepository:
    """
    Implementação Django do TicketRepository.

    compare_and_swap() é um único UPDATE condicionado à versão:
    o banco serializa escritas concorrentes na mesma linha e só uma
    delas encontra a versão esperada.

    Example:
        repo = DjangoTicketRepository(lock_timeout_ms=2000)
        repo.add(ticket)
        repo.compare_and_swap(novo, expected_version=ticket.versao)
    """

    def __init__(self, lock_timeout_ms: int = 2000, using: str = 'default'):
        self._lock_timeout_ms = lock_timeout_ms
        self._using = using

    def _queryset(self):
        return TicketModel.objects.using(self._using).prefetch_related('servicos')

    def add(self, ticket: TicketEntity) -> None:
        logger.debug(f"Inserting ticket: {ticket.numero}")
        try:
            with transaction.atomic(using=self._using):
                model = TicketModel.objects.using(self._using).create(
                    **TicketMapper.to_fields(ticket)
                )
                model.servicos.set([s.id for s in ticket.servicos])
        except IntegrityError as e:
            raise ConflictError(
                f"Chamado {ticket.numero} já existe",
                rule="numero_duplicado",
            ) from e

    def get_by_id(self, ticket_id: str) -> Optional[TicketEntity]:
        try:
            model = self._queryset().get(id=ticket_id)
        except TicketModel.DoesNotExist:
            return None
        return TicketMapper.to_entity(model)

    def compare_and_swap(self, ticket: TicketEntity, expected_version: int) -> None:
        try:
            with transaction.atomic(using=self._using):
                aplicar_lock_timeout(self._using, self._lock_timeout_ms)
                atualizados = (
                    TicketModel.objects.using(self._using)
                    .filter(id=ticket.id, versao=expected_version)
                    .update(**TicketMapper.to_state_fields(ticket))
                )
        except OperationalError as e:
            logger.warning(f"Lock timeout on ticket {ticket.id}: {e}")
            raise LockTimeoutError(
                f"Chamado {ticket.numero} está bloqueado por outra operação; tente novamente"
            ) from e

        if atualizados == 1:
            logger.debug(f"Ticket {ticket.numero} updated to version {ticket.versao}")
            return

        if not TicketModel.objects.using(self._using).filter(id=ticket.id).exists():
            raise EntityNotFoundError(
                f"Chamado {ticket.id} não encontrado",
                entity_type="Ticket",
                entity_id=ticket.id,
            )
        raise ConcurrencyError(f"Chamado {ticket.numero} foi alterado por outra operação")

    def delete(self, ticket_id: str) -> bool:
        deleted, _ = TicketModel.objects.using(self._using).filter(id=ticket_id).delete()
        return deleted > 0

    def list_all(self) -> List[TicketEntity]:
        return TicketMapper.to_entity_list(self._queryset().all())

    def list_by_status(self, status: TicketStatus) -> List[TicketEntity]:
        return TicketMapper.to_entity_list(self._queryset().filter(status=status.value))

    def list_by_solicitante(self, solicitante_id: str) -> List[TicketEntity]:
        return TicketMapper.to_entity_list(self._queryset().filter(solicitante_id=solicitante_id))

    def list_by_tecnico(self, tecnico_id: str) -> List[TicketEntity]:
        return TicketMapper.to_entity_list(self._queryset().filter(tecnico_id=tecnico_id))

    def list_claimable(self) -> List[TicketEntity]:
        return TicketMapper.to_entity_list(
            self._queryset().filter(status__in=[s.value for s in NA_FILA])
        )


class DjangoSequenceCounter:
    """
    Contador do número do chamado em chamados_sequencia.

    O incremento é um UPDATE com F('valor') + 1; a linha fica
    travada até o fim da transação externa, então o número só
    existe se o chamado for comitado junto. A espera pela linha é
    limitada por lock_timeout_ms (PostgreSQL).
    """

    def __init__(self, nome: str = 'chamado', lock_timeout_ms: int = 2000, using: str = 'default'):
        self.nome = nome
        self._lock_timeout_ms = lock_timeout_ms
        self._using = using

    def next_value(self) -> int:
        try:
            with transaction.atomic(using=self._using):
                aplicar_lock_timeout(self._using, self._lock_timeout_ms)
                qs = TicketSequenceModel.objects.using(self._using).filter(nome=self.nome)
                if not qs.update(valor=F('valor') + 1):
                    TicketSequenceModel.objects.using(self._using).get_or_create(nome=self.nome)
                    qs.update(valor=F('valor') + 1)
                return qs.values_list('valor', flat=True).get()
        except DatabaseError as e:
            logger.error(f"Sequence counter '{self.nome}' unavailable: {e}")
            raise DependencyFailureError(
                "Contador de chamados indisponível",
                dependency="sequence_counter",
            ) from e


class DjangoAuditTrail:
    """Histórico em chamados_historico, ordenado por (registrado_em, id)."""

    def __init__(self, using: str = 'default'):
        self._using = using

    def record(self, entry: AuditEntry) -> None:
        _, criado = AuditEntryModel.objects.using(self._using).get_or_create(
            entry_id=entry.id,
            defaults=AuditEntryMapper.to_fields(entry),
        )
        if not criado:
            logger.debug(f"Audit entry {entry.id} already recorded")

    def history(self, ticket_id: str) -> List[AuditEntry]:
        qs = (
            AuditEntryModel.objects.using(self._using)
            .filter(ticket_id=ticket_id)
            .order_by('registrado_em', 'id')
        )
        return [AuditEntryMapper.to_entry(m) for m in qs]

    def delete_for_ticket(self, ticket_id: str) -> int:
        deleted, _ = AuditEntryModel.objects.using(self._using).filter(ticket_id=ticket_id).delete()
        return deleted


class DjangoServiceCatalog:
    """Resolve serviços ativos por id ou nome."""

    def find_active(self, referencias: Sequence[str]) -> List[ServiceRef]:
        refs = list(referencias)
        qs = ServiceModel.objects.filter(ativo=True).filter(Q(id__in=refs) | Q(nome__in=refs))
        return [ServiceMapper.to_ref(m) for m in qs]


class DjangoTechnicianScheduleRepository:
    """Lê expedientes ativos do técnico."""

    def windows_for(self, tecnico_id: str) -> List[WorkingHoursWindow]:
        janelas = []
        for model in ExpedienteModel.objects.filter(tecnico_id=tecnico_id, ativo=True):
            try:
                janelas.append(ExpedienteMapper.to_window(model))
            except ValidationError as e:
                logger.warning(f"Ignoring invalid schedule {model.pk} for {tecnico_id}: {e}")
        return janelas
