"""
Django Models para o domínio de Chamados.

Estes models são ADAPTERS - implementam a persistência para as
entidades definidas em helpdesk/core/tickets/.

IMPORTANTE:
- Models NÃO contêm lógica de negócio
- Regras de transição ficam na TicketStateMachine do Core
- Models são mapeados para/de Entities via Mappers

Tabelas:
- servicos: Catálogo de serviços (colaborador externo, leitura)
- chamados: Chamados (numero único, versao para compare-and-swap)
- chamados_sequencia: Contador atômico do número do chamado
- expedientes: Janelas de expediente dos técnicos
- chamados_historico: Trilha de auditoria append-only
"""

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone


class TicketStatusChoices(models.TextChoices):
    """Choices para status (espelha TicketStatus do Core)."""
    ABERTO = 'ABERTO', 'Aberto'
    EM_ATENDIMENTO = 'EM_ATENDIMENTO', 'Em atendimento'
    ENCERRADO = 'ENCERRADO', 'Encerrado'
    CANCELADO = 'CANCELADO', 'Cancelado'
    REABERTO = 'REABERTO', 'Reaberto'


class AuditKindChoices(models.TextChoices):
    """Choices para tipo de entrada do histórico (espelha AuditKind)."""
    ABERTURA = 'ABERTURA', 'Abertura'
    STATUS = 'STATUS', 'Alteração de status'
    REABERTURA = 'REABERTURA', 'Reabertura'
    CANCELAMENTO = 'CANCELAMENTO', 'Cancelamento'


class ServiceModel(models.Model):
    """Serviço do catálogo (CRUD fica fora deste app)."""

    id = models.CharField(max_length=36, primary_key=True)
    nome = models.CharField(max_length=100, unique=True)
    ativo = models.BooleanField(default=True, db_index=True)

    class Meta:
        db_table = 'servicos'
        ordering = ['nome']
        verbose_name = 'Serviço'
        verbose_name_plural = 'Serviços'

    def __str__(self) -> str:
        return self.nome


class TicketModel(models.Model):
    """
    Model Django para persistência de chamados.

    Fields:
        id: UUID gerado pela Entity
        numero: OS (INC0001), índice único
        status: Estado atual (choices)
        versao: Versão usada no compare-and-swap
        atualizado_em: Vem da Entity (clock injetado), sem auto_now
    """

    id = models.CharField(
        max_length=36,
        primary_key=True,
        editable=False,
        help_text="UUID único do chamado"
    )

    numero = models.CharField(
        max_length=20,
        unique=True,
        help_text="Número sequencial do chamado (OS)"
    )

    descricao = models.TextField(help_text="Descrição do problema")

    status = models.CharField(
        max_length=20,
        choices=TicketStatusChoices.choices,
        default=TicketStatusChoices.ABERTO,
        db_index=True,
    )

    solicitante_id = models.CharField(max_length=100, db_index=True)

    tecnico_id = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        db_index=True,
        help_text="Técnico responsável"
    )

    criado_em = models.DateTimeField(default=timezone.now, db_index=True)
    atualizado_em = models.DateTimeField(default=timezone.now)
    encerrado_em = models.DateTimeField(null=True, blank=True)
    motivo_encerramento = models.TextField(null=True, blank=True)

    versao = models.PositiveIntegerField(default=1)

    servicos = models.ManyToManyField(
        ServiceModel,
        related_name='chamados',
        db_table='chamados_servicos',
        blank=True,
    )

    class Meta:
        db_table = 'chamados'
        ordering = ['-criado_em']
        verbose_name = 'Chamado'
        verbose_name_plural = 'Chamados'
        indexes = [
            models.Index(fields=['status', 'criado_em'], name='idx_chamado_status_criado'),
            models.Index(fields=['tecnico_id', 'status'], name='idx_chamado_tecnico_status'),
        ]

    def __str__(self) -> str:
        return f"{self.numero} [{self.status}]"


class TicketSequenceModel(models.Model):
    """
    Contador atômico do número do chamado.

    Incrementado apenas via UPDATE ... SET valor = valor + 1
    (F expression), dentro da transação que insere o chamado.
    """

    nome = models.CharField(max_length=50, primary_key=True)
    valor = models.BigIntegerField(default=0)

    class Meta:
        db_table = 'chamados_sequencia'

    def __str__(self) -> str:
        return f"{self.nome}={self.valor}"


class ExpedienteModel(models.Model):
    """Janela de expediente de um técnico (mesmo dia)."""

    tecnico_id = models.CharField(max_length=100, db_index=True)
    entrada = models.TimeField()
    saida = models.TimeField()
    ativo = models.BooleanField(default=True)

    class Meta:
        db_table = 'expedientes'
        ordering = ['tecnico_id', 'entrada']

    def clean(self):
        if self.entrada and self.saida and self.saida <= self.entrada:
            raise ValidationError(
                {'saida': 'Horário de saída deve ser posterior ao horário de entrada'}
            )

    def __str__(self) -> str:
        return f"{self.tecnico_id} {self.entrada:%H:%M}-{self.saida:%H:%M}"


class AuditEntryModel(models.Model):
    """
    Entrada do histórico do chamado.

    Append-only: o repositório nunca atualiza linhas. entry_id é o
    event_id de origem (idempotência de reentregas); o id
    autoincremental desempata timestamps iguais.
    """

    entry_id = models.CharField(max_length=36, unique=True)
    ticket_id = models.CharField(max_length=36)
    registrado_em = models.DateTimeField()
    tipo = models.CharField(max_length=20, choices=AuditKindChoices.choices)
    de_status = models.CharField(max_length=20, null=True, blank=True)
    para_status = models.CharField(max_length=20, null=True, blank=True)
    nota = models.TextField(blank=True, default='')
    autor_id = models.CharField(max_length=100)
    autor_nome = models.CharField(max_length=200, null=True, blank=True)
    autor_email = models.CharField(max_length=254, null=True, blank=True)

    class Meta:
        db_table = 'chamados_historico'
        ordering = ['registrado_em', 'id']
        indexes = [
            models.Index(fields=['ticket_id', 'registrado_em'], name='idx_historico_ticket_data'),
        ]

    def __str__(self) -> str:
        return f"{self.ticket_id} {self.tipo} {self.de_status}->{self.para_status}"
