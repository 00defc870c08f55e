"""
Migration inicial para o domínio de Chamados.

Cria as tabelas:
- servicos: Catálogo de serviços
- chamados / chamados_servicos: Chamados e vínculos com serviços
- chamados_sequencia: Contador do número do chamado (linha 'chamado')
- expedientes: Janelas de expediente dos técnicos
- chamados_historico: Trilha de auditoria
"""

from django.db import migrations, models
import django.utils.timezone


def criar_sequencia(apps, schema_editor):
    TicketSequenceModel = apps.get_model('tickets', 'TicketSequenceModel')
    TicketSequenceModel.objects.using(schema_editor.connection.alias).get_or_create(
        nome='chamado', defaults={'valor': 0}
    )


class Migration(migrations.Migration):
    """Migration inicial."""

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='ServiceModel',
            fields=[
                ('id', models.CharField(max_length=36, primary_key=True, serialize=False)),
                ('nome', models.CharField(max_length=100, unique=True)),
                ('ativo', models.BooleanField(db_index=True, default=True)),
            ],
            options={
                'verbose_name': 'Serviço',
                'verbose_name_plural': 'Serviços',
                'db_table': 'servicos',
                'ordering': ['nome'],
            },
        ),
        migrations.CreateModel(
            name='TicketModel',
            fields=[
                ('id', models.CharField(
                    editable=False,
                    help_text='UUID único do chamado',
                    max_length=36,
                    primary_key=True,
                    serialize=False,
                )),
                ('numero', models.CharField(
                    help_text='Número sequencial do chamado (OS)',
                    max_length=20,
                    unique=True,
                )),
                ('descricao', models.TextField(help_text='Descrição do problema')),
                ('status', models.CharField(
                    choices=[
                        ('ABERTO', 'Aberto'),
                        ('EM_ATENDIMENTO', 'Em atendimento'),
                        ('ENCERRADO', 'Encerrado'),
                        ('CANCELADO', 'Cancelado'),
                        ('REABERTO', 'Reaberto'),
                    ],
                    db_index=True,
                    default='ABERTO',
                    max_length=20,
                )),
                ('solicitante_id', models.CharField(db_index=True, max_length=100)),
                ('tecnico_id', models.CharField(
                    blank=True,
                    db_index=True,
                    help_text='Técnico responsável',
                    max_length=100,
                    null=True,
                )),
                ('criado_em', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('atualizado_em', models.DateTimeField(default=django.utils.timezone.now)),
                ('encerrado_em', models.DateTimeField(blank=True, null=True)),
                ('motivo_encerramento', models.TextField(blank=True, null=True)),
                ('versao', models.PositiveIntegerField(default=1)),
                ('servicos', models.ManyToManyField(
                    blank=True,
                    db_table='chamados_servicos',
                    related_name='chamados',
                    to='tickets.servicemodel',
                )),
            ],
            options={
                'verbose_name': 'Chamado',
                'verbose_name_plural': 'Chamados',
                'db_table': 'chamados',
                'ordering': ['-criado_em'],
                'indexes': [
                    models.Index(fields=['status', 'criado_em'], name='idx_chamado_status_criado'),
                    models.Index(fields=['tecnico_id', 'status'], name='idx_chamado_tecnico_status'),
                ],
            },
        ),
        migrations.CreateModel(
            name='TicketSequenceModel',
            fields=[
                ('nome', models.CharField(max_length=50, primary_key=True, serialize=False)),
                ('valor', models.BigIntegerField(default=0)),
            ],
            options={
                'db_table': 'chamados_sequencia',
            },
        ),
        migrations.CreateModel(
            name='ExpedienteModel',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('tecnico_id', models.CharField(db_index=True, max_length=100)),
                ('entrada', models.TimeField()),
                ('saida', models.TimeField()),
                ('ativo', models.BooleanField(default=True)),
            ],
            options={
                'db_table': 'expedientes',
                'ordering': ['tecnico_id', 'entrada'],
            },
        ),
        migrations.CreateModel(
            name='AuditEntryModel',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('entry_id', models.CharField(max_length=36, unique=True)),
                ('ticket_id', models.CharField(max_length=36)),
                ('registrado_em', models.DateTimeField()),
                ('tipo', models.CharField(
                    choices=[
                        ('ABERTURA', 'Abertura'),
                        ('STATUS', 'Alteração de status'),
                        ('REABERTURA', 'Reabertura'),
                        ('CANCELAMENTO', 'Cancelamento'),
                    ],
                    max_length=20,
                )),
                ('de_status', models.CharField(blank=True, max_length=20, null=True)),
                ('para_status', models.CharField(blank=True, max_length=20, null=True)),
                ('nota', models.TextField(blank=True, default='')),
                ('autor_id', models.CharField(max_length=100)),
                ('autor_nome', models.CharField(blank=True, max_length=200, null=True)),
                ('autor_email', models.CharField(blank=True, max_length=254, null=True)),
            ],
            options={
                'db_table': 'chamados_historico',
                'ordering': ['registrado_em', 'id'],
                'indexes': [
                    models.Index(fields=['ticket_id', 'registrado_em'], name='idx_historico_ticket_data'),
                ],
            },
        ),
        migrations.RunPython(criar_sequencia, migrations.RunPython.noop),
    ]
