"""
Configuração do Celery para processamento assíncrono.

O Celery é usado para:
- Entregar Domain Events comitados (modo EVENT_PUBLISHER_MODE=celery)
- Gravar o histórico do chamado com retentativas fora do request

Arquitetura:
- Broker: RabbitMQ (mensagens entre Django e Workers)
- Backend: Redis (resultados de tarefas)
- Workers: Processos que executam as tarefas

Uso:
    celery -A helpdesk.config.celery worker -l INFO -Q default,events,audit
"""

import os
from celery import Celery
from kombu import Queue, Exchange

# Definir módulo de settings do Django
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'helpdesk.config.settings')

app = Celery('helpdesk')

# Carregar configurações do Django (CELERY_*)
app.config_from_object('django.conf:settings', namespace='CELERY')

app.conf.task_queues = (
    Queue('default', Exchange('default'), routing_key='default'),
    Queue('events', Exchange('events'), routing_key='events.#'),
    Queue('audit', Exchange('audit'), routing_key='audit.#'),
)
app.conf.task_default_queue = 'default'

# Roteamento de tarefas para filas
app.conf.task_routes = {
    'helpdesk.adapters.django_app.events.handlers.registrar_entrada_auditoria': {'queue': 'audit'},
    'helpdesk.adapters.django_app.events.handlers.*': {'queue': 'events'},
}

# As tarefas ficam em events/handlers.py (não em tasks.py)
app.autodiscover_tasks(['helpdesk.adapters.django_app.events'], related_name='handlers')
