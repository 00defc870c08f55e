"""
Helpdesk - Núcleo do ciclo de vida de chamados.

Pacotes:
- core: Domínio puro (entidades, regras, use cases)
- adapters: Infraestrutura (Django ORM, Celery, API JSON)
- config: Settings, Celery e container de DI
"""
