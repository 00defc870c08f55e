"""
Publicação e processamento de Domain Events.

- publishers: Entrega síncrona, Celery ou em memória
- handlers: Tarefas Celery (dispatcher e gravação de histórico)
"""
