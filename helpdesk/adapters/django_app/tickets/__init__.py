"""
Django App de Chamados.

Adapters de persistência (models, repositories, mappers) e a
API JSON do ciclo de vida do chamado.
"""
