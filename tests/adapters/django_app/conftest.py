"""
Configuração pytest para testes com Django.

Este arquivo configura:
- Django settings para testes (SQLite em memória)
- Fixtures compartilhadas (serviços, expedientes, container)
"""

import uuid
from datetime import time

import pytest


def pytest_configure(config):
    """Configura Django antes dos testes."""
    import django
    from django.conf import settings

    if not settings.configured:
        settings.configure(
            DEBUG=True,
            SECRET_KEY='test-secret-key',
            DATABASES={
                'default': {
                    'ENGINE': 'django.db.backends.sqlite3',
                    'NAME': ':memory:',
                }
            },
            INSTALLED_APPS=[
                'django.contrib.contenttypes',
                'django.contrib.auth',
                'helpdesk.adapters.django_app.tickets',
            ],
            MIDDLEWARE=[
                'django.middleware.common.CommonMiddleware',
            ],
            ROOT_URLCONF='helpdesk.config.urls',
            ALLOWED_HOSTS=['testserver', 'localhost'],
            DEFAULT_AUTO_FIELD='django.db.models.BigAutoField',
            USE_TZ=True,
            TIME_ZONE='America/Sao_Paulo',
            EVENT_PUBLISHER_MODE='sync',
            TICKET_NUMBER_PREFIX='INC',
            TICKET_NUMBER_WIDTH=4,
            REOPEN_WINDOW_HOURS=48,
            TICKET_LOCK_TIMEOUT_MS=2000,
            AUDIT_MAX_TENTATIVAS=3,
            AUDIT_ESPERA_SEGUNDOS=0.0,
        )
        django.setup()


@pytest.fixture(autouse=True)
def container_limpo():
    """Cada teste recebe um container novo (singletons zerados)."""
    from helpdesk.config.container import reset_container

    reset_container()
    yield
    reset_container()


@pytest.fixture
def servico_factory(db):
    """Factory para criar ServiceModel."""
    from helpdesk.adapters.django_app.tickets.models import ServiceModel

    def create_servico(nome='Suporte', **kwargs):
        defaults = {'id': str(uuid.uuid4()), 'nome': nome, 'ativo': True}
        defaults.update(kwargs)
        return ServiceModel.objects.create(**defaults)

    return create_servico


@pytest.fixture
def suporte(servico_factory):
    return servico_factory('Suporte')


@pytest.fixture
def expediente_factory(db):
    """Factory para criar ExpedienteModel."""
    from helpdesk.adapters.django_app.tickets.models import ExpedienteModel

    def create_expediente(tecnico_id='tec-1', entrada=time(0, 0), saida=time(23, 59), **kwargs):
        return ExpedienteModel.objects.create(
            tecnico_id=tecnico_id, entrada=entrada, saida=saida, **kwargs
        )

    return create_expediente
