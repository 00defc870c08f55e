"""
URL Configuration para o Helpdesk.

Estrutura:
- /chamados/ - API JSON de chamados
- /health/ - Health check
"""

from django.http import JsonResponse
from django.urls import path, include

urlpatterns = [
    path('chamados/', include('helpdesk.adapters.django_app.tickets.urls')),
    path('health/', lambda request: JsonResponse({'status': 'ok'})),
]
