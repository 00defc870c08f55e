"""
URLs do app de Chamados (API JSON).

Montado em /chamados/ por helpdesk.config.urls.
"""

from django.urls import path

from . import api_views

app_name = 'tickets'

urlpatterns = [
    path('', api_views.TicketAPIListView.as_view(), name='api_list'),
    path('<str:pk>/', api_views.TicketAPIDetailView.as_view(), name='api_detail'),
    path('<str:pk>/status/', api_views.TicketAPIStatusView.as_view(), name='api_status'),
    path('<str:pk>/reabrir/', api_views.TicketAPIReabrirView.as_view(), name='api_reabrir'),
    path('<str:pk>/cancelar/', api_views.TicketAPICancelarView.as_view(), name='api_cancelar'),
    path('<str:pk>/historico/', api_views.TicketAPIHistoricoView.as_view(), name='api_historico'),
]
