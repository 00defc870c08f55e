"""
API Views JSON para o ciclo de vida do chamado.

Endpoints:
- GET    /chamados/                  - Listar chamados (filtros, ?fila=abertos)
- POST   /chamados/                  - Abrir chamado
- GET    /chamados/<id>/             - Obter chamado
- DELETE /chamados/<id>/             - Excluir definitivamente (ADMIN)
- PATCH  /chamados/<id>/status/      - Alterar status (TECNICO/ADMIN)
- PATCH  /chamados/<id>/reabrir/     - Reabrir (solicitante)
- PATCH  /chamados/<id>/cancelar/    - Cancelar (solicitante/ADMIN)
- GET    /chamados/<id>/historico/   - Histórico ordenado

Formato:
- Entrada: JSON
- Saída: JSON com estrutura {success, data/error, meta}

Autenticação:
- Feita antes desta camada (gateway/middleware); a identidade já
  verificada chega nos headers X-Actor-Id, X-Actor-Role,
  X-Actor-Name e X-Actor-Email.
"""

import json
import logging
from typing import Any, Dict, Optional

from django.views import View
from django.http import JsonResponse, HttpRequest
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt

from helpdesk.core.tickets.dtos import (
    AlterarStatusInputDTO,
    CancelarTicketInputDTO,
    CriarTicketInputDTO,
    ExcluirTicketInputDTO,
    ReabrirTicketInputDTO,
)
from helpdesk.core.tickets.entities import ActorRole
from helpdesk.core.shared.exceptions import (
    BusinessRuleViolationError,
    ConflictError,
    DependencyFailureError,
    DomainException,
    EntityNotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from helpdesk.config.container import get_container

logger = logging.getLogger(__name__)


# =============================================================================
# Helpers
# =============================================================================

def json_response(success: bool, data: Any = None, error: Any = None,
                  status: int = 200, meta: Dict = None) -> JsonResponse:
    """
    Cria resposta JSON padronizada.

    Args:
        success: Se operação foi bem sucedida
        data: Dados da resposta
        error: Erro serializado (se aplicável)
        status: HTTP status code
        meta: Metadados adicionais
    """
    response = {'success': success}

    if data is not None:
        response['data'] = data

    if error is not None:
        response['error'] = error

    if meta is not None:
        response['meta'] = meta

    return JsonResponse(response, status=status, safe=False)


def parse_json_body(request: HttpRequest) -> Dict:
    """
    Parseia body JSON do request.

    Raises:
        ValueError: Se JSON inválido ou não for objeto
    """
    if not request.body:
        return {}

    try:
        data = json.loads(request.body)
    except json.JSONDecodeError as e:
        raise ValueError(f"JSON inválido: {e}")

    if not isinstance(data, dict):
        raise ValueError("Corpo da requisição deve ser um objeto JSON")
    return data


def campo_texto(data: Dict, nome: str) -> Optional[str]:
    """
    Lê um campo de texto do corpo JSON.

    Raises:
        ValidationError: Se o valor presente não for string
    """
    valor = data.get(nome)
    if valor is not None and not isinstance(valor, str):
        raise ValidationError(f"Campo {nome} deve ser texto", field=nome)
    return valor


class RequestActor:
    """Identidade extraída dos headers X-Actor-*."""

    def __init__(self, request: HttpRequest):
        self.id = request.headers.get('X-Actor-Id', '').strip()
        self.papel = request.headers.get('X-Actor-Role', '').strip().upper()
        self.nome = request.headers.get('X-Actor-Name') or None
        self.email = request.headers.get('X-Actor-Email') or None

        if not self.id or not self.papel:
            raise PermissionDeniedError("Identificação do usuário ausente", action="autenticacao")

    def exigir_papel(self, *papeis: ActorRole) -> None:
        if self.papel not in {p.value for p in papeis}:
            raise PermissionDeniedError(
                f"Acesso negado para o perfil {self.papel}",
                action="papel",
            )


# =============================================================================
# Base API View
# =============================================================================

@method_decorator(csrf_exempt, name='dispatch')
class BaseAPIView(View):
    """
    View base para APIs JSON.

    Fornece:
    - Parsing de JSON e identidade do ator
    - Acesso ao container DI
    - Tradução de exceções de domínio para status HTTP
    """

    STATUS_POR_EXCECAO = (
        (ValidationError, 400),
        (PermissionDeniedError, 403),
        (EntityNotFoundError, 404),
        (ConflictError, 409),
        (BusinessRuleViolationError, 422),
        (DependencyFailureError, 503),
        (DomainException, 400),
    )

    def get_service(self, service_name: str):
        """Obtém service do container."""
        return getattr(get_container(), service_name)()

    def get_actor(self, request: HttpRequest) -> RequestActor:
        return RequestActor(request)

    def handle_exception(self, e: Exception) -> JsonResponse:
        """
        Trata exceções e retorna resposta apropriada.

        - ValidationError → 400
        - PermissionDeniedError → 403
        - EntityNotFoundError → 404
        - ConflictError (concorrência, estado terminal) → 409
        - BusinessRuleViolationError → 422
        - DependencyFailureError → 503 + Retry-After
        - ValueError → 400; qualquer outra → 500
        """
        for tipo, status in self.STATUS_POR_EXCECAO:
            if isinstance(e, tipo):
                logger.info(f"API: {e}")
                response = json_response(success=False, error=e.to_dict(), status=status)
                if e.retryable:
                    response['Retry-After'] = '1'
                return response

        if isinstance(e, ValueError):
            return json_response(
                success=False,
                error={'error': 'BAD_REQUEST', 'message': str(e)},
                status=400,
            )

        logger.exception(f"Erro inesperado na API: {e}")
        return json_response(
            success=False,
            error={'error': 'INTERNAL_ERROR', 'message': 'Erro interno do servidor'},
            status=500,
        )


# =============================================================================
# Ticket API Views
# =============================================================================

class TicketAPIListView(BaseAPIView):
    """
    GET /chamados/ - Lista chamados
    POST /chamados/ - Abre chamado (USUARIO)
    """

    def get(self, request: HttpRequest) -> JsonResponse:
        """
        Query params:
        - status: Filtrar por status
        - solicitante_id: "meus chamados"
        - tecnico_id: "chamados atribuídos"
        - fila=abertos: chamados ABERTO/REABERTO (TECNICO/ADMIN)
        - ordenacao: recentes | antigos | prioridade (reabertos primeiro)

        Usuários só enxergam os próprios chamados.
        """
        try:
            actor = self.get_actor(request)

            solicitante_id = request.GET.get('solicitante_id') or None
            if actor.papel == ActorRole.USUARIO.value:
                solicitante_id = actor.id

            fila = request.GET.get('fila') or None
            if fila is not None:
                if fila != 'abertos':
                    raise ValidationError(f"Fila inválida: {fila}", field="fila")
                actor.exigir_papel(ActorRole.ADMIN, ActorRole.TECNICO)

            tickets = self.get_service('listar_tickets_service').execute(
                status=request.GET.get('status') or None,
                solicitante_id=solicitante_id,
                tecnico_id=request.GET.get('tecnico_id') or None,
                fila=fila is not None,
                ordenacao=request.GET.get('ordenacao') or None,
            )

            return json_response(
                success=True,
                data=[t.to_dict() for t in tickets],
                meta={'total': len(tickets)},
            )

        except Exception as e:
            return self.handle_exception(e)

    def post(self, request: HttpRequest) -> JsonResponse:
        """
        Body JSON:
        {
            "descricao": "string (obrigatório)",
            "servicos": "nome" | ["nome ou id", ...] (obrigatório)
        }
        """
        try:
            actor = self.get_actor(request)
            actor.exigir_papel(ActorRole.USUARIO)
            data = parse_json_body(request)

            servicos = data.get('servicos', [])
            if isinstance(servicos, str):
                servicos = [servicos]
            if not isinstance(servicos, list):
                raise ValidationError("Serviços devem ser uma lista de nomes", field="servicos")

            output = self.get_service('criar_ticket_service').execute(
                CriarTicketInputDTO(
                    descricao=campo_texto(data, 'descricao'),
                    solicitante_id=actor.id,
                    servicos=tuple(servicos),
                    solicitante_nome=actor.nome,
                    solicitante_email=actor.email,
                )
            )

            logger.info(f"API: Chamado criado: {output.numero}")
            return json_response(success=True, data=output.to_dict(), status=201)

        except Exception as e:
            return self.handle_exception(e)


class TicketAPIDetailView(BaseAPIView):
    """
    GET /chamados/<id>/ - Obter chamado
    DELETE /chamados/<id>/ - Exclusão definitiva (ADMIN)
    """

    def get(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            actor = self.get_actor(request)
            ticket = self.get_service('obter_ticket_service').execute(pk)

            if actor.papel == ActorRole.USUARIO.value and ticket.solicitante_id != actor.id:
                raise PermissionDeniedError("Você só pode visualizar seus chamados", action="visualizar")

            return json_response(success=True, data=ticket.to_dict())

        except Exception as e:
            return self.handle_exception(e)

    def delete(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            actor = self.get_actor(request)
            output = self.get_service('excluir_ticket_service').execute(
                ExcluirTicketInputDTO(ticket_id=pk, ator_id=actor.id, ator_papel=actor.papel)
            )
            return json_response(
                success=True,
                data={'id': output.id, 'numero': output.numero},
                meta={'message': f"Chamado {output.numero} excluído"},
            )

        except Exception as e:
            return self.handle_exception(e)


class TicketAPIStatusView(BaseAPIView):
    """
    PATCH /chamados/<id>/status/

    Body JSON:
    {
        "status": "EM_ATENDIMENTO|ENCERRADO|CANCELADO",
        "motivo_encerramento": "string (ENCERRADO/CANCELADO)",
        "nota": "string (opcional)",
        "tecnico_id": "string (opcional, ADMIN)"
    }
    """

    def patch(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            actor = self.get_actor(request)
            actor.exigir_papel(ActorRole.ADMIN, ActorRole.TECNICO)
            data = parse_json_body(request)

            output = self.get_service('alterar_status_service').execute(
                AlterarStatusInputDTO(
                    ticket_id=pk,
                    ator_id=actor.id,
                    ator_papel=actor.papel,
                    status=campo_texto(data, 'status') or '',
                    motivo_encerramento=campo_texto(data, 'motivo_encerramento'),
                    nota=campo_texto(data, 'nota'),
                    tecnico_id=campo_texto(data, 'tecnico_id'),
                    ator_nome=actor.nome,
                    ator_email=actor.email,
                )
            )
            return json_response(success=True, data=output.to_dict())

        except Exception as e:
            return self.handle_exception(e)


class TicketAPIReabrirView(BaseAPIView):
    """PATCH /chamados/<id>/reabrir/ - Body: {"nota": "string (opcional)"}"""

    def patch(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            actor = self.get_actor(request)
            actor.exigir_papel(ActorRole.USUARIO)
            data = parse_json_body(request)

            output = self.get_service('reabrir_ticket_service').execute(
                ReabrirTicketInputDTO(
                    ticket_id=pk,
                    ator_id=actor.id,
                    nota=campo_texto(data, 'nota'),
                    ator_nome=actor.nome,
                    ator_email=actor.email,
                )
            )
            return json_response(success=True, data=output.to_dict())

        except Exception as e:
            return self.handle_exception(e)


class TicketAPICancelarView(BaseAPIView):
    """PATCH /chamados/<id>/cancelar/ - Body: {"motivo": "string"}"""

    def patch(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            actor = self.get_actor(request)
            data = parse_json_body(request)

            output = self.get_service('cancelar_ticket_service').execute(
                CancelarTicketInputDTO(
                    ticket_id=pk,
                    ator_id=actor.id,
                    ator_papel=actor.papel,
                    motivo=campo_texto(data, 'motivo') or campo_texto(data, 'motivo_encerramento') or '',
                    nota=campo_texto(data, 'nota'),
                    ator_nome=actor.nome,
                    ator_email=actor.email,
                )
            )
            return json_response(success=True, data=output.to_dict())

        except Exception as e:
            return self.handle_exception(e)


class TicketAPIHistoricoView(BaseAPIView):
    """GET /chamados/<id>/historico/"""

    def get(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            actor = self.get_actor(request)
            if actor.papel == ActorRole.USUARIO.value:
                ticket = self.get_service('obter_ticket_service').execute(pk)
                if ticket.solicitante_id != actor.id:
                    raise PermissionDeniedError(
                        "Você só pode visualizar o histórico dos seus chamados",
                        action="historico",
                    )

            historico = self.get_service('obter_historico_service').execute(pk)
            return json_response(
                success=True,
                data=[h.to_dict() for h in historico],
                meta={'total': len(historico)},
            )

        except Exception as e:
            return self.handle_exception(e)
