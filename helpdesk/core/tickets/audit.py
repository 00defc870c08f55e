"""
Trilha de auditoria dos chamados.

Cada transição bem-sucedida gera exatamente uma AuditEntry imutável.
A entrada é escrita depois do commit da transição, a partir do
evento de domínio correspondente: a transição é a fonte da verdade
e uma falha na escrita do histórico nunca a desfaz.

Fluxo:
    UnitOfWork.commit() → EventPublisher → AuditEventHandler
        → AuditTrail.record() (com retentativas)
        → fallback (tarefa Celery) se todas falharem
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional
import logging
import time
import uuid

logger = logging.getLogger(__name__)


class AuditKind(Enum):
    """Tipos de entrada do histórico."""

    ABERTURA = "ABERTURA"
    STATUS = "STATUS"
    REABERTURA = "REABERTURA"
    CANCELAMENTO = "CANCELAMENTO"


@dataclass(frozen=True)
class AuditEntry:
    """
    Registro imutável de um evento do ciclo de vida.

    O id é o event_id do evento de domínio de origem, o que torna
    a gravação idempotente: reentregas não duplicam o histórico.
    """

    ticket_id: str
    timestamp: datetime
    tipo: AuditKind
    de_status: Optional[str] = None
    para_status: Optional[str] = None
    nota: str = ""
    autor_id: str = ""
    autor_nome: Optional[str] = None
    autor_email: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        """Serializa para JSON (transporte via Celery)."""
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        data["tipo"] = self.tipo.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditEntry":
        data = dict(data)
        data["timestamp"] = datetime.fromisoformat(data["timestamp"])
        data["tipo"] = AuditKind(data["tipo"])
        return cls(**data)


def ordenar_historico(entradas: Iterable[AuditEntry]) -> List[AuditEntry]:
    """
    Ordena por timestamp crescente.

    sorted() é estável: empates mantêm a ordem de inserção.
    """
    return sorted(entradas, key=lambda e: e.timestamp)


class AuditEventHandler:
    """
    Handler de eventos que grava o histórico com retentativas.

    Nunca propaga exceção: após esgotar as tentativas registra um
    erro no log e entrega a entrada ao fallback (ex: tarefa Celery
    que continuará tentando fora do request).

    Args:
        trail: Implementação de AuditTrail
        max_tentativas: Tentativas síncronas antes do fallback
        fallback: Callable que recebe a AuditEntry não gravada
        espera: Segundos antes da 2ª tentativa; dobra a cada falha
        sleep: Função de espera (substituível nos testes)
    """

    def __init__(
        self,
        trail,
        max_tentativas: int = 3,
        fallback: Optional[Callable[[AuditEntry], None]] = None,
        espera: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._trail = trail
        self._max_tentativas = max(1, max_tentativas)
        self._fallback = fallback
        self._espera = espera
        self._sleep = sleep

    def __call__(self, event) -> None:
        entry = event.to_audit_entry()
        self.registrar(entry)

    def registrar(self, entry: AuditEntry) -> bool:
        """Grava a entrada; retorna False se precisou do fallback."""
        for tentativa in range(1, self._max_tentativas + 1):
            try:
                self._trail.record(entry)
                return True
            except Exception as e:
                logger.warning(
                    f"Falha ao gravar histórico do chamado {entry.ticket_id} "
                    f"(tentativa {tentativa}/{self._max_tentativas}): {e}"
                )
                if tentativa < self._max_tentativas:
                    self._sleep(self._espera * 2 ** (tentativa - 1))

        logger.error(
            f"Histórico do chamado {entry.ticket_id} não gravado após "
            f"{self._max_tentativas} tentativas; entrada {entry.id} "
            f"encaminhada para reprocessamento"
        )
        self._encaminhar(entry)
        return False

    def _encaminhar(self, entry: AuditEntry) -> None:
        if self._fallback is None:
            logger.error(f"Sem fallback configurado; entrada perdida: {entry.to_dict()}")
            return
        try:
            self._fallback(entry)
        except Exception as e:
            logger.exception(f"Fallback de auditoria falhou para {entry.id}: {e}")
