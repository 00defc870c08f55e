"""
Verificação de expediente do técnico.

WorkingHoursWindow é uma janela diária (entrada, saída) validada
no momento em que é configurada. A comparação com um instante é
uma função pura da janela e do instante; o "agora" sempre vem de
fora (clock injetado nos use cases).

Regras:
- Granularidade de minutos: segundos do instante são ignorados
- Limites inclusivos: 17:00 está dentro de 09:00–17:00
- Basta estar dentro de uma das janelas do técnico
- Técnico sem janela cadastrada nunca está no expediente
"""

from dataclasses import dataclass
from datetime import datetime, time
from typing import Iterable, Union
import logging
import re

from helpdesk.core.shared.exceptions import ValidationError

logger = logging.getLogger(__name__)


_HORARIO_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_horario(valor: Union[str, time]) -> time:
    """Converte "HH:MM" (ou time) em time sem segundos."""
    if isinstance(valor, time):
        return valor.replace(second=0, microsecond=0)

    match = _HORARIO_RE.match((valor or "").strip())
    if not match:
        raise ValidationError(
            f"Horário inválido: {valor!r}. Use o formato HH:MM",
            field="horario",
        )
    return time(int(match.group(1)), int(match.group(2)))


@dataclass(frozen=True)
class WorkingHoursWindow:
    """
    Janela de expediente no mesmo dia.

    Raises:
        ValidationError: Se saída não for posterior à entrada
    """

    entrada: time
    saida: time

    def __post_init__(self):
        object.__setattr__(self, "entrada", parse_horario(self.entrada))
        object.__setattr__(self, "saida", parse_horario(self.saida))

        if self.saida <= self.entrada:
            raise ValidationError(
                "Horário de saída deve ser posterior ao horário de entrada",
                field="saida",
            )

    @classmethod
    def from_strings(cls, entrada: str, saida: str) -> "WorkingHoursWindow":
        return cls(parse_horario(entrada), parse_horario(saida))

    def contem(self, instante: datetime) -> bool:
        """Compara a hora de parede do instante com a janela."""
        hora = instante.time().replace(second=0, microsecond=0)
        return self.entrada <= hora <= self.saida

    def __str__(self) -> str:
        return f"{self.entrada:%H:%M}-{self.saida:%H:%M}"


def esta_no_expediente(janelas: Iterable[WorkingHoursWindow], instante: datetime) -> bool:
    """Verdadeiro se o instante cai em alguma das janelas."""
    return any(janela.contem(instante) for janela in janelas)


class AvailabilityChecker:
    """
    Responde se um técnico está no expediente em um instante.

    Usado apenas para o técnico assumir um chamado; administradores
    não passam por esta verificação.

    Example:
        checker = AvailabilityChecker(schedule_repo)
        checker.is_within_working_hours("tec-1", datetime(2024, 5, 6, 10, 30))
    """

    def __init__(self, schedules):
        self._schedules = schedules

    def is_within_working_hours(self, tecnico_id: str, instante: datetime) -> bool:
        janelas = list(self._schedules.windows_for(tecnico_id))

        if not janelas:
            logger.info(f"Técnico {tecnico_id} sem expediente cadastrado")
            return False

        dentro = esta_no_expediente(janelas, instante)
        if not dentro:
            logger.info(
                f"Técnico {tecnico_id} fora do expediente às {instante:%H:%M} "
                f"(janelas: {', '.join(str(j) for j in janelas)})"
            )
        return dentro
