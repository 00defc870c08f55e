"""
Gerador do número do chamado (OS).

O número é o prefixo seguido de um inteiro decimal preenchido com
zeros à esquerda (INC0001, INC0002, ...). O inteiro vem de um
contador atômico do storage (fetch-and-add); a aplicação nunca lê,
soma e grava o valor por conta própria.
"""

import logging

from helpdesk.core.shared.exceptions import DependencyFailureError, ValidationError

from .ports import SequenceCounter

logger = logging.getLogger(__name__)


PREFIXO_PADRAO = "INC"
LARGURA_PADRAO = 4


def formatar_numero(valor: int, prefixo: str = PREFIXO_PADRAO, largura: int = LARGURA_PADRAO) -> str:
    """
    Formata o valor do contador como número de chamado.

    Valores maiores que a largura são emitidos por inteiro,
    nunca truncados: formatar_numero(12345) == "INC12345".
    """
    if valor < 1:
        raise ValueError(f"Valor de sequência inválido: {valor}")
    return f"{prefixo}{valor:0{largura}d}"


def extrair_valor(numero: str, prefixo: str = PREFIXO_PADRAO) -> int:
    """Inverso de formatar_numero; usado para ordenar números."""
    if not numero or not numero.startswith(prefixo):
        raise ValidationError(f"Número de chamado inválido: {numero}", field="numero")
    digitos = numero[len(prefixo):]
    if not digitos.isdigit():
        raise ValidationError(f"Número de chamado inválido: {numero}", field="numero")
    return int(digitos)


class TicketNumberGenerator:
    """
    Produz números de chamado únicos e estritamente crescentes.

    A unicidade depende exclusivamente do contador; chamadas
    concorrentes (threads ou processos) nunca recebem o mesmo valor.

    Example:
        generator = TicketNumberGenerator(InMemorySequenceCounter())
        generator.next()  # "INC0001"
    """

    def __init__(
        self,
        counter: SequenceCounter,
        prefixo: str = PREFIXO_PADRAO,
        largura: int = LARGURA_PADRAO,
    ):
        self._counter = counter
        self.prefixo = prefixo
        self.largura = largura

    def next(self) -> str:
        """
        Obtém o próximo número formatado.

        Raises:
            DependencyFailureError: Se o contador estiver indisponível
        """
        try:
            valor = self._counter.next_value()
        except DependencyFailureError:
            raise
        except Exception as e:
            logger.error(f"Falha ao incrementar sequência de chamados: {e}")
            raise DependencyFailureError(
                "Não foi possível gerar o número do chamado",
                dependency="sequence_counter",
            ) from e

        numero = formatar_numero(valor, self.prefixo, self.largura)
        logger.debug(f"Número de chamado gerado: {numero}")
        return numero
