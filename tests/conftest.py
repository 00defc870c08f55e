"""
Configurações globais do Pytest para o Helpdesk.

Este arquivo é carregado automaticamente pelo pytest e
fornece configurações compartilhadas.
"""

import sys
from pathlib import Path

# Raiz do projeto no path para importar o pacote helpdesk
project_path = Path(__file__).parent.parent
sys.path.insert(0, str(project_path))


def pytest_configure(config):
    """Configuração do pytest."""
    config.addinivalue_line(
        "markers", "slow: testes com threads concorrentes (deselect with '-m \"not slow\"')"
    )
