"""
Interfaces de repositórios seguindo Clean Architecture.
Define contratos que devem ser implementados pela camada de infraestrutura.
"""

from .signal_store import ISignalStore

__all__ = ['ISignalStore']
