# application/interfaces/key_value_storage.py
from abc import ABC, abstractmethod
from typing import Optional

class IKeyValueStorage(ABC):
    """Interface para armazenamento local durável (chave/valor, síncrono)."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Retorna o valor salvo ou None se ausente."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Grava o valor de forma atômica. Levanta StorageError."""
