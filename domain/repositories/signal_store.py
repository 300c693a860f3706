from abc import ABC, abstractmethod
from typing import List
from domain.entities.signal import Signal

class ISignalStore(ABC):
    """Interface para o banco remoto de sinais seguindo Clean Architecture."""

    @abstractmethod
    def fetch_all(self) -> List[Signal]:
        """Retorna todos os sinais, mais recentes primeiro. Levanta FetchError."""

    @abstractmethod
    def delete_all(self) -> None:
        """Remove todos os sinais do banco. Levanta DeleteError."""
