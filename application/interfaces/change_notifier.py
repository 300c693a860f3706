# application/interfaces/change_notifier.py
from abc import ABC, abstractmethod
from typing import Callable, Hashable

# O evento não carrega dados: é apenas um gatilho de reload
ChangeHandler = Callable[[], None]


class IChangeNotifier(ABC):
    """Interface para canais que avisam sobre mudanças no conjunto de sinais."""

    @abstractmethod
    def subscribe(self, handler: ChangeHandler) -> Hashable:
        """Registra o handler e retorna o handle da inscrição. Levanta SubscriptionError."""

    @abstractmethod
    def unsubscribe(self, handle: Hashable) -> None:
        """Libera a inscrição. Chamadas repetidas não têm efeito."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """True enquanto o canal estiver entregando eventos."""
