# domain/exceptions.py
"""Erros do feed de sinais."""
from typing import Dict


class SignalFeedError(Exception):
    """Base para os erros do feed de sinais."""


class FetchError(SignalFeedError):
    """Banco remoto inacessível ou retornou dados malformados."""


class DeleteError(SignalFeedError):
    """Exclusão em massa falhou ou foi aplicada parcialmente."""


class SubscriptionError(SignalFeedError):
    """Canal de notificações caiu ou não pôde ser estabelecido."""


class StorageError(SignalFeedError):
    """Falha ao gravar no armazenamento local."""


class ValidationError(SignalFeedError):
    """Configuração fora do domínio permitido."""

    def __init__(self, fields: Dict[str, str]):
        self.fields = dict(fields)
        details = ", ".join(f"{name}: {reason}" for name, reason in self.fields.items())
        super().__init__(f"Configurações inválidas ({details})")
