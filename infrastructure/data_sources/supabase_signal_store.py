# infrastructure/data_sources/supabase_signal_store.py
import logging
from typing import Dict, List, Optional

import httpx
import pydantic

from domain.entities.signal import Signal
from domain.exceptions import DeleteError, FetchError
from domain.repositories.signal_store import ISignalStore

logger = logging.getLogger(__name__)


class SupabaseSignalStore(ISignalStore):
    """Acesso à tabela de sinais via API REST (PostgREST) do Supabase."""

    def __init__(
        self,
        url: str,
        api_key: str,
        table: str = 'trading_signals',
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None
    ):
        self.base_url = (url or '').rstrip('/')
        if not self.base_url:
            logger.critical("URL do Supabase não configurada. Não será possível carregar sinais.")
            raise ValueError("Supabase URL cannot be empty.")

        self.table = table
        self.endpoint = f"{self.base_url}/rest/v1/{table}"
        self.client = client or httpx.Client(timeout=timeout)
        self.headers: Dict[str, str] = {
            'apikey': api_key,
            'Authorization': f"Bearer {api_key}",
        }

    @classmethod
    def from_config(cls, config: Dict) -> "SupabaseSignalStore":
        return cls(
            url=config.get('url', ''),
            api_key=config.get('anon_key', ''),
            table=config.get('table', 'trading_signals'),
            timeout=float(config.get('timeout', 10.0))
        )

    def fetch_all(self) -> List[Signal]:
        """Busca todos os sinais ordenados por created_at decrescente."""
        params = {'select': '*', 'order': 'created_at.desc'}
        try:
            response = self.client.get(self.endpoint, params=params, headers=self.headers)
            response.raise_for_status()
            rows = response.json()
        except httpx.HTTPStatusError as e:
            raise FetchError(
                f"Supabase retornou {e.response.status_code} ao buscar sinais: {e.response.text}"
            ) from e
        except httpx.TimeoutException as e:
            raise FetchError(f"Timeout ao buscar sinais em {self.endpoint}") from e
        except httpx.RequestError as e:
            raise FetchError(f"Erro de conexão ao buscar sinais: {e}") from e
        except ValueError as e:
            raise FetchError(f"Resposta não é JSON válido: {e}") from e

        if not isinstance(rows, list):
            raise FetchError(f"Resposta inesperada do Supabase: {type(rows).__name__}")

        signals = []
        for row in rows:
            if not isinstance(row, dict):
                raise FetchError(f"Registro malformado: {row!r}")
            try:
                signals.append(Signal.from_record(row))
            except pydantic.ValidationError as e:
                raise FetchError(f"Registro malformado {row.get('id')}: {e}") from e

        logger.debug(f"{len(signals)} sinais recebidos de {self.table}")
        return signals

    def delete_all(self) -> None:
        """
        Remove todas as linhas da tabela.
        PostgREST recusa DELETE sem filtro; 'id is not null' casa com todas
        as linhas porque a chave primária nunca é nula.
        """
        params = {'id': 'not.is.null'}
        headers = {**self.headers, 'Prefer': 'return=minimal'}
        try:
            response = self.client.delete(self.endpoint, params=params, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DeleteError(
                f"Supabase retornou {e.response.status_code} ao excluir sinais: {e.response.text}"
            ) from e
        except httpx.RequestError as e:
            raise DeleteError(f"Erro de conexão ao excluir sinais: {e}") from e

        logger.info(f"Todos os sinais de {self.table} foram excluídos")

    def close(self) -> None:
        self.client.close()
