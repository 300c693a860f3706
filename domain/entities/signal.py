# domain/entities/signal.py
import copy
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, List, Mapping

# Colunas interpretadas pelo core; o resto vai para details
CORE_FIELDS = ('id', 'pair', 'action', 'confidence', 'session', 'created_at')


class TradeAction(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class TradingSession(str, Enum):
    ASIAN = "Asian"
    LONDON = "London"
    NEW_YORK = "New York"


class Signal(BaseModel):
    """Representa um sinal de trading registrado no banco remoto."""
    id: str
    pair: str
    action: TradeAction
    confidence: int = Field(ge=0, le=100, description="Confiança em % (0-100)")
    session: TradingSession
    created_at: datetime
    # Demais colunas (níveis de preço, análise...) não interpretadas pelo core
    details: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)

    class Config:
        frozen = True

    @field_validator('details', mode='after')
    @classmethod
    def freeze_details(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        # Snapshots são compartilhados entre threads: cópia própria, somente leitura
        return MappingProxyType(copy.deepcopy(dict(value)))

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Signal":
        """Cria um Signal a partir de uma linha crua do banco."""
        values = {name: record.get(name) for name in CORE_FIELDS}
        if values['id'] is not None:
            values['id'] = str(values['id'])
        values['details'] = {
            k: v for k, v in record.items() if k not in CORE_FIELDS
        }
        return cls(**values)


def sort_newest_first(signals: Iterable[Signal]) -> List[Signal]:
    """Ordena por created_at decrescente, sem confiar na ordem de chegada."""
    return sorted(signals, key=lambda s: s.created_at, reverse=True)
