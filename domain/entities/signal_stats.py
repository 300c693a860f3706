# domain/entities/signal_stats.py
from pydantic import BaseModel


class SignalStats(BaseModel):
    """Estatísticas derivadas de um conjunto de sinais. Nunca armazenadas."""
    total: int = 0
    buy_count: int = 0
    sell_count: int = 0
    avg_confidence: int = 0

    class Config:
        frozen = True
