# application/services/signal_statistics.py
import json
from typing import Iterable

from domain.entities.signal import Signal, TradeAction
from domain.entities.signal_stats import SignalStats


def compute_stats(signals: Iterable[Signal]) -> SignalStats:
    """Calcula total, compras, vendas e confiança média (arredondada para cima em .5)."""
    total = buy = sell = confidence_sum = 0
    for signal in signals:
        total += 1
        confidence_sum += signal.confidence
        if signal.action == TradeAction.BUY:
            buy += 1
        elif signal.action == TradeAction.SELL:
            sell += 1

    # Aritmética inteira: floor(media + 0.5) sem erro de ponto flutuante
    avg_confidence = (2 * confidence_sum + total) // (2 * total) if total > 0 else 0

    return SignalStats(
        total=total,
        buy_count=buy,
        sell_count=sell,
        avg_confidence=avg_confidence
    )


def estimate_storage_kb(signals: Iterable[Signal]) -> float:
    """Tamanho aproximado do conjunto serializado em JSON, em KB."""
    records = [
        {
            'id': s.id,
            'pair': s.pair,
            'action': s.action.value,
            'confidence': s.confidence,
            'session': s.session.value,
            'created_at': s.created_at.isoformat(),
            **s.details
        }
        for s in signals
    ]
    if not records:
        return 0.0
    size = len(json.dumps(records, ensure_ascii=False, default=str))
    return round(size / 1024, 2)
