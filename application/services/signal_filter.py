# application/services/signal_filter.py
"""
Motor de filtros dos sinais.
Funções puras: o resultado depende apenas de (sinais, critérios).
"""
from typing import Iterable, List

from domain.entities.signal import Signal
from domain.entities.filter_criteria import FilterCriteria, ActionFilter, SessionFilter


def matches_criteria(signal: Signal, criteria: FilterCriteria) -> bool:
    """Predicado conjuntivo (AND) de todos os filtros ativos."""
    if criteria.search_term and criteria.search_term.lower() not in signal.pair.lower():
        return False

    if criteria.action_filter != ActionFilter.ALL and signal.action.value != criteria.action_filter.value:
        return False

    if criteria.session_filter != SessionFilter.ALL and signal.session.value != criteria.session_filter.value:
        return False

    return True


def filter_signals(signals: Iterable[Signal], criteria: FilterCriteria) -> List[Signal]:
    """
    Retorna o subconjunto visível preservando a ordem de entrada.

    Args:
        signals: Sequência completa, já ordenada pelo cache
        criteria: Filtros ativos

    Returns:
        Nova lista; a entrada nunca é alterada
    """
    return [signal for signal in signals if matches_criteria(signal, criteria)]
