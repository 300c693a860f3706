"""
Testes do motor de filtros.
"""
import itertools

import pytest

from application.services.signal_filter import filter_signals, matches_criteria
from domain.entities.filter_criteria import ActionFilter, FilterCriteria, SessionFilter
from domain.entities.signal import TradeAction, TradingSession

from conftest import make_signal


SEARCH_TERMS = ["", "usd", "EUR", "gbp/", "xyz"]


class TestFilterProperties:
    """Propriedades que valem para qualquer combinação de critérios."""

    @pytest.mark.parametrize(
        "search_term,action_filter,session_filter",
        list(itertools.product(SEARCH_TERMS, list(ActionFilter), list(SessionFilter)))
    )
    def test_result_is_ordered_subset(self, sample_signals, search_term, action_filter, session_filter):
        criteria = FilterCriteria(
            search_term=search_term,
            action_filter=action_filter,
            session_filter=session_filter
        )
        visible = filter_signals(sample_signals, criteria)

        positions = [sample_signals.index(s) for s in visible]
        assert positions == sorted(positions)
        assert all(s in sample_signals for s in visible)

    def test_no_constraints_is_identity(self, sample_signals):
        criteria = FilterCriteria()
        assert criteria.is_unconstrained
        assert filter_signals(sample_signals, criteria) == sample_signals

    def test_input_is_not_mutated(self, sample_signals):
        original = list(sample_signals)
        filter_signals(sample_signals, FilterCriteria(action_filter=ActionFilter.SELL))
        assert sample_signals == original

    def test_returns_new_list(self, sample_signals):
        visible = filter_signals(sample_signals, FilterCriteria())
        assert visible is not sample_signals

    def test_accepts_tuple_snapshot(self, sample_signals):
        visible = filter_signals(tuple(sample_signals), FilterCriteria(search_term="usd"))
        assert len(visible) == 3

    def test_empty_input(self):
        assert filter_signals([], FilterCriteria(search_term="eur")) == []


class TestIndividualFilters:

    def test_search_is_case_insensitive(self, sample_signals):
        visible = filter_signals(sample_signals, FilterCriteria(search_term="eUr"))
        assert [s.id for s in visible] == ["s1"]

    def test_search_matches_substring(self, sample_signals):
        visible = filter_signals(sample_signals, FilterCriteria(search_term="/USD"))
        assert [s.id for s in visible] == ["s1", "s2"]

    def test_action_filter(self, sample_signals):
        visible = filter_signals(sample_signals, FilterCriteria(action_filter=ActionFilter.BUY))
        assert [s.id for s in visible] == ["s1", "s3"]

    def test_session_filter(self, sample_signals):
        visible = filter_signals(sample_signals, FilterCriteria(session_filter=SessionFilter.NEW_YORK))
        assert [s.id for s in visible] == ["s3"]

    def test_filters_are_conjunctive(self, sample_signals):
        criteria = FilterCriteria(
            search_term="usd",
            action_filter=ActionFilter.BUY,
            session_filter=SessionFilter.LONDON
        )
        visible = filter_signals(sample_signals, criteria)
        assert [s.id for s in visible] == ["s1"]

    def test_no_match(self, sample_signals):
        criteria = FilterCriteria(action_filter=ActionFilter.SELL, session_filter=SessionFilter.LONDON)
        assert filter_signals(sample_signals, criteria) == []

    def test_matches_criteria_predicate(self):
        signal = make_signal("x", pair="AUD/CAD", action=TradeAction.SELL, session=TradingSession.ASIAN)
        assert matches_criteria(signal, FilterCriteria(search_term="aud"))
        assert not matches_criteria(signal, FilterCriteria(action_filter=ActionFilter.BUY))
        assert matches_criteria(signal, FilterCriteria(session_filter=SessionFilter.ASIAN))


def test_history_scenario():
    """Busca 'eur' retorna apenas o sinal de EUR/USD."""
    signals = [
        make_signal("1", pair="EUR/USD", action=TradeAction.BUY, confidence=90,
                    session=TradingSession.LONDON),
        make_signal("2", pair="GBP/USD", action=TradeAction.SELL, confidence=80,
                    session=TradingSession.ASIAN, minutes_ago=1),
    ]
    visible = filter_signals(signals, FilterCriteria(search_term="eur"))
    assert visible == [signals[0]]
