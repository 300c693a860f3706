"""
Testes do serviço de feed (fachada usada pela interface).
"""
import json
import threading

import pytest

from application.services.settings_store import DEFAULT_SETTINGS_KEY, SettingsStore
from application.services.signal_feed_service import SignalFeedService
from application.services.signal_sync_cache import SignalSyncCache
from domain.entities.filter_criteria import ActionFilter, FilterCriteria, SessionFilter
from domain.entities.signal import TradeAction, TradingSession
from domain.entities.signal_stats import SignalStats
from domain.entities.trading_settings import TradingSettings
from domain.exceptions import DeleteError, ValidationError

from conftest import FakeChangeNotifier, FakeSignalStore, MemoryStorage, make_signal, run_inline


@pytest.fixture
def service(store, notifier, event_bus, memory_storage) -> SignalFeedService:
    cache = SignalSyncCache(store, notifier, event_bus, config={'reload_debounce': 0}, reload_executor=run_inline)
    return SignalFeedService(cache, SettingsStore(memory_storage), event_bus)


class TestLifecycle:

    def test_start_loads_and_subscribes(self, service, notifier):
        service.start()
        assert notifier.active == 1
        assert len(service.all_signals()) == 3
        assert service.running
        service.stop()

    def test_stop_releases_subscription(self, service, notifier):
        service.start()
        service.stop()
        assert notifier.active == 0
        assert not service.running

    def test_context_manager_stops_on_error(self, service, notifier):
        with pytest.raises(RuntimeError):
            with service:
                raise RuntimeError("interface encerrada")
        assert notifier.active == 0

    def test_start_reads_persisted_settings(self, store, notifier):
        stored = json.dumps({'confidenceThreshold': 95, 'telegramEnabled': False})
        cache = SignalSyncCache(store, notifier, config={'reload_debounce': 0}, reload_executor=run_inline)
        service = SignalFeedService(cache, SettingsStore(MemoryStorage({DEFAULT_SETTINGS_KEY: stored})))

        with service:
            assert service.settings.confidence_threshold == 95
            assert service.settings.telegram_enabled is False

    def test_live_insert_reaches_views(self, service, store, notifier):
        with service:
            store.signals.append(make_signal("s4", pair="AUD/USD", minutes_ago=-1))
            notifier.emit()
            assert service.all_signals()[0].id == "s4"
            assert service.stats().total == 4

    def test_subscription_failure_still_loads(self, store, event_bus):
        cache = SignalSyncCache(store, FakeChangeNotifier(fail=True), event_bus, config={'reload_debounce': 0}, reload_executor=run_inline)
        service = SignalFeedService(cache, SettingsStore(MemoryStorage()), event_bus)

        with service:
            assert len(service.all_signals()) == 3
            assert service.get_status()['live_updates'] is False

    def test_restart_after_stop_resubscribes_and_reloads(self, service, store, notifier):
        service.start()
        service.stop()
        store.signals.append(make_signal("s4", pair="AUD/USD", minutes_ago=-1))

        service.start()

        assert notifier.active == 1
        assert service.all_signals()[0].id == "s4"
        assert service.refresh() is True

        notifier.emit()
        assert store.fetch_calls == 4
        service.stop()
        assert notifier.active == 0


class TestFilters:

    def test_search_scenario(self, service):
        with service:
            service.set_filter_criteria(search_term="eur")
            assert [s.pair for s in service.visible_signals()] == ["EUR/USD"]

    def test_partial_change_keeps_other_fields(self, service):
        service.set_filter_criteria(action_filter=ActionFilter.BUY)
        criteria = service.set_filter_criteria(session_filter=SessionFilter.NEW_YORK)
        assert criteria == FilterCriteria(
            action_filter=ActionFilter.BUY,
            session_filter=SessionFilter.NEW_YORK
        )

    def test_full_replacement(self, service):
        service.set_filter_criteria(search_term="usd")
        service.set_filter_criteria(FilterCriteria(action_filter=ActionFilter.SELL))
        assert service.criteria.search_term == ""

    def test_stats_ignore_filters(self, service):
        with service:
            service.set_filter_criteria(action_filter=ActionFilter.SELL)
            assert len(service.visible_signals()) == 1
            assert service.stats().total == 3


class TestClear:

    def test_clear_resets_stats(self, service, store):
        with service:
            assert service.stats().total == 3
            service.clear_all_signals()

            assert service.all_signals() == []
            assert service.stats() == SignalStats(total=0, buy_count=0, sell_count=0, avg_confidence=0)
            assert store.signals == []

    def test_failed_clear_keeps_everything(self, service, store):
        with service:
            before = service.all_signals()
            store.fail_delete = True

            with pytest.raises(DeleteError):
                service.clear_all_signals()

            assert service.all_signals() == before
            assert service.stats().total == 3

    def test_refresh_after_clear_stays_empty(self, service):
        with service:
            service.clear_all_signals()
            assert service.refresh() is True
            assert service.all_signals() == []


class TestSettings:

    def test_save_publishes_event(self, service, event_bus):
        saved_events = []
        event_bus.subscribe("SETTINGS_SAVED", saved_events.append)

        saved = service.save_settings(TradingSettings(confidence_threshold=75))

        assert service.settings == saved
        assert saved_events == [saved]

    def test_partial_mapping_keeps_current_values(self, service):
        service.save_settings(TradingSettings(telegram_enabled=False, confidence_threshold=90))
        saved = service.save_settings({'signal_frequency_minutes': 10})

        assert saved.telegram_enabled is False
        assert saved.confidence_threshold == 90
        assert saved.signal_frequency_minutes == 10

    def test_invalid_save_keeps_current(self, service, memory_storage):
        current = service.settings
        with pytest.raises(ValidationError):
            service.save_settings({'confidence_threshold': 100})
        assert service.settings == current
        assert memory_storage.set_calls == 0


class TestStatus:

    def test_status_summary(self, service):
        with service:
            service.set_filter_criteria(search_term="jpy")
            status = service.get_status()

        assert status['total'] == 3
        assert status['visible'] == 1
        assert status['is_loading'] is False
        assert status['last_error'] is None
        assert status['storage_kb'] > 0
        assert status['last_updated'] is not None

    def test_status_reports_fetch_error(self, store, notifier):
        store.fail_fetch = True
        cache = SignalSyncCache(store, notifier, config={'reload_debounce': 0}, reload_executor=run_inline)
        service = SignalFeedService(cache, SettingsStore(MemoryStorage()))

        with service:
            status = service.get_status()

        assert status['total'] == 0
        assert status['last_error'] == "banco indisponível"


def test_new_signal_in_scenario_order():
    store = FakeSignalStore([
        make_signal("1", pair="EUR/USD", action=TradeAction.BUY, confidence=90,
                    session=TradingSession.LONDON, minutes_ago=1),
        make_signal("2", pair="GBP/USD", action=TradeAction.SELL, confidence=80,
                    session=TradingSession.ASIAN, minutes_ago=0),
    ])
    cache = SignalSyncCache(store, config={'reload_debounce': 0}, reload_executor=run_inline)
    service = SignalFeedService(cache, SettingsStore(MemoryStorage()))

    with service:
        assert [s.id for s in service.all_signals()] == ["2", "1"]
        assert service.stats().avg_confidence == 85


class TestChannelStatus:

    def test_dropped_channel_is_not_reported_live(self, service, notifier):
        with service:
            assert service.get_status()['live_updates'] is True

            notifier.connected = False
            status = service.get_status()

            assert status['subscribed'] is True
            assert status['live_updates'] is False

            notifier.connected = True
            assert service.get_status()['live_updates'] is True

    def test_manual_mode_without_subscription(self, service):
        status = service.get_status()
        assert status['subscribed'] is False
        assert status['live_updates'] is False


def test_concurrent_saves_keep_settings_consistent(service, memory_storage):
    thresholds = list(range(70, 90))

    def save(threshold):
        service.save_settings(TradingSettings(confidence_threshold=threshold))

    threads = [threading.Thread(target=save, args=(t,)) for t in thresholds]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert service.settings.confidence_threshold in thresholds
    assert SettingsStore(memory_storage).load().confidence_threshold in thresholds
