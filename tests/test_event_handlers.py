"""
Testes da orquestração entre o barramento de eventos e a interface.
"""
from unittest.mock import MagicMock

import pytest

from application.services.settings_store import SettingsStore
from application.services.signal_feed_service import SignalFeedService
from application.services.signal_sync_cache import SignalSyncCache
from orchestration.event_handlers import OrchestrationHandlers

from conftest import FakeChangeNotifier, run_inline


@pytest.fixture
def display():
    return MagicMock()


@pytest.fixture
def wiring(store, event_bus, memory_storage, display):
    def build(notifier=None):
        cache = SignalSyncCache(store, notifier, event_bus, config={'reload_debounce': 0}, reload_executor=run_inline)
        service = SignalFeedService(cache, SettingsStore(memory_storage), event_bus)
        handlers = OrchestrationHandlers(event_bus, service, display)
        handlers.subscribe_to_events()
        return service, handlers
    return build


def test_update_refreshes_display(wiring, display):
    service, handlers = wiring()
    service.refresh()

    display.refresh.assert_called_once()
    assert handlers.get_statistics()['updates'] == 1


def test_fetch_failure_shows_error(wiring, store, display):
    service, handlers = wiring()
    store.fail_fetch = True

    service.refresh()

    display.show_error.assert_called_once()
    assert "banco indisponível" in display.show_error.call_args[0][0]
    assert handlers.get_statistics()['fetch_failures'] == 1


def test_clear_counts_and_refreshes(wiring, display):
    service, handlers = wiring()
    service.refresh()
    service.clear_all_signals()

    assert handlers.get_statistics()['clears'] == 1
    assert display.refresh.call_count == 2


def test_subscription_failure_warns_user(wiring, display):
    service, handlers = wiring(FakeChangeNotifier(fail=True))
    service.start()
    service.stop()

    display.show_error.assert_called_once()


def test_unsubscribe_stops_forwarding(wiring, display):
    service, handlers = wiring()
    handlers.unsubscribe_from_events()
    handlers.unsubscribe_from_events()

    service.refresh()

    display.refresh.assert_not_called()


def test_dropped_channel_warns_and_refreshes(wiring, event_bus, display):
    service, handlers = wiring()

    event_bus.publish("CHANNEL_DISCONNECTED", {'error': "conexão encerrada"})

    display.show_error.assert_called_once()
    display.refresh.assert_called_once()
    assert handlers.get_statistics()['disconnections'] == 1


def test_reconnected_channel_refreshes(wiring, event_bus, display):
    service, handlers = wiring()

    event_bus.publish("CHANNEL_CONNECTED", {'rejoined': True})

    display.refresh.assert_called_once()
    display.show_error.assert_not_called()
