"""
Configuração do pytest e dublês compartilhados pelos testes do feed de sinais.
"""

import sys
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

# Raiz do projeto no path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from application.interfaces.change_notifier import IChangeNotifier
from application.interfaces.key_value_storage import IKeyValueStorage
from domain.entities.signal import Signal, TradeAction, TradingSession
from domain.exceptions import DeleteError, FetchError, SubscriptionError
from domain.repositories.signal_store import ISignalStore
from infrastructure.event_bus.local_event_bus import LocalEventBus


BASE_TIME = datetime(2025, 1, 15, 12, 0, 0)


def run_inline(task: Callable[[], None]) -> None:
    """Executor de reload síncrono: o evento só retorna após a carga."""
    task()


def make_signal(
    signal_id: str,
    pair: str = "EUR/USD",
    action: TradeAction = TradeAction.BUY,
    confidence: int = 90,
    session: TradingSession = TradingSession.LONDON,
    minutes_ago: int = 0,
    **details
) -> Signal:
    return Signal(
        id=signal_id,
        pair=pair,
        action=action,
        confidence=confidence,
        session=session,
        created_at=BASE_TIME - timedelta(minutes=minutes_ago),
        details=details
    )


class FakeSignalStore(ISignalStore):
    """Banco em memória; pode falhar sob demanda."""

    def __init__(self, signals: Optional[List[Signal]] = None):
        self.signals: List[Signal] = list(signals or [])
        self.fail_fetch = False
        self.fail_delete = False
        self.fetch_calls = 0
        self.delete_calls = 0

    def fetch_all(self) -> List[Signal]:
        self.fetch_calls += 1
        if self.fail_fetch:
            raise FetchError("banco indisponível")
        return list(self.signals)

    def delete_all(self) -> None:
        self.delete_calls += 1
        if self.fail_delete:
            raise DeleteError("exclusão recusada")
        self.signals = []


class ControlledSignalStore(ISignalStore):
    """
    Banco cujas respostas são liberadas manualmente, uma por chamada,
    para simular respostas fora de ordem.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.calls: List[Dict] = []
        self.call_started = threading.Condition(self.lock)

    def fetch_all(self) -> List[Signal]:
        entry = {'release': threading.Event(), 'result': None, 'error': None}
        with self.lock:
            self.calls.append(entry)
            self.call_started.notify_all()
        entry['release'].wait(timeout=5)
        if entry['error'] is not None:
            raise entry['error']
        return list(entry['result'])

    def wait_for_calls(self, count: int, timeout: float = 5) -> None:
        with self.lock:
            self.call_started.wait_for(lambda: len(self.calls) >= count, timeout=timeout)
        assert len(self.calls) >= count

    def resolve(self, index: int, signals: List[Signal]) -> None:
        entry = self.calls[index]
        entry['result'] = signals
        entry['release'].set()

    def fail(self, index: int, error: Exception) -> None:
        entry = self.calls[index]
        entry['error'] = error
        entry['release'].set()

    def delete_all(self) -> None:
        pass


class FakeChangeNotifier(IChangeNotifier):
    """Notificador manual: os testes disparam eventos com emit()."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.handlers: Dict[int, Callable[[], None]] = {}
        self.next_handle = 1
        self.unsubscribe_calls = 0
        self.connected = True

    def subscribe(self, handler):
        if self.fail:
            raise SubscriptionError("canal indisponível")
        handle = self.next_handle
        self.next_handle += 1
        self.handlers[handle] = handler
        return handle

    def unsubscribe(self, handle) -> None:
        self.unsubscribe_calls += 1
        self.handlers.pop(handle, None)

    def emit(self) -> None:
        for handler in list(self.handlers.values()):
            handler()

    @property
    def active(self) -> int:
        return len(self.handlers)

    @property
    def is_connected(self) -> bool:
        return self.connected and bool(self.handlers)


class MemoryStorage(IKeyValueStorage):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})
        self.set_calls = 0

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.set_calls += 1
        self.data[key] = value


@pytest.fixture
def sample_signals() -> List[Signal]:
    """Três sinais em ordem cronológica decrescente."""
    return [
        make_signal("s1", pair="EUR/USD", action=TradeAction.BUY, confidence=90,
                    session=TradingSession.LONDON, minutes_ago=0),
        make_signal("s2", pair="GBP/USD", action=TradeAction.SELL, confidence=80,
                    session=TradingSession.ASIAN, minutes_ago=5),
        make_signal("s3", pair="USD/JPY", action=TradeAction.BUY, confidence=75,
                    session=TradingSession.NEW_YORK, minutes_ago=10),
    ]


@pytest.fixture
def store(sample_signals) -> FakeSignalStore:
    return FakeSignalStore(sample_signals)


@pytest.fixture
def notifier() -> FakeChangeNotifier:
    return FakeChangeNotifier()


@pytest.fixture
def event_bus() -> LocalEventBus:
    return LocalEventBus()


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()
