# application/services/signal_feed_service.py
import threading
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from application.interfaces.system_event_bus import ISystemEventBus
from application.services.settings_store import SettingsStore
from application.services.signal_filter import filter_signals
from application.services.signal_statistics import compute_stats, estimate_storage_kb
from application.services.signal_sync_cache import SignalSyncCache
from domain.entities.filter_criteria import FilterCriteria
from domain.entities.signal import Signal
from domain.entities.signal_stats import SignalStats
from domain.entities.trading_settings import TradingSettings

logger = logging.getLogger(__name__)


class SignalFeedService:
    """
    Ponto de entrada da camada de apresentação.
    Junta o cache sincronizado, os filtros, as estatísticas e as configurações.
    As visões são sempre recalculadas a partir de (snapshot, critérios).
    """

    def __init__(
        self,
        cache: SignalSyncCache,
        settings_store: SettingsStore,
        event_bus: Optional[ISystemEventBus] = None
    ):
        self.cache = cache
        self.settings_store = settings_store
        self.event_bus = event_bus

        self.lock = threading.Lock()
        self._criteria = FilterCriteria()
        self._settings = TradingSettings()
        self.running = False

    # ------------------------------------------------------------- ciclo de vida

    def start(self) -> "SignalFeedService":
        """Carrega configurações, inscreve o cache e faz a carga inicial."""
        loaded = self.settings_store.load()
        with self.lock:
            self._settings = loaded
        logger.info(f"Configurações carregadas: {loaded}")

        self.running = True
        self.cache.subscribe()
        self.cache.load()
        return self

    def stop(self) -> None:
        """Libera a inscrição e descarta cargas em andamento. Sempre seguro de chamar."""
        self.running = False
        self.cache.suspend()
        logger.info("Feed de sinais encerrado")

    def __enter__(self) -> "SignalFeedService":
        try:
            return self.start()
        except Exception:
            self.stop()
            raise

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.stop()

    # ------------------------------------------------------------------ filtros

    @property
    def criteria(self) -> FilterCriteria:
        with self.lock:
            return self._criteria

    def set_filter_criteria(self, criteria: Optional[FilterCriteria] = None, **changes: Any) -> FilterCriteria:
        """
        Substitui os critérios de filtro.

        Args:
            criteria: Novos critérios completos; se omitido, parte dos atuais
            **changes: Campos a alterar (search_term, action_filter, session_filter)
        """
        with self.lock:
            base = criteria if criteria is not None else self._criteria
            if changes:
                values = {
                    'search_term': base.search_term,
                    'action_filter': base.action_filter,
                    'session_filter': base.session_filter,
                    **changes
                }
                base = FilterCriteria(**values)
            self._criteria = base
        logger.debug(f"Critérios de filtro: {base}")
        return base

    # ------------------------------------------------------------------ visões

    def all_signals(self) -> List[Signal]:
        return list(self.cache.snapshot())

    def visible_signals(self) -> List[Signal]:
        """Subconjunto visível para os critérios atuais."""
        return filter_signals(self.cache.snapshot(), self.criteria)

    def stats(self) -> SignalStats:
        """Estatísticas sobre o conjunto completo (independente dos filtros)."""
        return compute_stats(self.cache.snapshot())

    def refresh(self) -> bool:
        """Atualização manual."""
        return self.cache.load()

    def clear_all_signals(self) -> None:
        """Remove todos os sinais. DeleteError propaga para quem chamou."""
        self.cache.clear_all()

    # ------------------------------------------------------------ configurações

    @property
    def settings(self) -> TradingSettings:
        with self.lock:
            return self._settings

    def save_settings(self, settings: Union[TradingSettings, Mapping[str, Any]]) -> TradingSettings:
        """
        Valida e persiste; retorna o valor gravado. ValidationError propaga.
        Um mapeamento parcial altera apenas os campos informados.
        """
        if not isinstance(settings, TradingSettings):
            settings = {**self.settings.model_dump(), **settings}
        saved = self.settings_store.save(settings)
        with self.lock:
            self._settings = saved
        if self.event_bus is not None:
            self.event_bus.publish("SETTINGS_SAVED", saved)
        return saved

    # ------------------------------------------------------------------ status

    def get_status(self) -> Dict[str, Any]:
        """Resumo para indicadores não bloqueantes da interface."""
        snapshot = self.cache.snapshot()
        visible = filter_signals(snapshot, self.criteria)
        last_updated = self.cache.last_updated
        return {
            'is_loading': self.cache.is_loading,
            'last_error': self.cache.last_error,
            'subscribed': self.cache.is_subscribed,
            'live_updates': self.cache.live_updates,
            'total': len(snapshot),
            'visible': len(visible),
            'storage_kb': estimate_storage_kb(snapshot),
            'last_updated': last_updated.isoformat() if last_updated else None
        }
