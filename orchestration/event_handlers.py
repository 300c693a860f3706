# orchestration/event_handlers.py
import logging
from typing import Any, Dict

from application.interfaces.system_event_bus import ISystemEventBus
from application.services.signal_feed_service import SignalFeedService
from presentation.display.monitor_app import TextualDashboardDisplay

logger = logging.getLogger(__name__)


class OrchestrationHandlers:
    """Liga os eventos do feed de sinais à camada de apresentação."""

    def __init__(
        self,
        event_bus: ISystemEventBus,
        feed_service: SignalFeedService,
        display: TextualDashboardDisplay
    ):
        self.event_bus = event_bus
        self.feed_service = feed_service
        self.display = display
        self.subscribed = False

        self.stats = {
            'updates': 0,
            'fetch_failures': 0,
            'clears': 0,
            'settings_saved': 0,
            'disconnections': 0
        }

        logger.info("OrchestrationHandlers inicializado")

    def subscribe_to_events(self):
        """Inscreve todos os handlers no barramento de eventos."""
        if self.subscribed:
            return
        self.event_bus.subscribe("SIGNALS_UPDATED", self.handle_signals_updated)
        self.event_bus.subscribe("SIGNALS_FETCH_FAILED", self.handle_fetch_failed)
        self.event_bus.subscribe("SIGNALS_CLEARED", self.handle_signals_cleared)
        self.event_bus.subscribe("SUBSCRIPTION_FAILED", self.handle_subscription_failed)
        self.event_bus.subscribe("SETTINGS_SAVED", self.handle_settings_saved)
        self.event_bus.subscribe("CHANNEL_DISCONNECTED", self.handle_channel_disconnected)
        self.event_bus.subscribe("CHANNEL_CONNECTED", self.handle_channel_connected)
        self.subscribed = True
        logger.info("Handlers de orquestração inscritos nos eventos")

    def unsubscribe_from_events(self):
        if not self.subscribed:
            return
        self.event_bus.unsubscribe("SIGNALS_UPDATED", self.handle_signals_updated)
        self.event_bus.unsubscribe("SIGNALS_FETCH_FAILED", self.handle_fetch_failed)
        self.event_bus.unsubscribe("SIGNALS_CLEARED", self.handle_signals_cleared)
        self.event_bus.unsubscribe("SUBSCRIPTION_FAILED", self.handle_subscription_failed)
        self.event_bus.unsubscribe("SETTINGS_SAVED", self.handle_settings_saved)
        self.event_bus.unsubscribe("CHANNEL_DISCONNECTED", self.handle_channel_disconnected)
        self.event_bus.unsubscribe("CHANNEL_CONNECTED", self.handle_channel_connected)
        self.subscribed = False

    def handle_signals_updated(self, data: Dict[str, Any]):
        """Novo snapshot aplicado: redesenha a tabela e o cabeçalho."""
        self.stats['updates'] += 1
        self.display.refresh()

    def handle_fetch_failed(self, data: Dict[str, Any]):
        self.stats['fetch_failures'] += 1
        error = data.get('error', 'erro desconhecido')
        logger.warning(f"Falha ao atualizar sinais: {error}")
        self.display.show_error(f"Falha ao atualizar sinais: {error}")
        self.display.refresh()

    def handle_signals_cleared(self, data: Dict[str, Any]):
        self.stats['clears'] += 1
        logger.info(f"Sinais removidos: {data.get('removed', 0)}")

    def handle_subscription_failed(self, data: Dict[str, Any]):
        self.display.show_error("Tempo real indisponível: use 'r' para atualizar manualmente")

    def handle_channel_disconnected(self, data: Dict[str, Any]):
        """Canal caiu: a tela passa a indicar modo manual até reconectar."""
        self.stats['disconnections'] += 1
        self.display.show_error("Tempo real desconectado, reconectando. Use 'r' para atualizar manualmente")
        self.display.refresh()

    def handle_channel_connected(self, data: Dict[str, Any]):
        self.display.refresh()

    def handle_settings_saved(self, settings: Any):
        self.stats['settings_saved'] += 1
        logger.info(f"Configurações atualizadas: {settings}")

    def get_statistics(self) -> Dict[str, int]:
        return dict(self.stats)
