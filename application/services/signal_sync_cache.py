# application/services/signal_sync_cache.py
import threading
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

from application.interfaces.change_notifier import IChangeNotifier
from application.interfaces.system_event_bus import ISystemEventBus
from domain.entities.signal import Signal, sort_newest_first
from domain.exceptions import FetchError, SubscriptionError
from domain.repositories.signal_store import ISignalStore

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[Tuple[Signal, ...]], None]
ReloadExecutor = Callable[[Callable[[], None]], None]


def run_in_daemon_thread(task: Callable[[], None]) -> None:
    """Executa o reload fora da thread do notificador."""
    threading.Thread(target=task, daemon=True, name="SignalReload").start()


class SignalSyncCache:
    """
    Espelho em memória do conjunto remoto de sinais.
    Responsável por:
    - Recarregar o conjunto completo a cada evento do notificador
    - Descartar respostas antigas que chegam depois de uma mais nova
    - Gerenciar o ciclo de vida da inscrição (adquirir/liberar)

    Os consumidores recebem snapshots imutáveis (tuplas); o estado só é
    trocado sob lock e nenhuma I/O é feita com o lock adquirido.
    """

    def __init__(
        self,
        store: ISignalStore,
        notifier: Optional[IChangeNotifier] = None,
        event_bus: Optional[ISystemEventBus] = None,
        config: Optional[Dict] = None,
        reload_executor: Optional[ReloadExecutor] = None
    ):
        self.store = store
        self.notifier = notifier
        self.event_bus = event_bus
        # Reloads disparados por eventos nunca rodam na thread do notificador
        self.reload_executor = reload_executor or run_in_daemon_thread

        if config is None:
            from config import settings
            config = settings.SYNC_CONFIG
        self.reload_debounce = float(config.get('reload_debounce', 0.3))

        self.lock = threading.RLock()
        self._signals: Tuple[Signal, ...] = ()

        # Tokens de requisição: só aplica resultado mais novo que o último aplicado
        self._request_seq = 0
        self._applied_seq = 0
        self._inflight = 0

        self._subscription: Optional[Hashable] = None
        self._reload_timer: Optional[threading.Timer] = None
        self._listener: Optional[SnapshotListener] = None
        self.closed = False

        self.last_error: Optional[str] = None
        self.last_updated: Optional[datetime] = None

        self.stats = {
            'loads_requested': 0,
            'loads_applied': 0,
            'loads_discarded': 0,
            'loads_failed': 0,
            'events_received': 0,
            'reloads_coalesced': 0
        }

        logger.info(f"SignalSyncCache inicializado (debounce={self.reload_debounce}s)")

    # ---------------------------------------------------------------- leitura

    def snapshot(self) -> Tuple[Signal, ...]:
        """Retorna o snapshot atual (imutável)."""
        with self.lock:
            return self._signals

    @property
    def is_loading(self) -> bool:
        with self.lock:
            return self._inflight > 0

    @property
    def is_subscribed(self) -> bool:
        """Há um handle de inscrição ativo (conectado ou reconectando)."""
        with self.lock:
            return self._subscription is not None

    @property
    def live_updates(self) -> bool:
        """Inscrito e com o canal efetivamente conectado."""
        return self.is_subscribed and self.notifier is not None and self.notifier.is_connected

    # ------------------------------------------------------------------ carga

    def load(self) -> bool:
        """
        Busca o conjunto completo e substitui o snapshot local.

        Returns:
            bool: True se o resultado foi aplicado; False em falha, descarte
            (resposta antiga) ou cache fechado
        """
        with self.lock:
            if self.closed:
                return False
            self._request_seq += 1
            token = self._request_seq
            self._inflight += 1
            self.stats['loads_requested'] += 1

        try:
            ordered = tuple(sort_newest_first(self.store.fetch_all()))
        except FetchError as e:
            return self._load_failed(token, e)
        except Exception:
            with self.lock:
                self._inflight -= 1
                self.stats['loads_failed'] += 1
            logger.error(f"Erro inesperado no load #{token}", exc_info=True)
            raise

        with self.lock:
            self._inflight -= 1
            if self.closed:
                logger.debug(f"Load #{token} abandonado: cache fechado")
                return False
            if token <= self._applied_seq:
                self.stats['loads_discarded'] += 1
                logger.debug(f"Load #{token} descartado: já aplicado #{self._applied_seq}")
                return False

            self._applied_seq = token
            self._signals = ordered
            self.last_error = None
            self.last_updated = datetime.now()
            self.stats['loads_applied'] += 1
            listener = self._listener

        logger.info(f"Snapshot atualizado (load #{token}): {len(ordered)} sinais")
        self._notify(listener, ordered)
        return True

    def _load_failed(self, token: int, error: FetchError) -> bool:
        with self.lock:
            self._inflight -= 1
            if self.closed:
                return False
            if token <= self._applied_seq:
                # Falha de uma carga já superada: o snapshot atual é mais novo
                self.stats['loads_discarded'] += 1
                logger.debug(f"Falha do load #{token} ignorada: já aplicado #{self._applied_seq}")
                return False
            self.stats['loads_failed'] += 1
            self.last_error = str(error)

        logger.warning(f"Falha ao carregar sinais (mantendo snapshot anterior): {error}")
        self._publish("SIGNALS_FETCH_FAILED", {'error': str(error), 'token': token})
        return False

    # ------------------------------------------------------------- inscrição

    def subscribe(self, on_change: Optional[SnapshotListener] = None) -> bool:
        """
        Inscreve o cache no notificador; cada evento dispara um reload.

        Returns:
            bool: True se a inscrição está ativa
        """
        with self.lock:
            if on_change is not None:
                self._listener = on_change
            if self.closed:
                return False
            if self._subscription is not None:
                return True

        if self.notifier is None:
            logger.warning("Sem notificador configurado: apenas atualização manual")
            return False

        try:
            handle = self.notifier.subscribe(self._on_change_event)
        except SubscriptionError as e:
            logger.warning(f"Inscrição em tempo real indisponível, apenas atualização manual: {e}")
            self._publish("SUBSCRIPTION_FAILED", {'error': str(e)})
            return False

        with self.lock:
            if self._subscription is None and not self.closed:
                self._subscription = handle
                logger.info("Cache inscrito para mudanças em tempo real")
                return True

        # Corrida com outro subscribe ou close: libera o handle excedente
        self.notifier.unsubscribe(handle)
        return self.is_subscribed

    def unsubscribe(self) -> None:
        """Libera a inscrição e cancela reloads agendados. Idempotente."""
        with self.lock:
            handle = self._subscription
            self._subscription = None
            timer = self._reload_timer
            self._reload_timer = None

        if timer is not None:
            timer.cancel()

        if handle is not None and self.notifier is not None:
            self.notifier.unsubscribe(handle)
            logger.info("Inscrição em tempo real liberada")

    def suspend(self) -> None:
        """
        Libera a inscrição e descarta as cargas em andamento.
        O cache continua utilizável: subscribe()/load() voltam a funcionar.
        """
        with self.lock:
            self._applied_seq = self._request_seq
        self.unsubscribe()

    def close(self) -> None:
        """Encerramento definitivo: libera a inscrição e recusa novas cargas."""
        with self.lock:
            self.closed = True
            self._listener = None
        self.suspend()

    def __enter__(self) -> "SignalSyncCache":
        self.subscribe()
        self.load()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def _on_change_event(self) -> None:
        """Evento do notificador: sem payload, apenas gatilho de reload."""
        with self.lock:
            self.stats['events_received'] += 1
            if self.closed:
                return
            if self.reload_debounce <= 0:
                run_now = True
            else:
                run_now = False
                if self._reload_timer is not None:
                    # Já existe reload agendado: absorve o evento
                    self.stats['reloads_coalesced'] += 1
                    return
                self._reload_timer = threading.Timer(self.reload_debounce, self._run_scheduled_reload)
                self._reload_timer.daemon = True
                self._reload_timer.start()

        if run_now:
            self.reload_executor(self._reload_from_event)

    def _run_scheduled_reload(self) -> None:
        with self.lock:
            self._reload_timer = None
            if self.closed:
                return
        self._reload_from_event()

    def _reload_from_event(self) -> None:
        try:
            self.load()
        except Exception as e:
            logger.error(f"Reload disparado por evento falhou: {e}")

    # ---------------------------------------------------------------- limpeza

    def clear_all(self) -> None:
        """
        Remove todos os sinais do banco e zera o snapshot local.

        O snapshot só é limpo após a confirmação do banco; em caso de
        DeleteError o estado local permanece inalterado e o erro propaga.
        """
        logger.warning("Solicitando exclusão de TODOS os sinais do banco")
        self.store.delete_all()

        with self.lock:
            removed = len(self._signals)
            # Invalida cargas iniciadas antes da exclusão
            self._applied_seq = self._request_seq
            self._signals = ()
            self.last_error = None
            self.last_updated = datetime.now()
            listener = self._listener

        logger.info(f"Banco limpo: {removed} sinais removidos do snapshot local")
        self._publish("SIGNALS_CLEARED", {'removed': removed})
        self._notify(listener, ())

    # -------------------------------------------------------------- auxiliares

    def _notify(self, listener: Optional[SnapshotListener], snapshot: Tuple[Signal, ...]) -> None:
        if listener is not None:
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Erro no listener do snapshot: {e}", exc_info=True)
        self._publish("SIGNALS_UPDATED", {'signals': snapshot})

    def _publish(self, event_type: str, data: Any) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(event_type, data)

    def get_stats(self) -> Dict[str, Any]:
        """Retorna estatísticas de uso do cache."""
        live = self.live_updates
        with self.lock:
            return {
                **self.stats,
                'signals_cached': len(self._signals),
                'live_updates': live,
                'last_error': self.last_error,
                'last_updated': self.last_updated.isoformat() if self.last_updated else None
            }

    def __len__(self) -> int:
        with self.lock:
            return len(self._signals)
