# infrastructure/realtime/supabase_change_notifier.py
"""
Notificador de mudanças via Supabase Realtime (protocolo de canais Phoenix).
Roda um event loop asyncio em thread própria, com reconexão e backoff.
"""

import asyncio
import itertools
import json
import logging
import threading
from typing import Any, Dict, Hashable, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit

import websockets
from websockets.exceptions import WebSocketException

from application.interfaces.change_notifier import ChangeHandler, IChangeNotifier
from application.interfaces.system_event_bus import ISystemEventBus
from domain.exceptions import SubscriptionError

logger = logging.getLogger(__name__)

# Todos os tipos de mudança viram o mesmo gatilho de reload
CHANGE_EVENTS = frozenset({'postgres_changes', 'INSERT', 'UPDATE', 'DELETE'})
CHANNEL_CLOSED_EVENTS = frozenset({'phx_error', 'phx_close'})


def build_socket_url(url: str, api_key: str) -> str:
    """Converte a URL do projeto no endpoint websocket do Realtime."""
    parts = urlsplit(url.rstrip('/'))
    scheme = 'wss' if parts.scheme == 'https' else 'ws'
    query = urlencode({'apikey': api_key, 'vsn': '1.0.0'})
    return urlunsplit((scheme, parts.netloc, f"{parts.path}/realtime/v1/websocket", query, ''))


def is_change_event(message: Dict[str, Any]) -> bool:
    return message.get('event') in CHANGE_EVENTS


class SupabaseChangeNotifier(IChangeNotifier):
    """Implementação de IChangeNotifier sobre o Supabase Realtime."""

    def __init__(
        self,
        url: str,
        api_key: str,
        table: str = 'trading_signals',
        schema: str = 'public',
        channel: str = 'trading_signals_history',
        heartbeat_interval: float = 30.0,
        open_timeout: float = 10.0,
        reconnect_initial_delay: float = 1.0,
        reconnect_max_delay: float = 30.0,
        event_bus: Optional[ISystemEventBus] = None
    ):
        self.url = url or ''
        self.api_key = api_key or ''
        self.table = table
        self.schema = schema
        self.topic = f"realtime:{channel}"
        self.heartbeat_interval = heartbeat_interval
        self.open_timeout = open_timeout
        self.reconnect_initial_delay = reconnect_initial_delay
        self.reconnect_max_delay = reconnect_max_delay
        self.event_bus = event_bus

        self.handlers: Dict[int, ChangeHandler] = {}
        self.lock = threading.Lock()
        self._handle_ids = itertools.count(1)
        self._refs = itertools.count(1)

        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._ws = None
        self._stopping = threading.Event()

        self._connected = False
        self._joined_once = False
        self._session_joined = False

    @classmethod
    def from_config(
        cls,
        supabase_config: Dict,
        realtime_config: Dict,
        event_bus: Optional[ISystemEventBus] = None
    ) -> "SupabaseChangeNotifier":
        return cls(
            url=supabase_config.get('url', ''),
            api_key=supabase_config.get('anon_key', ''),
            table=supabase_config.get('table', 'trading_signals'),
            schema=realtime_config.get('schema', 'public'),
            channel=realtime_config.get('channel', 'trading_signals_history'),
            heartbeat_interval=float(realtime_config.get('heartbeat_interval', 30)),
            open_timeout=float(realtime_config.get('open_timeout', 10)),
            reconnect_initial_delay=float(realtime_config.get('reconnect_initial_delay', 1.0)),
            reconnect_max_delay=float(realtime_config.get('reconnect_max_delay', 30.0)),
            event_bus=event_bus
        )

    @property
    def is_connected(self) -> bool:
        return self._connected

    # ------------------------------------------------------------- inscrição

    def subscribe(self, handler: ChangeHandler) -> Hashable:
        if not self.url or not self.api_key:
            raise SubscriptionError("Supabase Realtime não configurado (url/anon_key ausentes)")

        with self.lock:
            handle = next(self._handle_ids)
            self.handlers[handle] = handler
            needs_start = self._thread is None or not self._thread.is_alive()
            if needs_start:
                self._stopping.clear()
                self._thread = threading.Thread(
                    target=self._run,
                    daemon=True,
                    name="SupabaseRealtime"
                )
                self._thread.start()
            else:
                self._stopping.clear()

        logger.info(f"Handler #{handle} inscrito no canal {self.topic}")
        return handle

    def unsubscribe(self, handle: Hashable) -> None:
        with self.lock:
            if self.handlers.pop(handle, None) is None:
                return
            remaining = len(self.handlers)

        logger.info(f"Handler #{handle} removido do canal {self.topic}")
        if remaining == 0:
            self._stop()

    def _stop(self) -> None:
        """Encerra o canal e aguarda a thread do websocket."""
        self._stopping.set()

        loop, ws = self._loop, self._ws
        if loop is not None and ws is not None:
            try:
                asyncio.run_coroutine_threadsafe(ws.close(), loop)
            except RuntimeError:
                # Loop já encerrado
                pass

        thread = self._thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=self.open_timeout + 2)
        self._connected = False
        logger.info(f"Canal {self.topic} encerrado")

    # ------------------------------------------------------------ loop asyncio

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        try:
            loop.run_until_complete(self._run_forever())
        finally:
            self._loop = None
            loop.close()

    async def _run_forever(self) -> None:
        delay = self.reconnect_initial_delay
        socket_url = build_socket_url(self.url, self.api_key)

        while not self._stopping.is_set():
            self._session_joined = False
            try:
                await self._session(socket_url)
            except (OSError, asyncio.TimeoutError, ValueError,
                    WebSocketException, SubscriptionError) as e:
                if self._stopping.is_set():
                    break
                self._mark_disconnected(str(e))
                logger.warning(f"Canal realtime indisponível: {e}. Nova tentativa em {delay:.0f}s")
            finally:
                self._connected = False

            if self._stopping.is_set():
                break

            if self._session_joined:
                delay = self.reconnect_initial_delay
            await self._interruptible_sleep(delay)
            delay = min(delay * 2, self.reconnect_max_delay)

    async def _interruptible_sleep(self, seconds: float) -> None:
        remaining = seconds
        while remaining > 0 and not self._stopping.is_set():
            step = min(0.25, remaining)
            await asyncio.sleep(step)
            remaining -= step

    async def _session(self, socket_url: str) -> None:
        async with websockets.connect(socket_url, open_timeout=self.open_timeout) as ws:
            self._ws = ws
            try:
                if self._stopping.is_set():
                    return

                join_ref = str(next(self._refs))
                await ws.send(json.dumps(self.build_join_message(join_ref)))

                loop = asyncio.get_running_loop()
                next_heartbeat = loop.time() + self.heartbeat_interval

                while not self._stopping.is_set():
                    timeout = max(0.0, next_heartbeat - loop.time())
                    try:
                        raw = await asyncio.wait_for(ws.recv(), timeout=timeout)
                    except asyncio.TimeoutError:
                        await ws.send(json.dumps(self.build_heartbeat_message(str(next(self._refs)))))
                        next_heartbeat = loop.time() + self.heartbeat_interval
                        continue

                    self.handle_message(json.loads(raw), join_ref)
            finally:
                self._ws = None

    # ------------------------------------------------------------- protocolo

    def build_join_message(self, ref: str) -> Dict[str, Any]:
        return {
            'topic': self.topic,
            'event': 'phx_join',
            'payload': {
                'config': {
                    'broadcast': {'ack': False, 'self': False},
                    'presence': {'key': ''},
                    'postgres_changes': [
                        {'event': '*', 'schema': self.schema, 'table': self.table}
                    ],
                    'private': False
                },
                'access_token': self.api_key
            },
            'ref': ref,
            'join_ref': ref
        }

    @staticmethod
    def build_heartbeat_message(ref: str) -> Dict[str, Any]:
        return {'topic': 'phoenix', 'event': 'heartbeat', 'payload': {}, 'ref': ref}

    def handle_message(self, message: Dict[str, Any], join_ref: str) -> None:
        """
        Processa uma mensagem do canal.

        Raises:
            SubscriptionError: join recusado ou canal fechado pelo servidor
        """
        if message.get('topic') != self.topic:
            return

        event = message.get('event')
        payload = message.get('payload') or {}

        if event == 'phx_reply' and message.get('ref') == join_ref:
            if payload.get('status') != 'ok':
                raise SubscriptionError(f"Join recusado: {payload.get('response')}")
            rejoined = self._joined_once
            self._connected = True
            self._joined_once = True
            self._session_joined = True
            logger.info(f"Canal {self.topic} conectado")
            self._publish("CHANNEL_CONNECTED", {'rejoined': rejoined})
            if rejoined:
                # Mudanças podem ter ocorrido enquanto estava offline
                self._dispatch()
            return

        if event in CHANNEL_CLOSED_EVENTS:
            raise SubscriptionError(f"Canal fechado pelo servidor ({event})")

        if event == 'system' and payload.get('status') == 'error':
            raise SubscriptionError(f"Erro do Realtime: {payload.get('message')}")

        if is_change_event(message):
            self._dispatch()

    def _dispatch(self) -> None:
        with self.lock:
            handlers = list(self.handlers.values())
        for handler in handlers:
            try:
                handler()
            except Exception as e:
                logger.error(f"Erro ao executar handler de mudança: {e}", exc_info=True)

    def _mark_disconnected(self, reason: str) -> None:
        """Canal caiu com inscrições ativas: avisa até a próxima reconexão."""
        if not self._connected:
            return
        self._connected = False
        logger.warning(f"Canal {self.topic} desconectado: {reason}")
        self._publish("CHANNEL_DISCONNECTED", {'error': reason})

    def _publish(self, event_type: str, data: Any) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(event_type, data)
