# infrastructure/event_bus/local_event_bus.py
import logging
import threading
from collections import defaultdict
from typing import Callable, Any, List
from application.interfaces.system_event_bus import ISystemEventBus

logger = logging.getLogger(__name__)

class LocalEventBus(ISystemEventBus):
    """Barramento de eventos em memória, seguro para publicação entre threads."""

    def __init__(self):
        self.handlers: defaultdict[str, List[Callable]] = defaultdict(list)
        self.lock = threading.Lock()

    def subscribe(self, event_type: str, handler: Callable):
        """Inscreve um handler para um tipo de evento."""
        with self.lock:
            self.handlers[event_type].append(handler)
        logger.debug(f"Handler {getattr(handler, '__name__', handler)} inscrito para '{event_type}'.")

    def unsubscribe(self, event_type: str, handler: Callable):
        """Remove o handler; ignora handlers desconhecidos."""
        with self.lock:
            if handler in self.handlers.get(event_type, []):
                self.handlers[event_type].remove(handler)

    def publish(self, event_type: str, data: Any):
        """Publica um evento, acionando todos os handlers inscritos."""
        with self.lock:
            handlers = list(self.handlers.get(event_type, []))
        if not handlers:
            return

        logger.debug(f"Publicando evento '{event_type}' para {len(handlers)} handler(s)")
        for handler in handlers:
            # Um handler com erro não impede os demais
            try:
                handler(data)
            except Exception as e:
                logger.error(
                    f"Erro ao executar o handler {getattr(handler, '__name__', handler)} "
                    f"para o evento '{event_type}': {e}",
                    exc_info=True
                )
