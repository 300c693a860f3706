# main.py
import logging
import sys
from pathlib import Path
from rich.console import Console
from rich.logging import RichHandler
from typing import Dict, Any

from config import settings

# --- CONFIGURAÇÃO DE LOGGING ---
log_dir = Path(settings.SYSTEM_CONFIG.get('log_dir', 'logs'))
log_dir.mkdir(parents=True, exist_ok=True)

console = Console()

root_logger = logging.getLogger()
root_logger.setLevel(settings.SYSTEM_CONFIG.get('log_level', 'INFO'))
root_logger.handlers.clear()

file_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
file_handler = logging.FileHandler(log_dir / "system.log", mode='w', encoding='utf-8')
file_handler.setLevel(logging.INFO)
file_handler.setFormatter(file_formatter)

rich_handler = RichHandler(
    console=console,
    level=logging.WARNING,
    show_time=False,
    markup=True,
    rich_tracebacks=True
)

root_logger.addHandler(file_handler)
root_logger.addHandler(rich_handler)

def handle_uncaught_exception(exc_type, exc_value, exc_traceback):
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    logging.critical("EXCEÇÃO NÃO TRATADA", exc_info=(exc_type, exc_value, exc_traceback))

sys.excepthook = handle_uncaught_exception

# Imports do sistema
from infrastructure.data_sources.supabase_signal_store import SupabaseSignalStore
from infrastructure.realtime.supabase_change_notifier import SupabaseChangeNotifier
from infrastructure.event_bus.local_event_bus import LocalEventBus
from infrastructure.storage.json_file_storage import JsonFileStorage
from application.services.settings_store import SettingsStore
from application.services.signal_sync_cache import SignalSyncCache
from application.services.signal_feed_service import SignalFeedService
from presentation.display.monitor_app import TextualDashboardDisplay
from orchestration.event_handlers import OrchestrationHandlers

logger = logging.getLogger(__name__)

class SignalDashboardSystem:
    """Classe principal que monta e gerencia os componentes do dashboard de sinais."""

    def __init__(self):
        self.console = console
        self.components: Dict[str, Any] = {}
        self.operation_phase = "INITIALIZATION"

    def initialize_infrastructure(self) -> bool:
        """Fase 1: Inicializa componentes de infraestrutura."""
        try:
            self.console.print("[yellow]🔧 Inicializando infraestrutura...[/yellow]")

            # Event Bus
            self.event_bus = LocalEventBus()
            self.components['event_bus'] = self.event_bus

            # Banco remoto de sinais
            self.signal_store = SupabaseSignalStore.from_config(settings.SUPABASE_CONFIG)
            self.components['signal_store'] = self.signal_store

            # Notificador em tempo real (opcional)
            if settings.REALTIME_CONFIG.get('enabled', True):
                self.change_notifier = SupabaseChangeNotifier.from_config(
                    settings.SUPABASE_CONFIG, settings.REALTIME_CONFIG, event_bus=self.event_bus
                )
                self.console.print("[green]✓ Canal em tempo real configurado[/green]")
            else:
                self.change_notifier = None
                self.console.print("[yellow]⚠ Tempo real desativado: apenas atualização manual[/yellow]")
            self.components['change_notifier'] = self.change_notifier

            # Armazenamento local das configurações
            storage_file = settings.STORAGE_CONFIG.get('file', 'data/local_storage.json')
            self.local_storage = JsonFileStorage(storage_file)
            self.components['local_storage'] = self.local_storage

            self.console.print("[green]✓ Infraestrutura inicializada[/green]")
            return True

        except Exception as e:
            logger.critical(f"Erro ao inicializar infraestrutura: {e}", exc_info=True)
            self.console.print(f"[red]✗ Erro na infraestrutura: {e}[/red]")
            return False

    def initialize_services(self) -> bool:
        """Fase 2: Inicializa serviços de aplicação."""
        try:
            self.console.print("[yellow]📊 Inicializando serviços...[/yellow]")

            self.signal_cache = SignalSyncCache(
                store=self.signal_store,
                notifier=self.change_notifier,
                event_bus=self.event_bus,
                config=settings.SYNC_CONFIG
            )
            self.components['signal_cache'] = self.signal_cache

            self.settings_store = SettingsStore(
                self.local_storage,
                key=settings.STORAGE_CONFIG.get('settings_key')
            )
            self.components['settings_store'] = self.settings_store

            self.feed_service = SignalFeedService(
                cache=self.signal_cache,
                settings_store=self.settings_store,
                event_bus=self.event_bus
            )
            self.components['feed_service'] = self.feed_service

            self.console.print("[green]✓ Serviços inicializados[/green]")
            return True

        except Exception as e:
            logger.critical(f"Erro ao inicializar serviços: {e}", exc_info=True)
            self.console.print(f"[red]✗ Erro nos serviços: {e}[/red]")
            return False

    def initialize_presentation(self) -> bool:
        """Fase 3: Inicializa camada de apresentação."""
        try:
            self.console.print("[yellow]🖥️  Inicializando interface...[/yellow]")

            self.display = TextualDashboardDisplay(self.feed_service, config=settings.DISPLAY_CONFIG)
            self.components['display'] = self.display

            self.console.print("[green]✓ Interface inicializada[/green]")
            return True

        except Exception as e:
            logger.critical(f"Erro ao inicializar apresentação: {e}", exc_info=True)
            self.console.print(f"[red]✗ Erro na interface: {e}[/red]")
            return False

    def initialize_orchestration(self) -> bool:
        """Fase 4: Inicializa orquestração e handlers."""
        try:
            self.console.print("[yellow]🎭 Inicializando orquestração...[/yellow]")

            self.handlers = OrchestrationHandlers(
                event_bus=self.event_bus,
                feed_service=self.feed_service,
                display=self.display
            )
            self.handlers.subscribe_to_events()
            self.components['handlers'] = self.handlers

            self.console.print("[green]✓ Orquestração inicializada[/green]")
            return True

        except Exception as e:
            logger.critical(f"Erro ao inicializar orquestração: {e}", exc_info=True)
            self.console.print(f"[red]✗ Erro na orquestração: {e}[/red]")
            return False

    def phase_initialization(self) -> bool:
        """FASE 1: Inicialização do sistema."""
        self.console.print("\n[bold cyan]📡 SIGNAL FEED DASHBOARD[/bold cyan]")
        self.console.print("[dim]Sinais ao vivo + Filtros + Estatísticas[/dim]\n")

        if not self.initialize_infrastructure(): return False
        if not self.initialize_services(): return False
        if not self.initialize_presentation(): return False
        if not self.initialize_orchestration(): return False

        self.operation_phase = "NORMAL"
        return True

    def phase_normal_operation(self):
        """FASE 2: Operação normal; a inscrição vive enquanto a interface estiver aberta."""
        self.operation_phase = "NORMAL"
        try:
            with self.feed_service:
                status = self.feed_service.get_status()
                logger.info(
                    f"Feed iniciado - Sinais: {status['total']}, "
                    f"Tempo real: {status['live_updates']}"
                )
                self.display.run()
        finally:
            self.operation_phase = "CLOSING"

    def phase_closing(self):
        """FASE 3: Encerramento ordenado do sistema."""
        self.console.print("\n[yellow]🔒 Encerrando dashboard...[/yellow]")

        if hasattr(self, 'display') and self.display:
            self.display.stop()

        if hasattr(self, 'handlers') and self.handlers:
            self.handlers.unsubscribe_from_events()

        # Estatísticas finais do cache
        if hasattr(self, 'signal_cache'):
            self.signal_cache.close()
            stats = self.signal_cache.get_stats()
            self.console.print("\n[cyan]📊 Estatísticas finais do cache:[/cyan]")
            self.console.print(f"   • Cargas solicitadas: {stats['loads_requested']}")
            self.console.print(f"   • Cargas aplicadas: {stats['loads_applied']}")
            self.console.print(f"   • Respostas descartadas: {stats['loads_discarded']}")
            self.console.print(f"   • Falhas: {stats['loads_failed']}")
            self.console.print(f"   • Eventos recebidos: {stats['events_received']}")
            self.console.print(f"   • Sinais em cache: {stats['signals_cached']}")

        if hasattr(self, 'signal_store') and self.signal_store:
            self.signal_store.close()

        self.console.print("\n[green]✓ Dashboard encerrado com sucesso[/green]")

    def run(self):
        """Executa o sistema completo através das fases operacionais."""
        try:
            if self.phase_initialization():
                self.phase_normal_operation()
            else:
                self.console.print("[bold red]❌ Falha na inicialização do sistema.[/bold red]")

        except Exception as e:
            logger.critical(f"Erro fatal no sistema: {e}", exc_info=True)
            self.console.print(f"[bold red]💥 Erro fatal: {e}[/bold red]")

        finally:
            self.phase_closing()

def print_banner(console: Console):
    """Exibe o banner do sistema."""
    banner = """
    ╔═══════════════════════════════════════════════════════════╗
    ║                 SIGNAL FEED DASHBOARD                     ║
    ║                                                           ║
    ║   📡 Sinais sincronizados em tempo real (Supabase)        ║
    ║   🔍 Filtros por par, ação e sessão                       ║
    ║   📊 Total, compras, vendas e confiança média             ║
    ║                                                           ║
    ║   Atalhos:                                                ║
    ║   • r  atualizar        • c  limpar todos os sinais       ║
    ║   • s  configurações    • q  sair                         ║
    ╚═══════════════════════════════════════════════════════════╝
    """
    console.print(banner, style="bold cyan")

def verify_prerequisites(console: Console) -> bool:
    """Verifica pré-requisitos do sistema."""
    try:
        if not settings.SUPABASE_CONFIG.get('url'):
            console.print("[bold red]❌ URL do Supabase não configurada (supabase.url ou SUPABASE_URL)[/bold red]")
            return False

        if not settings.SUPABASE_CONFIG.get('anon_key'):
            console.print("[bold red]❌ Chave do Supabase não configurada (supabase.anon_key ou SUPABASE_ANON_KEY)[/bold red]")
            return False

        console.print(f"[green]✓ Tabela de sinais: {settings.SUPABASE_CONFIG.get('table', 'trading_signals')}[/green]")

        storage_file = Path(settings.STORAGE_CONFIG.get('file', 'data/local_storage.json'))
        if not storage_file.exists():
            console.print(f"[yellow]📁 Configurações locais serão criadas em: {storage_file.absolute()}[/yellow]")

        return True

    except Exception as e:
        console.print(f"[bold red]❌ Erro ao verificar pré-requisitos: {e}[/bold red]")
        return False

def main():
    """Ponto de entrada do sistema."""
    try:
        print_banner(console)

        if not verify_prerequisites(console):
            console.print("\n[yellow]Verifique a configuração e tente novamente.[/yellow]")
            return

        system = SignalDashboardSystem()
        system.run()

    except KeyboardInterrupt:
        console.print("\n[bold]Dashboard finalizado pelo usuário.[/bold]")
    except Exception as e:
        logger.critical(f"Erro fatal não capturado no main: {e}", exc_info=True)
        console.print(f"[bold red]💥 Erro fatal. Verifique 'system.log'[/bold red]")
    finally:
        logging.shutdown()
        console.print("\n[bold]Aplicação finalizada.[/bold]")

if __name__ == "__main__":
    main()
