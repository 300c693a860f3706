# presentation/display/monitor_app.py
"""
Dashboard de sinais usando Textual.
"""

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.screen import ModalScreen, Screen
from textual.widgets import Button, DataTable, Footer, Header, Input, Label, Select, Switch
from textual.binding import Binding
from textual.css.query import NoMatches
from rich.text import Text

from typing import Any, Callable, Dict, Optional

from application.services.signal_feed_service import SignalFeedService
from domain.entities.filter_criteria import ActionFilter, SessionFilter
from domain.entities.signal import TradeAction
from domain.exceptions import DeleteError, StorageError, ValidationError


ACTION_OPTIONS = [
    ("Todos os sinais", ActionFilter.ALL.value),
    ("Apenas compra", ActionFilter.BUY.value),
    ("Apenas venda", ActionFilter.SELL.value),
]

SESSION_OPTIONS = [
    ("Todas as sessões", SessionFilter.ALL.value),
    ("Sessão Asiática", SessionFilter.ASIAN.value),
    ("Sessão de Londres", SessionFilter.LONDON.value),
    ("Sessão de Nova York", SessionFilter.NEW_YORK.value),
]


class ConfirmScreen(ModalScreen[bool]):
    """Pede confirmação explícita antes de uma ação destrutiva."""

    def __init__(self, message: str, **kwargs):
        super().__init__(**kwargs)
        self.message = message

    def compose(self) -> ComposeResult:
        with Container(classes="dialog"):
            yield Label(self.message, classes="dialog-message")
            with Horizontal(classes="dialog-buttons"):
                yield Button("Confirmar", variant="error", id="confirm")
                yield Button("Cancelar", variant="primary", id="cancel")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "confirm")


class AcknowledgeScreen(ModalScreen[None]):
    """Aviso que exige um OK do usuário."""

    def __init__(self, message: str, **kwargs):
        super().__init__(**kwargs)
        self.message = message

    def compose(self) -> ComposeResult:
        with Container(classes="dialog"):
            yield Label(self.message, classes="dialog-message")
            with Horizontal(classes="dialog-buttons"):
                yield Button("OK", variant="primary", id="ok")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss()


class SettingsScreen(Screen):
    """Tela de configurações: notificações, geração de sinais e dados."""

    BINDINGS = [
        Binding("escape", "app.pop_screen", "Voltar"),
    ]

    def __init__(self, feed_service: SignalFeedService, notification_seconds: float = 3, **kwargs):
        super().__init__(**kwargs)
        self.feed_service = feed_service
        self.notification_seconds = notification_seconds

    def compose(self) -> ComposeResult:
        settings = self.feed_service.settings
        status = self.feed_service.get_status()

        yield Header()
        with Vertical(id="settings-container"):
            yield Label("🔔 NOTIFICAÇÕES", classes="panel-title")
            with Horizontal(classes="setting-row"):
                yield Label("Notificações no Telegram", classes="setting-label")
                yield Switch(value=settings.telegram_enabled, id="telegram-enabled")

            yield Label("⚡ GERAÇÃO DE SINAIS", classes="panel-title")
            with Horizontal(classes="setting-row"):
                yield Label("Modo automático", classes="setting-label")
                yield Switch(value=settings.auto_mode_enabled, id="auto-mode-enabled")
            with Horizontal(classes="setting-row"):
                yield Label("Confiança mínima (70-99%)", classes="setting-label")
                yield Input(value=str(settings.confidence_threshold), type="integer", id="confidence-threshold")
            with Horizontal(classes="setting-row"):
                yield Label("Frequência (1-15 min)", classes="setting-label")
                yield Input(value=str(settings.signal_frequency_minutes), type="integer", id="signal-frequency")

            yield Label("🗄️ DADOS", classes="panel-title")
            yield Label(
                f"Total de sinais: {status['total']}  •  Tamanho: {status['storage_kb']} KB",
                id="data-info"
            )
            yield Button("Salvar configurações", variant="primary", id="save-settings")
        yield Footer()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "save-settings":
            self.save_settings()

    def save_settings(self) -> None:
        values = {
            'telegram_enabled': self.query_one("#telegram-enabled", Switch).value,
            'auto_mode_enabled': self.query_one("#auto-mode-enabled", Switch).value,
            'confidence_threshold': _parse_int(self.query_one("#confidence-threshold", Input).value),
            'signal_frequency_minutes': _parse_int(self.query_one("#signal-frequency", Input).value),
        }
        try:
            self.feed_service.save_settings(values)
        except ValidationError as e:
            self.notify(str(e), title="Configurações inválidas", severity="error")
            return
        except StorageError as e:
            self.notify(str(e), title="Erro ao salvar", severity="error")
            return

        self.notify("Configurações salvas com sucesso!", timeout=self.notification_seconds)


class SignalDashboardApp(App):
    """Aplicação Textual principal - feed de sinais ao vivo"""

    CSS = """
    Screen {
        background: $surface;
    }

    #stats-bar {
        height: 3;
        background: $panel;
        border: solid $primary;
        layout: horizontal;
    }

    #stats-info {
        width: 1fr;
    }

    #status-info {
        width: auto;
    }

    #filters {
        height: 3;
        margin: 0 1;
    }

    #search {
        width: 2fr;
    }

    #action-filter, #session-filter {
        width: 1fr;
    }

    #showing-info {
        margin: 0 1;
        color: $text-muted;
    }

    #signals-table {
        height: 1fr;
        margin: 0 1;
        border: solid $success;
    }

    .panel-title {
        text-style: bold;
        color: $warning;
        margin: 1 0;
    }

    #settings-container {
        padding: 1 2;
    }

    .setting-row {
        height: 3;
    }

    .setting-label {
        width: 32;
        padding: 1 0;
    }

    ConfirmScreen, AcknowledgeScreen {
        align: center middle;
    }

    .dialog {
        width: 60;
        height: auto;
        border: thick $error;
        background: $panel;
        padding: 1 2;
    }

    .dialog-message {
        margin-bottom: 1;
    }

    .dialog-buttons {
        height: 3;
        align: center middle;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Sair"),
        Binding("r", "refresh", "Atualizar"),
        Binding("c", "clear_signals", "Limpar Sinais"),
        Binding("s", "open_settings", "Configurações"),
    ]

    def __init__(self, feed_service: SignalFeedService, config: Optional[Dict[str, Any]] = None, **kwargs):
        super().__init__(**kwargs)
        self.feed_service = feed_service
        self.display_config = config or {}
        self.max_rows = int(self.display_config.get('max_rows', 200))
        self.notification_seconds = float(self.display_config.get('save_notification_seconds', 3))

    def compose(self) -> ComposeResult:
        yield Header()
        with Container(id="stats-bar"):
            yield Label("", id="stats-info")
            yield Label("", id="status-info")
        with Horizontal(id="filters"):
            yield Input(placeholder="Buscar par, ex: EUR/USD", id="search")
            yield Select(ACTION_OPTIONS, value=ActionFilter.ALL.value, allow_blank=False, id="action-filter")
            yield Select(SESSION_OPTIONS, value=SessionFilter.ALL.value, allow_blank=False, id="session-filter")
        yield Label("", id="showing-info")
        yield DataTable(id="signals-table", cursor_type="row", zebra_stripes=True)
        yield Footer()

    def on_mount(self) -> None:
        self.title = "Signal Feed"
        self.sub_title = "Histórico de sinais"
        table = self.query_one("#signals-table", DataTable)
        table.add_columns("Horário", "Par", "Ação", "Confiança", "Sessão")
        self.refresh_view()

    # ---------------------------------------------------------------- render

    def refresh_view(self) -> None:
        """Recalcula visões a partir do snapshot e dos critérios atuais."""
        # Sempre a tela principal, mesmo com configurações ou diálogos por cima
        screen = self.screen_stack[0] if self.screen_stack else self.screen
        try:
            self._update_stats_bar(screen)
            self._update_table(screen)
        except NoMatches:
            # Ainda não montado
            pass

    def _update_stats_bar(self, screen: Screen) -> None:
        stats = self.feed_service.stats()
        status = self.feed_service.get_status()

        stats_text = (
            f"Total: [bold]{stats.total}[/bold]  •  "
            f"Compra: [green]{stats.buy_count}[/green]  •  "
            f"Venda: [red]{stats.sell_count}[/red]  •  "
            f"Confiança média: [cyan]{stats.avg_confidence}%[/cyan]"
        )
        screen.query_one("#stats-info", Label).update(stats_text)

        if status['is_loading']:
            status_text = "[yellow]⟳ Carregando...[/yellow]"
        elif status['last_error']:
            status_text = "[red]⚠ Erro ao atualizar[/red]"
        elif status['live_updates']:
            status_text = "[green]● Ao vivo[/green]"
        elif status['subscribed']:
            status_text = "[yellow]◌ Reconectando... (r atualiza)[/yellow]"
        else:
            status_text = "[dim]○ Manual[/dim]"
        screen.query_one("#status-info", Label).update(status_text)

        screen.query_one("#showing-info", Label).update(
            f"Exibindo {status['visible']} de {status['total']} sinais"
        )

    def _update_table(self, screen: Screen) -> None:
        table = screen.query_one("#signals-table", DataTable)
        table.clear()

        for signal in self.feed_service.visible_signals()[:self.max_rows]:
            action_color = "green" if signal.action == TradeAction.BUY else "red"
            table.add_row(
                signal.created_at.strftime('%d/%m %H:%M:%S'),
                Text(signal.pair, style="bold"),
                Text(signal.action.value, style=action_color),
                Text(f"{signal.confidence}%", style=self._get_confidence_color(signal.confidence)),
                signal.session.value,
                key=signal.id
            )

    def _get_confidence_color(self, confidence: int) -> str:
        """Retorna cor baseada no nível de confiança."""
        if confidence >= 90:
            return "green"
        elif confidence >= 80:
            return "yellow"
        else:
            return "orange1"

    # --------------------------------------------------------------- filtros

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "search":
            self.feed_service.set_filter_criteria(search_term=event.value.strip())
            self.refresh_view()

    def on_select_changed(self, event: Select.Changed) -> None:
        if event.select.id == "action-filter":
            self.feed_service.set_filter_criteria(action_filter=ActionFilter(event.value))
        elif event.select.id == "session-filter":
            self.feed_service.set_filter_criteria(session_filter=SessionFilter(event.value))
        else:
            return
        self.refresh_view()

    # ---------------------------------------------------------------- ações

    def action_refresh(self) -> None:
        """Força uma atualização fora da thread da interface."""
        self.run_worker(self.feed_service.refresh, thread=True, exclusive=True, group="feed-io")
        self.refresh_view()

    def action_clear_signals(self) -> None:
        """Limpa todos os sinais após confirmação."""
        def on_confirm(confirmed: Optional[bool]) -> None:
            if confirmed:
                self.run_worker(self._clear_signals_worker, thread=True, exclusive=True, group="feed-io")

        self.push_screen(
            ConfirmScreen("Tem certeza que deseja apagar TODOS os sinais? Esta ação não pode ser desfeita."),
            on_confirm
        )

    def _clear_signals_worker(self) -> None:
        try:
            self.feed_service.clear_all_signals()
        except DeleteError as e:
            self.call_from_thread(self.notify, f"Falha ao limpar o banco: {e}", severity="error")
            return
        self.call_from_thread(self.push_screen, AcknowledgeScreen("Banco de sinais limpo com sucesso."))

    def action_open_settings(self) -> None:
        self.push_screen(SettingsScreen(self.feed_service, notification_seconds=self.notification_seconds))


class TextualDashboardDisplay:
    """
    Wrapper para integrar o Textual App com o restante do sistema.
    Os métodos podem ser chamados de qualquer thread.
    """

    def __init__(self, feed_service: SignalFeedService, config: Optional[Dict[str, Any]] = None):
        self.app = SignalDashboardApp(feed_service, config=config)
        self.running = False

    def run(self):
        """Executa a aplicação Textual (bloqueia até o usuário sair)."""
        self.running = True
        try:
            self.app.run()
        finally:
            self.running = False

    def stop(self):
        """Para a aplicação."""
        self.running = False
        if self.app.is_running:
            self.app.exit()

    def refresh(self):
        """Redesenha a partir do snapshot atual."""
        self._call(self.app.refresh_view)

    def show_error(self, message: str):
        """Indicador de erro não bloqueante."""
        self._call(self.app.notify, message, severity="warning")

    def _call(self, callback: Callable, *args, **kwargs):
        if not self.app.is_running:
            return
        try:
            self.app.call_from_thread(callback, *args, **kwargs)
        except RuntimeError:
            # Já estamos na thread da interface
            callback(*args, **kwargs)


def _parse_int(value: str) -> Any:
    """Converte o texto do campo; valores não numéricos seguem para a validação."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return value
