import logging
from typing import Any, List, Optional, Sequence

from rich.box import HEAVY, ROUNDED, SIMPLE, Box
from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from schemadesk.domain.interfaces.user_interface import UserInterface

logger = logging.getLogger(__name__)


class ConsoleDisplay(UserInterface):
    """Renders API payloads, messages and tables with rich."""

    def __init__(self, console: Optional[Console] = None):
        """Wraps an existing Console or creates one on stdout.

        Args:
            console: Console to print to; a fresh stdout console when omitted.
        """
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """The underlying rich Console."""
        return self._console

    def display_output(self, output: Any, **kwargs: Any) -> None:
        """Displays a decoded payload, pretty printed as JSON inside a panel.

        Args:
            output: The value to display. Strings are shown verbatim.
            **kwargs: Additional arguments including:
                - title: Panel title (default: "Response")
                - border_style: Panel border style (default: "green")
        """
        title = kwargs.get("title", "Response")
        border_style = kwargs.get("border_style", "green")
        logger.debug(f"display_output called: title={title}, type={type(output).__name__}")

        if isinstance(output, str):
            renderable: Any = Text(output)
        else:
            renderable = JSON.from_data(output, default=str)

        panel = Panel(
            renderable,
            title=f"[bold white]{title}[/bold white]",
            title_align="left",
            border_style=border_style,
            box=ROUNDED,
            padding=(0, 1),
        )
        self.console.print(panel)

    def _message_panel(self, message: str, label: str, colour: str, box: Box) -> None:
        self.console.print(Panel(
            Text(message, style="white"),
            title=f"[bold {colour}]{label}[/bold {colour}]",
            border_style=colour,
            box=box,
            padding=(0, 1),
        ))

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Shows a failed call or bad input in a heavy red panel."""
        self._message_panel(error_message, "Error", "red", HEAVY)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        self._message_panel(info_message, "Info", "blue", SIMPLE)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Shows a warning panel; the message is also written to the log."""
        logger.warning(warning_message)
        self._message_panel(warning_message, "Warning", "yellow", HEAVY)

    def display_table(self, title: str, columns: Sequence[str], rows: List[Sequence[Any]]) -> None:
        """Displays rows in a rich table. Missing values render as a dim dash."""
        table = Table(title=title, box=ROUNDED, border_style="cyan", header_style="bold cyan")
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*("[dim]-[/dim]" if cell is None else str(cell) for cell in row))
        self.console.print(table)
