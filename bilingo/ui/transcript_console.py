"""Rich console printer for the live transcript."""

import logging
from collections import OrderedDict
from typing import Optional

from pubsub import pub
from rich.console import Console
from rich.text import Text

from ..models.connection import ConnectionStatus
from ..models.transcript import EntryRole, EntryStatus, TranscriptEntry

logger = logging.getLogger(__name__)

ROLE_STYLES = {
    EntryRole.USER: ("You", "bold cyan"),
    EntryRole.ASSISTANT: ("Translation", "bold green"),
    EntryRole.BREADCRUMB: ("•", "dim"),
}

STATUS_STYLES = {
    ConnectionStatus.CONNECTED: "green",
    ConnectionStatus.CONNECTING: "yellow",
    ConnectionStatus.DISCONNECTED: "red",
}


class TranscriptConsole:
    """Prints finished transcript entries as they arrive on the pubsub topic."""

    def __init__(self,
                 topic: str = "transcript_entries",
                 console: Optional[Console] = None,
                 max_remembered: int = 256):
        self.topic = topic
        self.console = console or Console()
        self.max_remembered = max_remembered
        # Recently printed ids, oldest first
        self._printed: "OrderedDict[str, None]" = OrderedDict()

    def start(self) -> None:
        pub.subscribe(self.on_entry, self.topic)
        self.console.print("[bold]Bilingo[/bold]  [dim]space[/dim] talk  "
                           "[dim]c[/dim] cancel  [dim]r[/dim] reconnect  [dim]q[/dim] quit")

    def stop(self) -> None:
        pub.unsubscribe(self.on_entry, self.topic)

    def on_entry(self, entry: TranscriptEntry, change: str) -> None:
        if not entry.visible or entry.entry_id in self._printed:
            return
        if entry.status not in (EntryStatus.DONE, EntryStatus.ERROR):
            return

        self._printed[entry.entry_id] = None
        if len(self._printed) > self.max_remembered:
            self._printed.popitem(last=False)
        label, style = ROLE_STYLES[entry.role]
        line = Text()
        line.append(f"{label} ", style=style)
        if entry.status == EntryStatus.ERROR:
            line.append(entry.content or "(failed)", style="red")
        else:
            line.append(entry.content, style="dim" if entry.role == EntryRole.BREADCRUMB else "")
        self.console.print(line)

    def on_status(self, status: ConnectionStatus) -> None:
        self.console.print(Text(f"[{status.value}]", style=STATUS_STYLES[status]))

    def on_talking(self, talking: bool) -> None:
        if talking:
            self.console.print(Text("🎤 Listening... (space to send)", style="bold yellow"))
