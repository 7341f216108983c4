"""Console rendering of the transcript history."""

import logging
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from ..models.history import TranscriptEntry

logger = logging.getLogger(__name__)


class HistoryScreen:
    """Prints the history list and unread count using rich."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def build_table(self, entries: List[TranscriptEntry]) -> Table:
        table = Table(title="📝 IdeaCapture History", show_lines=False)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Created", style="cyan", no_wrap=True)
        table.add_column("Text")
        table.add_column("Read", justify="center")
        table.add_column("ID", style="dim", no_wrap=True)

        for i, entry in enumerate(entries):
            created = entry.created_at.astimezone().strftime("%Y-%m-%d %H:%M:%S")
            read_mark = "✓" if entry.is_read else "[bold yellow]●[/bold yellow]"
            table.add_row(str(i), created, entry.text, read_mark, entry.id[:8])
        return table

    def render(self, entries: List[TranscriptEntry], unread_count: int) -> None:
        if not entries:
            self.console.print("No transcripts yet - start recording to capture an idea", style="yellow")
            return

        self.console.print(self.build_table(entries))
        style = "bold yellow" if unread_count else "green"
        self.console.print(f"{len(entries)} entries, {unread_count} unread", style=style)

    def render_session_result(self, result: dict) -> None:
        if result.get("success"):
            self.console.print(f"✅ Session {result.get('session_id')} completed", style="bold green")
        else:
            self.console.print(f"❌ {result.get('error', 'Session failed')}", style="bold red")
