"""
Progress bars for tunebridge using the Rich library.

Batch conversion is the only long-running operation; playlist import is
a handful of paged requests and reports through the log instead.

    - ConversionProgressBar: converted, failed and low-confidence counts

Usage:
    from tunebridge.core.progress import ConversionProgressBar

    with ConversionProgressBar(total=len(tracks)) as progress:
        for track in tracks:
            progress.update(converted=True, low_confidence=False)
"""

from abc import ABC, abstractmethod

from rich import get_console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TaskID,
    TextColumn,
)
from rich.theme import Theme


PROGRESS_THEME = Theme({
    "bar.back": "grey23",
    "bar.complete": "rgb(165,66,129)",
    "bar.finished": "rgb(114,156,31)",
    "bar.pulse": "rgb(165,66,129)",
    "progress.percentage": "white",
})


class BaseProgressBar(ABC):
    """
    Common Rich progress bar plumbing.

    Provides start/stop (also as a context manager), log() for printing
    above the bar, and a status column filled by _get_status_text().
    """

    def __init__(self, total: int, description: str) -> None:
        self.total = total
        self.description = description
        self.completed = 0

        self.console = get_console()
        self.console.push_theme(PROGRESS_THEME)

        self.progress = Progress(
            TextColumn("[white]{task.description:<12}"),
            TextColumn("{task.fields[status]}"),
            BarColumn(bar_width=40, finished_style="green"),
            MofNCompleteColumn(),
            "[progress.percentage]{task.percentage:>3.0f}%",
            console=self.console,
            transient=False,
            refresh_per_second=10,
        )

        self.task_id: TaskID | None = None
        self._started = False

    def __enter__(self) -> "BaseProgressBar":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def start(self) -> None:
        if not self._started:
            self.progress.start()
            self.task_id = self.progress.add_task(
                description=self.description,
                total=self.total,
                status=self._get_status_text(),
            )
            self._started = True

    def stop(self) -> None:
        if self._started:
            self.progress.stop()
            self.console.pop_theme()
            self._started = False

    def log(self, message: str) -> None:
        """Print a message above the progress bar."""
        self.progress.console.print(message, highlight=False)

    def _update_progress(self) -> None:
        if self.task_id is not None:
            self.progress.update(
                self.task_id,
                completed=self.completed,
                status=self._get_status_text(),
            )

    @abstractmethod
    def _get_status_text(self) -> str:
        pass

    @abstractmethod
    def update(self, *args, **kwargs) -> None:
        pass


class ConversionProgressBar(BaseProgressBar):
    """
    Progress bar for batch conversion.

    Displays converted, failed and low-confidence counts:

        Converting    ✓ 45  ✗ 2  ⚠ 3  ━━━━━━━━━━━━━━━━━  47/100  47%
    """

    def __init__(self, total: int, description: str = "Converting") -> None:
        super().__init__(total=total, description=description)
        self.converted = 0
        self.failed = 0
        self.low_confidence = 0

    def _get_status_text(self) -> str:
        parts = [
            f"[green]✓ {self.converted}[/green]",
            f"[red]✗ {self.failed}[/red]",
        ]
        if self.low_confidence > 0:
            parts.append(f"[yellow]⚠ {self.low_confidence}[/yellow]")
        return "  ".join(parts)

    def update(self, converted: bool, low_confidence: bool = False) -> None:
        """
        Record one processed track.

        Args:
            converted: Whether a URL was stored for the track.
            low_confidence: Whether the chosen video matched no signal and
                            won only on search position.
        """
        self.completed += 1
        if converted:
            self.converted += 1
            if low_confidence:
                self.low_confidence += 1
        else:
            self.failed += 1
        self._update_progress()
