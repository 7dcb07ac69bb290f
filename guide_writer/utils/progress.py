from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn, TimeElapsedColumn
from rich.console import Console
from typing import Callable, Optional

ProgressCallback = Callable[[str, int, int, int], None]


def noop_progress(message: str, chapter: int, total: int, attempt: int) -> None:
    pass


def create_progress(console: Optional[Console] = None) -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
    )


def chapter_progress_callback(progress: Progress, task_id) -> ProgressCallback:
    """Adapt orchestrator progress events to a rich progress task.

    ``chapter`` counts finished chapters, so the bar only advances when a
    chapter leaves the pipeline.
    """
    def callback(message: str, chapter: int, total: int, attempt: int) -> None:
        progress.update(task_id, description=message, completed=chapter, total=total or None)

    return callback
