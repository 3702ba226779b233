"""Best-effort work scheduled off the response path."""

from collections.abc import Callable
from typing import Any, Protocol


class TaskScheduler(Protocol):
    """Anything that can run a callable after the response is produced.

    FastAPI's ``BackgroundTasks`` satisfies this interface.
    """

    def add_task(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        """Schedule ``func(*args, **kwargs)`` without awaiting it."""
