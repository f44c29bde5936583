import asyncio
import logging
from typing import Any, Awaitable, Callable, Set

logger = logging.getLogger(__name__)

# Strong references to running fire-and-forget tasks; the event loop only keeps weak ones.
_running_tasks: Set[asyncio.Task] = set()


def run_in_background(func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> asyncio.Task:
    """
    Schedules a coroutine function on the running loop without awaiting it.
    Used when no request-scoped BackgroundTasks object is available.
    """
    task = asyncio.create_task(func(*args, **kwargs))
    _running_tasks.add(task)
    task.add_done_callback(_running_tasks.discard)
    return task
