"""Fixed-interval polling of asynchronous custody activities."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from ..errors import OperationRejectedError, PollCancelledError, PollTimeoutError
from ..types import Activity

logger = logging.getLogger(__name__)


async def _wait_interval(delay: float, cancel_event: asyncio.Event | None) -> None:
    if cancel_event is None:
        await asyncio.sleep(delay)
        return
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        pass


async def poll_activity(
    fetch: Callable[[], Awaitable[Activity]],
    activity: Activity,
    *,
    interval: float,
    timeout: float | None,
    cancel_event: asyncio.Event | None = None,
) -> Activity:
    """Poll ``fetch`` until ``activity`` reaches a terminal status.

    Returns the completed activity. Raises OperationRejectedError on a
    terminal failure, PollTimeoutError once ``timeout`` seconds have passed
    and PollCancelledError as soon as ``cancel_event`` is set.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout if timeout is not None else None
    polls = 0

    while activity.is_pending:
        if cancel_event is not None and cancel_event.is_set():
            raise PollCancelledError(
                "activity polling cancelled", activity.id, activity.status, activity.type
            )

        delay = interval
        if deadline is not None:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise PollTimeoutError(
                    f"activity still {activity.status} after {timeout}s",
                    activity.id,
                    activity.status,
                    activity.type,
                )
            delay = min(interval, remaining)

        await _wait_interval(delay, cancel_event)
        if cancel_event is not None and cancel_event.is_set():
            raise PollCancelledError(
                "activity polling cancelled", activity.id, activity.status, activity.type
            )
        activity = await fetch()
        polls += 1

    if activity.is_completed:
        logger.info(f"Activity {activity.id} ({activity.type}) completed after {polls} polls")
        return activity

    if activity.is_failed:
        logger.warning(f"Activity {activity.id} ({activity.type}) ended with {activity.status}")
        message = f"activity {activity.type} ended with {activity.status}"
    else:
        message = f"activity {activity.type} returned unexpected status {activity.status!r}"
    raise OperationRejectedError(message, activity.id, activity.status, activity.type)
