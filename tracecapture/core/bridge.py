"""
Description: Bridges callback-style backend calls onto asyncio futures.
"""

import asyncio
import inspect
from typing import Any, Callable

from tracecapture.core.errors import Stage, as_exception
from tracecapture.infra.utils import logger

BackendCallback = Callable[..., None]


async def call_with_callback(func: Callable[[BackendCallback], Any], stage: Stage) -> Any:
    """Invoke `func(callback)` and wait for the callback to fire once.

    The callback follows the `callback(err, value=None)` convention; an
    exception or any truthy `err` is a failure, while None and other falsy
    values such as "" or False mean success. It may be
    invoked synchronously from inside `func`, later from the event loop, or
    from a foreign thread; it is always settled on the running loop. Only the
    first invocation counts, later ones are ignored.

    Returns:
        The value passed to the callback (None for acknowledgement-only calls).

    Raises:
        The error passed to the callback, or whatever `func` raised itself.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def _settle(err: Any, value: Any) -> None:
        if future.done():
            logger.debug(f"Ignoring repeated {stage.value} callback")
            return
        if isinstance(err, BaseException) or err:
            future.set_exception(as_exception(err, stage))
        else:
            future.set_result(value)

    def callback(err: Any = None, value: Any = None) -> None:
        try:
            loop.call_soon_threadsafe(_settle, err, value)
        except RuntimeError:
            # Loop already closed: the capture settled long ago.
            logger.debug(f"Dropping {stage.value} callback fired after the event loop closed")

    try:
        func(callback)
    except BaseException:
        future.cancel()
        raise
    return await future


async def run_work(work_fn: Callable[[], Any]) -> Any:
    """Run a zero-argument work function, awaiting its result if needed."""
    result = work_fn()
    if inspect.isawaitable(result):
        result = await result
    return result
