"""
Partial-failure policy for the pipeline.

Classification, field mapping and the write sweep all follow the same rule:
a failure on one item is reported and replaced by a fallback value, and
processing continues with the next item. Every such site goes through
`isolate` or `isolate_async` so the policy lives in one place.
"""

from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")

ErrorHandler = Callable[[Exception], None]


def isolate(
    operation: Callable[[], T],
    fallback: Callable[[Exception], T],
    on_error: Optional[ErrorHandler] = None,
    reraise: Tuple[Type[BaseException], ...] = ()
) -> T:
    """
    Run `operation`, substituting `fallback(error)` if it raises.

    Args:
        operation: Zero-argument callable producing the value
        fallback: Builds the substitute value from the caught error
        on_error: Called with the error before the fallback is built
        reraise: Exception types that are fatal and must propagate

    Returns:
        The operation's value, or the fallback value on failure
    """
    try:
        return operation()
    except reraise:
        raise
    except Exception as e:
        _report(e, on_error)
        return fallback(e)


async def isolate_async(
    operation: Callable[[], Awaitable[T]],
    fallback: Callable[[Exception], T],
    on_error: Optional[ErrorHandler] = None,
    reraise: Tuple[Type[BaseException], ...] = ()
) -> T:
    """Async counterpart of `isolate` for coroutine-producing operations."""
    try:
        return await operation()
    except reraise:
        raise
    except Exception as e:
        _report(e, on_error)
        return fallback(e)


def _report(error: Exception, on_error: Optional[ErrorHandler]):
    if on_error is None:
        logger.warning(f"Isolated failure: {error}")
        return
    on_error(error)
