import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from core.persistence.errors import SyncError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_with_retry(
    call: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    backoff_multiplier: float = 2.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    retry_on: Tuple[Type[BaseException], ...] = (SyncError,),
) -> T:
    """
    Run `call` up to `max_retries` times with exponential backoff between attempts.

    Only exceptions in `retry_on` are retried; the last one is re-raised once the
    attempts are used up.
    """
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    delay = initial_delay
    for attempt in range(1, max_retries + 1):
        try:
            return await call()
        except retry_on as e:
            if attempt == max_retries:
                logger.error(f"Giving up after {attempt} attempts: {e}")
                raise
            logger.warning(f"Attempt {attempt}/{max_retries} failed, retrying in {delay:.1f}s: {e}")
            await sleep(delay)
            delay *= backoff_multiplier
    raise RuntimeError("unreachable")
