# app/util/retry.py
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_with_backoff(
    op: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    base_delay: float = 1.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    label: str = "operation",
) -> T:
    """
    Await `op()` until it succeeds or `attempts` runs out.

    The wait after failed attempt k (1-based) is base_delay * 2**k, so the
    defaults sleep 2s then 4s. The last exception is re-raised.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    attempt = 0
    while True:
        attempt += 1
        try:
            return await op()
        except retry_on as e:
            if attempt >= attempts:
                logger.error("%s failed after %d attempts: %s", label, attempts, e)
                raise
            delay = base_delay * (2 ** attempt)
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.2fs",
                label, attempt, attempts, e, delay,
            )
            await asyncio.sleep(delay)
