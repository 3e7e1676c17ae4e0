import asyncio
from typing import Awaitable, Optional, TypeVar

import structlog

from audiotour.core.errors import AudioTourError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def isolate(
    awaitable: Awaitable[T],
    *,
    default: T,
    label: str,
    timeout: Optional[float] = None,
) -> T:
    """Await one provider-backed step and turn any provider failure into ``default``.

    ``timeout`` bounds the whole step (which may span several requests); the
    step is cancelled, not abandoned, when it runs out. Only provider-level
    errors are absorbed: programming errors still propagate.
    """
    try:
        if timeout is not None:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        return await awaitable
    except asyncio.TimeoutError:
        logger.warning("provider_call_timed_out", step=label, timeout=timeout)
        return default
    except AudioTourError as e:
        logger.warning("provider_call_failed", step=label, error=str(e), error_type=type(e).__name__)
        return default
