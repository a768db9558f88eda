"""Thread-based worker for side jobs that must never block a webhook response.

Jobs are retried with linear backoff; a job that exhausts its retries lands in
``dead_letter_queue`` for inspection instead of being lost silently.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Tuple

logger = logging.getLogger(__name__)

_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="regpay-bg")
# Each entry: (function name, args, kwargs, exception)
dead_letter_queue: deque[Tuple[str, tuple, dict, Exception]] = deque(maxlen=500)


def _run_with_retry(
    func: Callable[..., Any], *args: Any, retries: int = 3, backoff: float = 1.0, **kwargs: Any
) -> Any:
    """Execute ``func`` with retry and linear backoff."""

    for attempt in range(1, retries + 1):
        try:
            return func(*args, **kwargs)
        except Exception as exc:
            logger.error(
                "Background job %s failed on attempt %s/%s: %s", func.__name__, attempt, retries, exc
            )
            if attempt == retries:
                dead_letter_queue.append((func.__name__, args, kwargs, exc))
                raise
            time.sleep(backoff * attempt)


def enqueue(
    func: Callable[..., Any], *args: Any, retries: int = 3, backoff: float = 1.0, **kwargs: Any
) -> str:
    """Submit ``func`` to the worker and return a job id."""

    job_id = uuid.uuid4().hex
    _executor.submit(_run_with_retry, func, *args, retries=retries, backoff=backoff, **kwargs)
    logger.debug("Queued background job %s (%s)", job_id, func.__name__)
    return job_id

