"""HTTP retrieval with bounded retry."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

import requests

from corpus_ingest.errors import FetchError

logger = logging.getLogger(__name__)

DEFAULT_TRIES = 5


def fetch_with_retry(
    url: str,
    *,
    session: requests.Session | None = None,
    tries: int = DEFAULT_TRIES,
    timeout: float = 60.0,
) -> requests.Response:
    """GET *url*, retrying transport failures immediately.

    HTTP error statuses are returned to the caller; only connection-level
    failures (``requests.RequestException``) are retried.

    Raises
    ------
    FetchError
        After *tries* failed attempts.
    """
    http = session or requests
    last_exc: Exception | None = None
    for attempt in range(1, tries + 1):
        try:
            return http.get(url, timeout=timeout)
        except requests.RequestException as exc:
            last_exc = exc
            logger.warning("Fetch attempt %d/%d for %s failed: %s", attempt, tries, url, exc)
    raise FetchError(url) from last_exc


def fetch_batch(
    urls: list[str],
    *,
    session: requests.Session | None = None,
    tries: int = DEFAULT_TRIES,
    timeout: float = 60.0,
) -> list[requests.Response]:
    """Fetch all *urls* concurrently and return the responses in input order.

    The pool is sized to the batch; the caller bounds concurrency by the
    size of the batch it passes in.
    """
    if not urls:
        return []
    with ThreadPoolExecutor(max_workers=len(urls)) as pool:
        return list(
            pool.map(lambda url: fetch_with_retry(url, session=session, tries=tries, timeout=timeout), urls)
        )
