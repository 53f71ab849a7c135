"""
HTTP client utilities for npmaudit.

This module provides the asynchronous HTTP client used to talk to the npm
registry. Every failure leaves it as a :class:`NetworkError` (or its
:class:`RegistryError` subclass for unknown packages), so callers never
need to know about httpx exception types.
"""

from __future__ import annotations

import math
import httpx
import random
import asyncio
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional, cast

from npmaudit.utils.logger import get_logger
from npmaudit.__version__ import __version__
from npmaudit.exceptions import NetworkError, RegistryError
from npmaudit.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_TIMEOUT,
    DEFAULT_MAX_RETRIES,
    MAX_RATE_LIMIT_RETRIES,
    MAX_RETRY_AFTER,
    USER_AGENT_TEMPLATE,
)

logger = get_logger("http")


def retry_after_seconds(value: Optional[str], *, default: float = 1.0) -> float:
    """Return the delay requested by a ``Retry-After`` header.

    The header is either a number of seconds or an HTTP-date. Anything
    unparseable yields ``default``; the result is clamped to
    ``0..MAX_RETRY_AFTER``.

    Example::

        >>> retry_after_seconds("3")
        3.0
        >>> retry_after_seconds("soon")
        1.0
    """
    if value is None or not value.strip():
        return default

    value = value.strip()
    try:
        seconds = float(value)
    except ValueError:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError, IndexError):
            return default
        if when is None:
            return default
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        seconds = (when - datetime.now(timezone.utc)).total_seconds()

    if not math.isfinite(seconds):
        return default

    return min(max(seconds, 0.0), MAX_RETRY_AFTER)


class HTTPClient:
    """Asynchronous registry HTTP client with retries and a concurrency cap.

    Args:
        timeout: Request timeout in seconds.
        max_retries: Retries after a timeout, transport failure or 5xx.
        max_concurrency: Maximum number of requests in flight.

    Example:
        >>> async with HTTPClient() as client:
        ...     data = await client.get_json("https://registry.npmjs.org/left-pad")
    """

    def __init__(
        self,
        *,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        max_concurrency: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.timeout = timeout
        self.max_retries = max_retries
        self.max_concurrency = max_concurrency
        self.user_agent = USER_AGENT_TEMPLATE.format(version=__version__)

        self._client: Optional[httpx.AsyncClient] = None
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def __aenter__(self) -> "HTTPClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    async def _ensure_client(self) -> None:
        """Initialize the underlying httpx client if needed."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                http2=True,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent},
            )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        *,
        package_name: Optional[str] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Execute an HTTP request with retry and backoff logic.

        Raises:
            RegistryError: The registry answered 404.
            NetworkError: Any other failure, after retries where they apply.
        """
        await self._ensure_client()
        assert self._client is not None

        clean_url = url.strip().strip("\"'")
        last_exc: Optional[Exception] = None
        retry_429_count = 0
        attempt = 0

        while attempt <= self.max_retries:
            try:
                async with self._semaphore:
                    response = await self._client.request(method, clean_url, **kwargs)

                if response.status_code == 429:
                    retry_429_count += 1
                    if retry_429_count > MAX_RATE_LIMIT_RETRIES:
                        raise NetworkError(
                            f"Rate limit exceeded after {MAX_RATE_LIMIT_RETRIES} retries",
                            url=clean_url,
                            status_code=429,
                        )
                    delay = retry_after_seconds(response.headers.get("Retry-After"))
                    logger.warning(
                        "Rate limited (429), retrying after %.1fs (%d/%d)",
                        delay,
                        retry_429_count,
                        MAX_RATE_LIMIT_RETRIES,
                    )
                    await asyncio.sleep(delay)
                    continue

                if response.status_code == 404:
                    what = f"Package '{package_name}'" if package_name else clean_url
                    raise RegistryError(
                        f"{what} not found in the registry",
                        package_name=package_name,
                        url=clean_url,
                        status_code=404,
                    )

                if response.status_code >= 400:
                    response.raise_for_status()

                return response

            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                if status < 500:
                    raise NetworkError(
                        f"HTTP {status} error for {clean_url}",
                        url=clean_url,
                        status_code=status,
                        response_body=exc.response.text,
                    ) from exc
                last_exc = exc
                logger.warning(
                    "HTTP %d error (%d/%d): %s",
                    status,
                    attempt + 1,
                    self.max_retries + 1,
                    clean_url,
                )

            except httpx.TransportError as exc:
                # Includes timeouts and protocol errors.
                last_exc = exc
                logger.warning(
                    "%s (%d/%d): %s",
                    type(exc).__name__,
                    attempt + 1,
                    self.max_retries + 1,
                    clean_url,
                )

            except httpx.HTTPError as exc:
                # TooManyRedirects, DecodingError: not retried.
                raise NetworkError(
                    f"{type(exc).__name__} for {clean_url}: {exc}",
                    url=clean_url,
                ) from exc

            if attempt < self.max_retries:
                delay = (2**attempt) + random.uniform(0.0, 0.3)
                logger.debug("Retrying in %.2fs", delay)
                await asyncio.sleep(delay)
            attempt += 1

        raise NetworkError(
            f"Request failed after {self.max_retries + 1} attempts: {clean_url}",
            url=clean_url,
        ) from last_exc

    async def get(
        self, url: str, *, package_name: Optional[str] = None, **kwargs: Any
    ) -> httpx.Response:
        """Perform a GET request with retry logic."""
        return await self._request_with_retry(
            "GET", url, package_name=package_name, **kwargs
        )

    async def get_json(
        self, url: str, *, package_name: Optional[str] = None, **kwargs: Any
    ) -> Dict[str, Any]:
        """Fetch a URL and parse the response as a JSON object."""
        response = await self.get(url, package_name=package_name, **kwargs)

        try:
            data = response.json()
        except ValueError as exc:
            raise NetworkError(
                f"Invalid JSON response from {url}",
                url=url,
                response_body=response.text,
            ) from exc

        if not isinstance(data, dict):
            raise NetworkError(
                f"Expected JSON object from {url}",
                url=url,
                response_body=response.text,
            )

        return cast(Dict[str, Any], data)
