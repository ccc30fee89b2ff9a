from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential_jitter

from app.config import settings
from app.core.errors import NotFound, StoreError, Unauthorized, ValidationError

logger = logging.getLogger("app.clients.http")


# One shared AsyncClient per base_url (connection pooling + timeouts)
_clients: dict[str, httpx.AsyncClient] = {}
_clients_lock = asyncio.Lock()


async def get_http_client(base_url: str) -> httpx.AsyncClient:
    async with _clients_lock:
        client = _clients.get(base_url)
        if client is None or client.is_closed:
            client = httpx.AsyncClient(
                base_url=base_url,
                timeout=settings.http_client_timeout_seconds,
                headers={
                    "Accept": "application/json",
                    "User-Agent": f"workflow-replicator/{settings.service_version}",
                },
            )
            _clients[base_url] = client
            logger.info("HTTP client created for %s", base_url)
        return client


async def close_http_clients() -> None:
    async with _clients_lock:
        for base_url, client in list(_clients.items()):
            if not client.is_closed:
                await client.aclose()
                logger.info("HTTP client closed for %s", base_url)
        _clients.clear()


class RetryableStoreError(StoreError):
    """Rate limiting or a transient upstream failure."""


def _error_code(resp: httpx.Response) -> Optional[str]:
    try:
        body = resp.json()
    except ValueError:
        return None
    return body.get("code") if isinstance(body, dict) else None


def _raise_for_status(service: str, resp: httpx.Response) -> None:
    try:
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        # keep body for debugging (limited)
        body = resp.text or ""
        status = resp.status_code
        code = _error_code(resp)
        message = f"{service} HTTP {status}: {resp.request.url} :: {body[:500]}"
        if status == 404:
            raise NotFound(message, status=status, code=code) from e
        if status in (401, 403):
            raise Unauthorized(message, status=status, code=code) from e
        if status == 400 or code == "validation_error":
            raise ValidationError(message, status=status, code=code) from e
        if status == 429 or status >= 500:
            raise RetryableStoreError(message, status=status, code=code) from e
        raise StoreError(message, status=status, code=code) from e


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, (RetryableStoreError, httpx.TransportError))


# Retries rate limits / transient failures; safe for reads and idempotent writes only
def retryable(fn):
    return retry(
        retry=retry_if_exception(_is_retryable),
        stop=stop_after_attempt(3),
        wait=wait_exponential_jitter(initial=0.5, max=4.0),
        reraise=True,
    )(fn)
