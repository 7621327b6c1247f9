#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Remote content fetching - download media referenced by URL for inline upload to Gemini

Also hosts best-effort redirect resolution, used to annotate grounding citations.
"""

import asyncio
import base64
import binascii
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import unquote_to_bytes, urljoin

import httpx
from furl import furl

from .config import Settings, settings as default_settings
from .exceptions import FetchError, RedirectResolutionError
from .helpers import debug_log, error_log, info_log, warning_log, truncate_url
from .mime_sniffer import FAMILY_FILE, identify, normalize_content_type

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


@dataclass(frozen=True)
class FetchedContent:
    """A downloaded resource held fully in memory."""

    data: bytes
    mime_type: str
    url: str

    @property
    def base64_data(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


def transform_url_for_local(url: str, config: Optional[Settings] = None) -> str:
    """
    Rewrite scheme/host/port for URLs whose hostname equals TRANSFORM_SOURCE_HOSTNAME.

    This lets a locally running bucket server stand in for its public hostname
    during development. Any other URL is returned untouched.
    """
    config = config or default_settings
    source_hostname = config.TRANSFORM_SOURCE_HOSTNAME
    if not source_hostname:
        return url

    try:
        parsed = furl(url)
    except ValueError as exc:
        warning_log("[FETCH] could not parse URL for local rewrite", url=truncate_url(url), error=str(exc))
        return url

    if (parsed.host or "").lower() != source_hostname.lower():
        return url

    parsed.scheme = config.TRANSFORM_TARGET_PROTOCOL.rstrip(":/") or "http"
    parsed.host = config.TRANSFORM_TARGET_HOSTNAME
    if config.TRANSFORM_TARGET_PORT:
        parsed.port = config.TRANSFORM_TARGET_PORT

    transformed = parsed.url
    info_log("[FETCH] rewrote URL for local bucket", source=url, target=transformed)
    return transformed


def decode_data_url(url: str, family: str = FAMILY_FILE) -> FetchedContent:
    """
    Decode a ``data:<mime>;base64,<payload>`` URL without touching the network.

    The embedded MIME type is treated like a Content-Type header, so the
    family rules of ``identify`` still apply to it.
    """
    try:
        header, payload = url.split(",", 1)
    except ValueError as exc:
        raise FetchError(truncate_url(url), "malformed data URL") from exc

    meta = header[len("data:"):]
    is_base64 = meta.endswith(";base64")
    if is_base64:
        meta = meta[: -len(";base64")]
    embedded_type = normalize_content_type(meta)

    try:
        data = base64.b64decode(payload, validate=True) if is_base64 else unquote_to_bytes(payload)
    except (binascii.Error, ValueError) as exc:
        raise FetchError(truncate_url(url), f"invalid base64 payload: {exc}") from exc

    mime_type = identify(data, None, embedded_type, family)
    debug_log("[FETCH] decoded data URL", embedded_type=embedded_type, mime_type=mime_type, size=len(data))
    return FetchedContent(data=data, mime_type=mime_type, url=url)


class ContentFetcher:
    """Fetch remote resources and classify them with the MIME sniffer."""

    def __init__(self, config: Optional[Settings] = None, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self.settings = config or default_settings
        self.http_client = http_client

    @asynccontextmanager
    async def _use_client(self) -> AsyncIterator[httpx.AsyncClient]:
        # reuse the shared pool when one was injected, otherwise use a throwaway client
        if self.http_client is not None:
            yield self.http_client
            return
        client = httpx.AsyncClient(timeout=httpx.Timeout(self.settings.FETCH_TIMEOUT))
        try:
            yield client
        finally:
            await client.aclose()

    async def fetch(self, url: str, family: str = FAMILY_FILE) -> FetchedContent:
        """
        Download ``url`` and determine its MIME type.

        Args:
            url: resource URL (``data:`` URLs are decoded locally)
            family: ``image``, ``audio`` or ``file`` - selects the MIME fallback rules

        Raises:
            FetchError: transport failure or a non-2xx response
        """
        if url.startswith("data:"):
            return decode_data_url(url, family)

        target_url = transform_url_for_local(url, self.settings)

        async with self._use_client() as client:
            try:
                response = await client.get(
                    target_url,
                    timeout=self.settings.FETCH_TIMEOUT,
                    follow_redirects=True,
                )
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                error_log("[FETCH] request failed", url=truncate_url(url), error=str(exc))
                raise FetchError(url, f"{type(exc).__name__}: {exc}") from exc

        if not response.is_success:
            error_log("[FETCH] non-success status", url=truncate_url(url), status_code=response.status_code)
            raise FetchError(url, response.reason_phrase, status_code=response.status_code)

        data = response.content
        mime_type = identify(data, url, response.headers.get("content-type"), family)

        debug_log(
            "[FETCH] downloaded",
            url=truncate_url(url),
            family=family,
            mime_type=mime_type,
            size=len(data),
        )
        return FetchedContent(data=data, mime_type=mime_type, url=url)

    # ------------------------------------------------------------------
    # Redirect resolution
    # ------------------------------------------------------------------

    async def _follow_redirects(self, client: httpx.AsyncClient, url: str) -> str:
        visited = set()
        current = url
        method = "HEAD"
        hops = 0

        while True:
            if current in visited:
                raise RedirectResolutionError(f"Circular redirect detected for URL: {current}")
            visited.add(current)

            try:
                request = client.build_request(
                    method,
                    current,
                    headers={"User-Agent": BROWSER_USER_AGENT},
                    timeout=self.settings.REDIRECT_TIMEOUT,
                )
                response = await client.send(request, stream=True, follow_redirects=False)
                await response.aclose()
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                raise RedirectResolutionError(f"Error resolving URL {current}: {type(exc).__name__}: {exc}") from exc

            status = response.status_code
            location = response.headers.get("location")

            if 300 <= status < 400 and location:
                hops += 1
                if hops > self.settings.MAX_REDIRECTS:
                    raise RedirectResolutionError(f"Max redirects exceeded for URL: {url}")
                current = urljoin(current, location)
                continue

            if 200 <= status < 300:
                return current

            if status in (403, 405) and method == "HEAD":
                debug_log("[REDIRECT] HEAD rejected, retrying with GET", url=current, status_code=status)
                visited.discard(current)
                method = "GET"
                continue

            raise RedirectResolutionError(f"Failed to resolve URL: {current}, status: {status}")

    async def resolve_redirects(self, url: str) -> str:
        """
        Follow redirects for ``url`` and return the final location.

        Never raises: non-HTTP URLs, cycles, more than MAX_REDIRECTS hops,
        transport errors and timeouts all return ``url`` unchanged.
        """
        if not url.startswith(("http://", "https://")):
            return url

        async with self._use_client() as client:
            try:
                resolved = await self._follow_redirects(client, url)
            except RedirectResolutionError as exc:
                warning_log("[REDIRECT] returning original URL", url=url, reason=exc.message)
                return url

        if resolved != url:
            debug_log("[REDIRECT] resolved", url=url, resolved=resolved)
        return resolved

    async def annotate_grounding_chunks(self, chunks: Optional[List[Dict[str, Any]]]) -> Optional[List[Dict[str, Any]]]:
        """Add ``web.resolved_uri`` to each grounding chunk, resolving links concurrently."""
        if chunks is None:
            return None

        async def _annotate(chunk: Dict[str, Any]) -> Dict[str, Any]:
            web = chunk.get("web") if isinstance(chunk, dict) else None
            if not web or not web.get("uri"):
                return chunk
            resolved = await self.resolve_redirects(web["uri"])
            return {**chunk, "web": {**web, "resolved_uri": resolved}}

        # gather keeps input order
        return list(await asyncio.gather(*(_annotate(chunk) for chunk in chunks)))
