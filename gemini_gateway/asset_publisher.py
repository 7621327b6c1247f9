#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Asset publishing - upload generated images to the bucket server

Publishing never fails outward: when the upload does not succeed the payload
is returned as a self-contained data URL instead.
"""

import base64
import binascii
import time
from contextlib import asynccontextmanager
from io import BytesIO
from typing import Any, AsyncIterator, Optional

import httpx

from .config import Settings, settings as default_settings
from .exceptions import PublishError
from .helpers import debug_log, error_log, info_log, warning_log, perf_track

MIME_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/bmp": ".bmp",
    "image/svg+xml": ".svg",
    "image/tiff": ".tiff",
    "image/x-icon": ".ico",
}


def get_extension_from_mime_type(mime_type: str) -> str:
    return MIME_EXTENSIONS.get((mime_type or "").lower(), ".jpg")


def generate_filename(mime_type: str) -> str:
    return f"generated-image-{int(time.time() * 1000)}{get_extension_from_mime_type(mime_type)}"


def build_data_url(base64_data: str, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64_data}"


def _url_value(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def extract_uploaded_url(result: Any) -> str:
    """
    Pull the public URL out of a bucket server response.

    Accepted shapes: ``{"fileUrl": ...}``, ``{"success": true, "url": ...}``,
    ``{"url": ...}`` and a bare ``"http..."`` string. URL values must be
    non-empty strings.

    Raises:
        PublishError: any other shape
    """
    if isinstance(result, dict):
        file_url = _url_value(result.get("fileUrl"))
        if file_url:
            return file_url
        url = _url_value(result.get("url"))
        if url:
            return url
        reason = result.get("error") or result.get("message") or "Unknown response format"
        raise PublishError(f"Bucket server upload failed: {reason}")

    if isinstance(result, str) and result.startswith("http"):
        return result

    raise PublishError("Bucket server upload failed: Unknown response format")


class AssetPublisher:
    """Upload binary assets to the bucket server, falling back to data URLs."""

    def __init__(self, config: Optional[Settings] = None, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self.settings = config or default_settings
        self.http_client = http_client
        # advisory only, refreshed by check_health()
        self.bucket_available: Optional[bool] = None

    @property
    def upload_url(self) -> str:
        return self.settings.bucket_upload_url

    @property
    def health_url(self) -> str:
        if self.settings.BUCKET_API_URL:
            url = self.settings.BUCKET_API_URL.rstrip("/")
            return url[: -len("/upload")] if url.endswith("/upload") else url
        return self.settings.bucket_base_url

    @asynccontextmanager
    async def _use_client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.http_client is not None:
            yield self.http_client
            return
        client = httpx.AsyncClient(timeout=httpx.Timeout(self.settings.UPLOAD_TIMEOUT))
        try:
            yield client
        finally:
            await client.aclose()

    async def upload(self, base64_data: str, mime_type: str, filename: Optional[str] = None) -> str:
        """
        Upload a base64 payload as a multipart ``file`` field.

        Raises:
            PublishError: undecodable payload, transport failure, non-2xx status
                or an unrecognised response body
        """
        try:
            image_bytes = base64.b64decode(base64_data, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise PublishError(f"Invalid base64 payload: {exc}") from exc

        final_filename = filename or generate_filename(mime_type)
        files = {"file": (final_filename, BytesIO(image_bytes), mime_type)}
        headers = {"Accept": "application/json"}
        if self.settings.BUCKET_API_KEY:
            headers["x-api-key"] = self.settings.BUCKET_API_KEY

        info_log("[UPLOAD] uploading asset to bucket server", url=self.upload_url, filename=final_filename, size=len(image_bytes))

        async with self._use_client() as client:
            try:
                response = await client.post(
                    self.upload_url,
                    files=files,
                    headers=headers,
                    timeout=self.settings.UPLOAD_TIMEOUT,
                )
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                raise PublishError(f"Failed to upload image to bucket: {type(exc).__name__}: {exc}") from exc

        if not response.is_success:
            raise PublishError(
                f"Failed to upload image to bucket: {response.status_code} {response.reason_phrase} - {response.text[:500]}"
            )

        try:
            result = response.json()
        except ValueError:
            result = response.text.strip()

        debug_log("[UPLOAD] bucket server response", status_code=response.status_code, body=str(result)[:500])

        url = extract_uploaded_url(result)
        info_log("[UPLOAD] asset uploaded", url=url)
        return url

    @perf_track("publish_asset", threshold_ms=50)
    async def publish(self, base64_data: str, mime_type: str, filename: Optional[str] = None) -> str:
        """Upload, or return a ``data:`` URL carrying the original payload if the upload fails."""
        try:
            return await self.upload(base64_data, mime_type, filename)
        except PublishError as exc:
            warning_log("[UPLOAD] upload failed, falling back to data URL", error=exc.message)
            return build_data_url(base64_data, mime_type)

    async def check_health(self) -> bool:
        """Best-effort GET against the bucket base URL; only logs, never gates."""
        async with self._use_client() as client:
            try:
                response = await client.get(
                    self.health_url,
                    headers={"User-Agent": "gemini-gateway"},
                    timeout=self.settings.REDIRECT_TIMEOUT,
                )
                available = response.is_success
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                warning_log("[UPLOAD] bucket server health check failed", url=self.health_url, error=str(exc))
                available = False

        self.bucket_available = available
        if available:
            info_log("[UPLOAD] bucket server reachable", url=self.health_url)
        else:
            error_log("[UPLOAD] bucket server unavailable, generated images will be returned as data URLs", url=self.health_url)
        return available
