"""Thin REST client for the Gemini generateContent endpoint."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..config import Settings, settings as default_settings
from ..exceptions import UpstreamError
from ..helpers import debug_log, error_log, info_log, request_stage_log
from ..schemas import GeminiResponse

RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)


class GeminiClient:
    """Call ``models/{model}:generateContent`` with the caller's API key."""

    def __init__(self, config: Optional[Settings] = None, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self.settings = config or default_settings
        self.http_client = http_client

    def endpoint(self, model: str) -> str:
        model_id = model[len("models/"):] if model.startswith("models/") else model
        base = self.settings.GEMINI_API_BASE.rstrip("/")
        return f"{base}/{self.settings.GEMINI_API_VERSION}/models/{model_id}:generateContent"

    @staticmethod
    def calculate_backoff_delay(
        retry_count: int,
        status_code: Optional[int] = None,
        base_delay: float = 1.5,
        max_delay: float = 8.0,
    ) -> float:
        linear_delay = base_delay * retry_count

        if status_code == 429:
            linear_delay *= 1.5
        elif status_code in [502, 503, 504]:
            linear_delay *= 1.2

        linear_delay = min(linear_delay, max_delay)
        jitter = linear_delay * 0.2
        return max(linear_delay + (2 * jitter * (time.time() % 1) - jitter), 0.5)

    async def _post(self, client: httpx.AsyncClient, url: str, body: Dict[str, Any], api_key: str) -> httpx.Response:
        headers = {
            "Content-Type": "application/json",
            self.settings.GEMINI_API_KEY_HEADER: api_key,
        }
        try:
            return await client.post(url, json=body, headers=headers, timeout=self.settings.UPSTREAM_TIMEOUT)
        except httpx.HTTPError as exc:
            raise UpstreamError(
                f"Error fetching from {url}: {type(exc).__name__}: {exc}",
                status_code=502,
            ) from exc

    async def generate_content(self, model: str, body: Dict[str, Any], api_key: str) -> GeminiResponse:
        """
        Send one generateContent request.

        Raises:
            UpstreamError: transport failure, non-2xx status or an unparseable body
        """
        if self.http_client is None:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.settings.UPSTREAM_TIMEOUT)) as client:
                return await self._generate(client, model, body, api_key)
        return await self._generate(self.http_client, model, body, api_key)

    async def _generate(self, client: httpx.AsyncClient, model: str, body: Dict[str, Any], api_key: str) -> GeminiResponse:
        url = self.endpoint(model)
        retry_count = 0
        last_status_code = None

        while True:
            if retry_count > 0:
                delay = self.calculate_backoff_delay(retry_count, last_status_code)
                info_log("[RETRY] retrying upstream request", retry_count=retry_count, delay=f"{delay:.2f}s")
                await asyncio.sleep(delay)

            request_stage_log("upstream_request", "sending generateContent request", attempt=retry_count + 1, model=model)
            started = time.perf_counter()
            response = await self._post(client, url, body, api_key)
            debug_log("⏱️ upstream latency", elapsed_ms=f"{(time.perf_counter() - started) * 1000:.2f}ms")

            if response.is_success:
                break

            last_status_code = response.status_code
            error_text = response.text
            error_log("[UPSTREAM] error response", status_code=response.status_code, error_detail=error_text[:200])

            if response.status_code in RETRYABLE_STATUS_CODES and retry_count < self.settings.MAX_RETRIES:
                retry_count += 1
                continue

            raise UpstreamError(
                f"[GoogleGenerativeAI Error]: Error fetching from {url}: "
                f"got status: {response.status_code} {response.reason_phrase}. {error_text}",
                status_code=response.status_code,
                body=error_text,
            )

        try:
            payload = response.json()
            result = GeminiResponse.model_validate(payload)
        except (ValueError, PydanticValidationError) as exc:
            raise UpstreamError(f"Invalid response from Gemini API: {exc}", status_code=502) from exc

        request_stage_log("upstream_response", "generateContent succeeded", candidates=len(result.candidates))
        return result
