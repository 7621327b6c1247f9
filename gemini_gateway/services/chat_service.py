"""Service layer orchestrating OpenAI-compatible chat completions against Gemini."""

from __future__ import annotations

import re
from typing import Optional, Tuple

import httpx

from ..asset_publisher import AssetPublisher
from ..config import Settings, settings as default_settings
from ..content_fetcher import ContentFetcher
from ..exceptions import GatewayError, UpstreamError, ValidationError
from ..gemini_transformer import GeminiTransformer
from ..helpers import (
    bind_request_context,
    error_log,
    request_stage_log,
    reset_request_context,
)
from ..message_translator import MessageTranslator
from ..response_translator import ResponseTranslator
from ..schemas import ChatCompletionRequest
from .gemini_client import GeminiClient
from .network_manager import NetworkManager, network_manager as default_network_manager

_GOT_STATUS_PATTERN = re.compile(r"got status:\s*(\d{3})")
_JSON_ERROR_CODE_PATTERN = re.compile(r'\{\s*"error"\s*:\s*\{[^{}]*?"code"\s*:\s*(\d{3})')
_INVALID_KEY_MARKERS = ("api key not valid", "api_key_invalid")


def _valid_status(code: Optional[int]) -> Optional[int]:
    if isinstance(code, int) and 100 <= code <= 599:
        return code
    return None


def derive_status_code(error: Exception) -> int:
    """
    Best-effort HTTP status for an upstream failure.

    Order: a ``got status: <code>`` fragment, a JSON ``{"error":{"code":<n>}}``
    fragment, the status carried on the exception, then 500.
    """
    text = error.message if isinstance(error, GatewayError) else str(error)

    for pattern in (_GOT_STATUS_PATTERN, _JSON_ERROR_CODE_PATTERN):
        match = pattern.search(text)
        if match and _valid_status(int(match.group(1))):
            return int(match.group(1))

    carried = _valid_status(getattr(error, "upstream_status", None))
    return carried or 500


def is_invalid_api_key_error(error: Exception) -> bool:
    text = (error.message if isinstance(error, GatewayError) else str(error)).lower()
    return any(marker in text for marker in _INVALID_KEY_MARKERS)


def error_response(error: Exception) -> Tuple[int, dict]:
    """Map any exception onto ``(status_code, {"error": ..., "details": ...})``."""
    if isinstance(error, UpstreamError):
        if is_invalid_api_key_error(error):
            return 401, {"error": "Invalid Google Gemini API Key", "details": error.message}
        return derive_status_code(error), error.to_payload()

    if isinstance(error, GatewayError):
        return error.status_code, error.to_payload()

    return 500, {"error": "Internal server error", "details": str(error)}


class ChatCompletionService:
    """Encapsulate the chat completion workflow independent of the FastAPI layer."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        network: Optional[NetworkManager] = None,
    ) -> None:
        self.settings = config or default_settings
        self.network = network or default_network_manager

    def build_transformer(self, client: httpx.AsyncClient) -> GeminiTransformer:
        fetcher = ContentFetcher(self.settings, http_client=client)
        publisher = AssetPublisher(self.settings, http_client=client)
        return GeminiTransformer(
            message_translator=MessageTranslator(fetcher),
            response_translator=ResponseTranslator(publisher),
            fetcher=fetcher,
            config=self.settings,
        )

    def build_gemini_client(self, client: httpx.AsyncClient) -> GeminiClient:
        return GeminiClient(self.settings, http_client=client)

    @staticmethod
    def validate_request(request: ChatCompletionRequest) -> None:
        if not request.model or request.messages is None:
            raise ValidationError(
                "Missing or invalid model or messages in request body",
                details="Both 'model' and a 'messages' array are required.",
            )

    async def create_completion(self, request: ChatCompletionRequest, api_key: str) -> dict:
        """
        Run one non-streaming chat completion.

        Raises:
            GatewayError: validation, media fetch or upstream failures
        """
        self.validate_request(request)
        bind_request_context(model=request.model)
        try:
            client = await self.network.get_client()
            transformer = self.build_transformer(client)

            body = await transformer.transform_request_in(request)
            request_stage_log("transformed", "request converted to Gemini format", contents=len(body["contents"]))

            response = await self.build_gemini_client(client).generate_content(request.model, body, api_key)

            completion = await transformer.transform_response_out(response, request.model)
            request_stage_log(
                "completed",
                "completion ready",
                finish_reason=completion["choices"][0]["finish_reason"],
                prompt_tokens=completion["usage"]["prompt_tokens"],
                completion_tokens=completion["usage"]["completion_tokens"],
            )
            return completion
        except GatewayError as exc:
            error_log("[REQUEST] completion failed", error_type=type(exc).__name__, error=exc.message)
            raise
        finally:
            reset_request_context("model")


chat_completion_service = ChatCompletionService()
