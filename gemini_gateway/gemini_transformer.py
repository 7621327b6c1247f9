#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Gemini format transformer - builds generateContent bodies and OpenAI completions
"""

import time
from typing import Any, Dict, List, Optional

from fastuuid import uuid4

from .config import REASONING_EFFORT_BUDGETS, SUPPORTED_MODALITIES, Settings, settings as default_settings
from .content_fetcher import ContentFetcher
from .exceptions import EmptyCompletionError, ValidationError
from .helpers import debug_log, error_log, info_log, warning_log, perf_track
from .message_translator import MessageTranslator, TranslatedConversation
from .response_translator import ResponseTranslator, extract_usage, map_finish_reason
from .schemas import (
    ChatCompletionChoice,
    ChatCompletionMessage,
    ChatCompletionRequest,
    ChatCompletionResponse,
    GeminiResponse,
)

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)

_GOOGLE_SEARCH_KEYS = ("googleSearch", "google_search")


def generate_completion_id() -> str:
    return "chatcmpl-" + str(uuid4()).replace("-", "")


def map_reasoning_effort(effort: Optional[str]) -> Optional[int]:
    """Thinking budget for a reasoning_effort value; None when the field is absent."""
    if effort is None:
        return None
    return REASONING_EFFORT_BUDGETS[effort]


def normalize_modalities(modalities: Optional[List[str]]) -> Optional[List[str]]:
    """Keep recognised modalities (case-insensitive), upper-cased; empty results count as absent."""
    if modalities is None:
        return None

    normalized: List[str] = []
    for modality in modalities:
        value = str(modality).strip().lower()
        if value not in SUPPORTED_MODALITIES:
            warning_log("[TRANSFORM] ignoring unsupported modality", modality=modality)
            continue
        if value.upper() not in normalized:
            normalized.append(value.upper())

    return normalized or None


def normalize_tools(tools: Optional[List[Dict[str, Any]]]) -> Optional[List[Dict[str, Any]]]:
    """Pass tools through, folding both google search spellings onto ``googleSearch``."""
    if not tools:
        return None

    normalized = []
    for tool in tools:
        search_key = next((key for key in _GOOGLE_SEARCH_KEYS if key in tool), None)
        if search_key is not None:
            normalized.append({"googleSearch": tool.get(search_key) or {}})
        else:
            normalized.append(tool)
    return normalized


class GeminiTransformer:
    """Gemini transformer"""

    def __init__(
        self,
        message_translator: MessageTranslator,
        response_translator: ResponseTranslator,
        fetcher: ContentFetcher,
        config: Optional[Settings] = None,
    ) -> None:
        self.settings = config or default_settings
        self.message_translator = message_translator
        self.response_translator = response_translator
        self.fetcher = fetcher

    def build_generation_config(self, request: ChatCompletionRequest) -> Dict[str, Any]:
        temperature = request.temperature if request.temperature is not None else self.settings.DEFAULT_TEMPERATURE
        generation_config: Dict[str, Any] = {"temperature": temperature}

        modalities = normalize_modalities(request.modalities)
        if modalities is None or modalities == ["TEXT"]:
            generation_config["responseMimeType"] = self.settings.RESPONSE_MIME_TYPE
        if modalities is not None:
            generation_config["responseModalities"] = modalities

        thinking_budget = map_reasoning_effort(request.reasoning_effort)
        if thinking_budget is not None:
            generation_config["thinkingConfig"] = {"thinkingBudget": thinking_budget}

        return generation_config

    @perf_track("transform_request_in", threshold_ms=10)
    async def transform_request_in(self, request: ChatCompletionRequest) -> Dict[str, Any]:
        """
        Convert an OpenAI request into a Gemini generateContent body.

        Raises:
            TranslationError: a media URL could not be fetched
            ValidationError: nothing left to send after translation
        """
        info_log("[TRANSFORM] OpenAI -> Gemini", model=request.model)

        conversation: TranslatedConversation = await self.message_translator.translate(request.messages or [])
        if conversation.is_empty:
            raise ValidationError(
                "No user/assistant messages or system instruction provided after processing.",
                details="The conversation is empty after translation.",
            )

        body: Dict[str, Any] = {
            "contents": [content.model_dump(by_alias=True, exclude_none=True) for content in conversation.contents],
            "generationConfig": self.build_generation_config(request),
            "safetySettings": [
                {"category": category, "threshold": "BLOCK_NONE"} for category in SAFETY_CATEGORIES
            ],
        }
        if conversation.system_instruction is not None:
            body["systemInstruction"] = conversation.system_instruction.model_dump(by_alias=True, exclude_none=True)

        tools = normalize_tools(request.tools)
        if tools:
            body["tools"] = tools

        debug_log(
            "[TRANSFORM] generateContent body ready",
            contents=len(body["contents"]),
            generation_config=body["generationConfig"],
            tools=len(tools or []),
        )
        return body

    async def _grounding_metadata(self, metadata: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if not metadata:
            return None
        chunks = metadata.get("groundingChunks")
        if not chunks or not self.settings.RESOLVE_GROUNDING_REDIRECTS:
            return metadata
        return {**metadata, "groundingChunks": await self.fetcher.annotate_grounding_chunks(chunks)}

    async def transform_response_out(self, response: GeminiResponse, model: str) -> Dict[str, Any]:
        """
        Convert a Gemini response into an OpenAI chat.completion object.

        Raises:
            EmptyCompletionError: the response carries no candidates
        """
        if not response.candidates:
            feedback = response.prompt_feedback or {}
            error_log("[TRANSFORM] no candidates in Gemini response", block_reason=feedback.get("blockReason"))
            raise EmptyCompletionError(
                block_reason=feedback.get("blockReason"),
                safety_ratings=feedback.get("safetyRatings"),
            )

        candidate = response.candidates[0]
        parts = candidate.content.parts if candidate.content else []
        content = await self.response_translator.translate_parts(parts)

        completion = ChatCompletionResponse(
            id=generate_completion_id(),
            created=int(time.time()),
            model=model,
            choices=[
                ChatCompletionChoice(
                    index=0,
                    message=ChatCompletionMessage(content=content),
                    finish_reason=map_finish_reason(candidate.finish_reason),
                    grounding_metadata=await self._grounding_metadata(candidate.grounding_metadata),
                )
            ],
            usage=extract_usage(response.usage_metadata),
        )
        return completion.model_dump(exclude_none=True)
