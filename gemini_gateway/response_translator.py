#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Response translator - Gemini candidate parts -> OpenAI message content
"""

import asyncio
from typing import Dict, List, Optional, Union

from .asset_publisher import AssetPublisher
from .helpers import error_log, info_log
from .schemas import (
    GeminiResponsePart,
    GeminiUsageMetadata,
    PromptTokensDetails,
    ResponseContentPart,
    ResponseImageUrl,
    ResponseImageUrlPart,
    ResponseTextPart,
    Usage,
)

# Keys are upper-cased before lookup; the normalised values map onto themselves
FINISH_REASON_MAP: Dict[str, str] = {
    "STOP": "stop",
    "RECITATION": "stop",
    "MAX_TOKENS": "length",
    "SAFETY": "content_filter",
    "LENGTH": "length",
    "CONTENT_FILTER": "content_filter",
}


def map_finish_reason(reason: Optional[str]) -> str:
    """Map a Gemini finish reason onto stop / length / content_filter."""
    if not reason:
        return "stop"
    return FINISH_REASON_MAP.get(str(reason).upper(), "stop")


def extract_usage(usage_metadata: Optional[GeminiUsageMetadata]) -> Usage:
    """Build OpenAI usage counters; missing counters are 0, a missing total is prompt + completion."""
    if usage_metadata is None:
        return Usage()

    prompt_tokens = usage_metadata.prompt_token_count or 0
    completion_tokens = usage_metadata.candidates_token_count
    if completion_tokens is None:
        completion_tokens = usage_metadata.candidate_token_count or 0
    total_tokens = usage_metadata.total_token_count
    if total_tokens is None:
        total_tokens = prompt_tokens + completion_tokens

    details = None
    if usage_metadata.cached_content_token_count is not None:
        details = PromptTokensDetails(cached_tokens=usage_metadata.cached_content_token_count)

    return Usage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
        prompt_tokens_details=details,
    )


def is_image_part(part: GeminiResponsePart) -> bool:
    inline = part.inline_data
    return bool(inline and inline.data and (inline.mime_type or "").startswith("image/"))


class ResponseTranslator:
    """Turn Gemini parts into a plain string, or mixed text/image_url parts when images are present."""

    def __init__(self, publisher: AssetPublisher) -> None:
        self.publisher = publisher

    async def translate_parts(self, parts: List[GeminiResponsePart]) -> Union[str, List[ResponseContentPart]]:
        if not any(is_image_part(part) for part in parts):
            return "".join(part.text or "" for part in parts)

        results: List[Optional[ResponseContentPart]] = [None] * len(parts)
        image_indexes: List[int] = []

        for index, part in enumerate(parts):
            if is_image_part(part):
                image_indexes.append(index)
            elif part.text:
                results[index] = ResponseTextPart(text=part.text)

        # uploads run concurrently; outcomes are written back by original index
        outcomes = await asyncio.gather(
            *(
                self.publisher.publish(parts[index].inline_data.data, parts[index].inline_data.mime_type)
                for index in image_indexes
            ),
            return_exceptions=True,
        )

        for index, outcome in zip(image_indexes, outcomes):
            if isinstance(outcome, Exception):
                error_log("[RESPONSE] image part failed", index=index, error=str(outcome))
                results[index] = ResponseTextPart(text=f"[Image processing failed: {outcome}]")
            elif isinstance(outcome, BaseException):
                raise outcome
            elif not isinstance(outcome, str) or not outcome:
                error_log("[RESPONSE] image part produced no URL", index=index, outcome=repr(outcome))
                results[index] = ResponseTextPart(text=f"[Image processing failed: invalid URL {outcome!r}]")
            else:
                results[index] = ResponseImageUrlPart(image_url=ResponseImageUrl(url=outcome))
                info_log(
                    "[RESPONSE] image part published",
                    index=index,
                    kind="data URL" if outcome.startswith("data:") else "uploaded URL",
                )

        return [result for result in results if result is not None]
