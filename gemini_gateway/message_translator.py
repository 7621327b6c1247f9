#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Message translator - OpenAI chat messages -> Gemini contents

Within every Gemini content block, media parts come first and text parts
after, whatever their order in the source message.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional

from .content_fetcher import ContentFetcher, FetchedContent
from .exceptions import FetchError, TranslationError
from .helpers import debug_log, info_log, warning_log, perf_timer, truncate_url
from .mime_sniffer import FAMILY_AUDIO, FAMILY_FILE, FAMILY_IMAGE
from .schemas import (
    AudioUrlPart,
    FileData,
    FileUrlPart,
    GeminiContent,
    GeminiFileDataPart,
    GeminiInlineDataPart,
    GeminiPart,
    GeminiTextPart,
    ImageUrlPart,
    InlineData,
    MediaPart,
    Message,
    TextPart,
)

VIDEO_WILDCARD_MIME = "video/*"

# watch / shorts / embed / youtu.be forms, 11-char id, optional trailing query
YOUTUBE_URL_PATTERN = re.compile(
    r"^(?:https?://)?(?:www\.|m\.)?"
    r"(?:youtube\.com/(?:watch\?v=|shorts/|embed/)|youtu\.be/)"
    r"([A-Za-z0-9_-]{11})"
    r"(?:[?&#].*)?$"
)


def is_video_hosting_url(url: str) -> bool:
    return bool(YOUTUBE_URL_PATTERN.match(url or ""))


def find_system_message(messages: List[Message]) -> Optional[Message]:
    """Only the first system message is honoured."""
    for message in messages:
        if message.role == "system":
            return message
    return None


@dataclass
class TranslatedConversation:
    contents: List[GeminiContent] = field(default_factory=list)
    system_instruction: Optional[GeminiContent] = None

    @property
    def is_empty(self) -> bool:
        return not self.contents and self.system_instruction is None


class MessageTranslator:
    """
    Translate OpenAI messages into Gemini content blocks.

    Media resolution is sequential and fail-fast: the first fetch failure
    aborts the whole translation.
    """

    def __init__(self, fetcher: ContentFetcher) -> None:
        self.fetcher = fetcher

    def build_system_instruction(self, message: Optional[Message]) -> Optional[GeminiContent]:
        if message is None:
            return None

        if isinstance(message.content, str):
            return GeminiContent(parts=[GeminiTextPart(text=message.content)])

        warning_log("[TRANSLATE] system message has structured content, only the first text part is used")
        for part in message.content:
            if isinstance(part, TextPart):
                return GeminiContent(parts=[GeminiTextPart(text=part.text)])
        return None

    @staticmethod
    def _inline(fetched: FetchedContent) -> GeminiInlineDataPart:
        return GeminiInlineDataPart(
            inline_data=InlineData(mime_type=fetched.mime_type, data=fetched.base64_data)
        )

    async def resolve_media_part(self, part: MediaPart) -> GeminiPart:
        """Resolve one media part into inline data or a file reference."""
        if isinstance(part, ImageUrlPart):
            return self._inline(await self.fetcher.fetch(part.image_url.url, FAMILY_IMAGE))

        if isinstance(part, FileUrlPart):
            url = part.file_url.url
            if is_video_hosting_url(url):
                debug_log("[TRANSLATE] video-hosting link passed by reference", url=url)
                return GeminiFileDataPart(file_data=FileData(file_uri=url, mime_type=VIDEO_WILDCARD_MIME))
            return self._inline(await self.fetcher.fetch(url, FAMILY_FILE))

        if isinstance(part, AudioUrlPart):
            return self._inline(await self.fetcher.fetch(part.audio_url.url, FAMILY_AUDIO))

        raise TypeError(f"Unsupported media part: {type(part).__name__}")

    @staticmethod
    def _media_url(part: MediaPart) -> str:
        if isinstance(part, ImageUrlPart):
            return part.image_url.url
        if isinstance(part, FileUrlPart):
            return part.file_url.url
        return part.audio_url.url

    async def translate_message(self, message: Message) -> Optional[GeminiContent]:
        role = "model" if message.role == "assistant" else "user"

        if isinstance(message.content, str):
            return GeminiContent(role=role, parts=[GeminiTextPart(text=message.content)])

        media_parts: List[GeminiPart] = []
        text_parts: List[GeminiPart] = []

        for part in message.content:
            if isinstance(part, TextPart):
                text_parts.append(GeminiTextPart(text=part.text))
                continue

            url = self._media_url(part)
            try:
                media_parts.append(await self.resolve_media_part(part))
            except FetchError as exc:
                raise TranslationError(truncate_url(url, 200), exc) from exc

        parts = media_parts + text_parts
        if not parts:
            return None
        return GeminiContent(role=role, parts=parts)

    async def translate(self, messages: List[Message]) -> TranslatedConversation:
        """
        Translate a whole conversation.

        Raises:
            TranslationError: a media URL could not be fetched
        """
        conversation = TranslatedConversation(
            system_instruction=self.build_system_instruction(find_system_message(messages))
        )

        with perf_timer("translate_messages", threshold_ms=5):
            for message in messages:
                if message.role == "system":
                    continue
                content = await self.translate_message(message)
                if content is not None:
                    conversation.contents.append(content)

        info_log(
            "[TRANSLATE] messages translated",
            blocks=len(conversation.contents),
            has_system_instruction=conversation.system_instruction is not None,
        )
        return conversation
