"""
Application data models

Source side: OpenAI chat-completion request/response shapes.
Target side: Gemini generateContent request/response shapes (camelCase on the wire).
"""

from typing import Annotated, Dict, List, Optional, Any, Union, Literal

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# OpenAI request side
# ============================================================================

class ImageUrl(BaseModel):
    """Image URL model"""
    url: str
    detail: Optional[str] = "auto"


class FileUrl(BaseModel):
    """Document, audio or video-hosting URL"""
    url: str


class AudioUrl(BaseModel):
    """Audio URL"""
    url: str


class TextPart(BaseModel):
    type: Literal["text"]
    text: str


class ImageUrlPart(BaseModel):
    type: Literal["image_url"]
    image_url: ImageUrl


class FileUrlPart(BaseModel):
    type: Literal["file_url"]
    file_url: FileUrl


class AudioUrlPart(BaseModel):
    type: Literal["audio_url"]
    audio_url: AudioUrl


ContentPart = Annotated[
    Union[TextPart, ImageUrlPart, FileUrlPart, AudioUrlPart],
    Field(discriminator="type"),
]

MediaPart = Union[ImageUrlPart, FileUrlPart, AudioUrlPart]


class Message(BaseModel):
    """Chat message model"""
    model_config = ConfigDict(extra="allow")

    role: Literal["system", "user", "assistant"]
    content: Union[str, List[ContentPart]]


class ChatCompletionRequest(BaseModel):
    """OpenAI-compatible request model"""
    model_config = ConfigDict(extra="allow")

    model: Optional[str] = None
    messages: Optional[List[Message]] = None
    stream: Optional[bool] = False
    temperature: Optional[float] = None
    reasoning_effort: Optional[Literal["none", "low", "medium", "high"]] = None
    tools: Optional[List[Dict[str, Any]]] = None
    modalities: Optional[List[str]] = None


# ============================================================================
# Gemini side
# ============================================================================

class _GeminiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class InlineData(_GeminiModel):
    mime_type: str = Field(alias="mimeType")
    data: str


class FileData(_GeminiModel):
    file_uri: str = Field(alias="fileUri")
    mime_type: str = Field(alias="mimeType")


class GeminiTextPart(_GeminiModel):
    text: str


class GeminiInlineDataPart(_GeminiModel):
    inline_data: InlineData = Field(alias="inlineData")


class GeminiFileDataPart(_GeminiModel):
    file_data: FileData = Field(alias="fileData")


GeminiPart = Union[GeminiInlineDataPart, GeminiFileDataPart, GeminiTextPart]


class GeminiContent(_GeminiModel):
    """One role-tagged block of the Gemini ``contents`` list."""
    role: Optional[Literal["user", "model"]] = None
    parts: List[GeminiPart]


class GeminiResponsePart(_GeminiModel):
    """Response part; any subset of fields may be present."""
    text: Optional[str] = None
    inline_data: Optional[InlineData] = Field(default=None, alias="inlineData")


class GeminiResponseContent(_GeminiModel):
    role: Optional[str] = None
    parts: List[GeminiResponsePart] = Field(default_factory=list)


class GeminiCandidate(_GeminiModel):
    content: Optional[GeminiResponseContent] = None
    finish_reason: Optional[str] = Field(default=None, alias="finishReason")
    grounding_metadata: Optional[Dict[str, Any]] = Field(default=None, alias="groundingMetadata")


class GeminiUsageMetadata(_GeminiModel):
    prompt_token_count: Optional[int] = Field(default=None, alias="promptTokenCount")
    candidates_token_count: Optional[int] = Field(default=None, alias="candidatesTokenCount")
    candidate_token_count: Optional[int] = Field(default=None, alias="candidateTokenCount")
    total_token_count: Optional[int] = Field(default=None, alias="totalTokenCount")
    cached_content_token_count: Optional[int] = Field(default=None, alias="cachedContentTokenCount")


class GeminiResponse(_GeminiModel):
    candidates: List[GeminiCandidate] = Field(default_factory=list)
    usage_metadata: Optional[GeminiUsageMetadata] = Field(default=None, alias="usageMetadata")
    prompt_feedback: Optional[Dict[str, Any]] = Field(default=None, alias="promptFeedback")


# ============================================================================
# OpenAI response side
# ============================================================================

class ResponseImageUrl(BaseModel):
    url: str


class ResponseTextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ResponseImageUrlPart(BaseModel):
    type: Literal["image_url"] = "image_url"
    image_url: ResponseImageUrl


ResponseContentPart = Union[ResponseTextPart, ResponseImageUrlPart]


class PromptTokensDetails(BaseModel):
    cached_tokens: int


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    prompt_tokens_details: Optional[PromptTokensDetails] = None


class ChatCompletionMessage(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: Union[str, List[ResponseContentPart]]


class ChatCompletionChoice(BaseModel):
    index: int = 0
    message: ChatCompletionMessage
    finish_reason: str
    grounding_metadata: Optional[Dict[str, Any]] = None


class ChatCompletionResponse(BaseModel):
    id: str
    object: Literal["chat.completion"] = "chat.completion"
    created: int
    model: str
    choices: List[ChatCompletionChoice]
    usage: Usage
