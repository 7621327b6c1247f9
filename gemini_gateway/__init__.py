"""
gemini_gateway package - OpenAI chat completions translated onto the Gemini API
"""

from .config import settings, get_settings, Settings
from .helpers import debug_log, get_logger, configure_structlog
from .schemas import ChatCompletionRequest, Message, ContentPart
from .content_fetcher import ContentFetcher
from .asset_publisher import AssetPublisher
from .message_translator import MessageTranslator
from .response_translator import ResponseTranslator
from .gemini_transformer import GeminiTransformer

__all__ = [
    "settings",
    "get_settings",
    "Settings",
    "debug_log",
    "get_logger",
    "configure_structlog",
    "ChatCompletionRequest",
    "Message",
    "ContentPart",
    "ContentFetcher",
    "AssetPublisher",
    "MessageTranslator",
    "ResponseTranslator",
    "GeminiTransformer",
]
