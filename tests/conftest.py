"""Shared fixtures: settings factories, pooled clients and sample payloads.

All outbound HTTP is mocked with respx; nothing here touches the network.
"""

import base64

import httpx
import pytest
import pytest_asyncio

from gemini_gateway.asset_publisher import AssetPublisher
from gemini_gateway.config import Settings
from gemini_gateway.content_fetcher import ContentFetcher
from gemini_gateway.message_translator import MessageTranslator
from gemini_gateway.response_translator import ResponseTranslator

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + b"\x00" * 16
PNG_BASE64 = base64.b64encode(PNG_BYTES).decode("ascii")
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * 16

BUCKET_UPLOAD_URL = "http://bucket.test:3003/upload"


def make_settings(**overrides) -> Settings:
    values = {
        "LOG_LEVEL": "false",
        "TRANSFORM_SOURCE_HOSTNAME": None,
        "TRANSFORM_TARGET_PORT": None,
        "BUCKET_API_URL": BUCKET_UPLOAD_URL,
        "BUCKET_API_KEY": None,
        "HTTP_PROXY": None,
        "HTTPS_PROXY": None,
        "MAX_RETRIES": 0,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest_asyncio.fixture
async def http_client():
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def fetcher(settings, http_client) -> ContentFetcher:
    return ContentFetcher(settings, http_client=http_client)


@pytest.fixture
def publisher(settings, http_client) -> AssetPublisher:
    return AssetPublisher(settings, http_client=http_client)


@pytest.fixture
def message_translator(fetcher) -> MessageTranslator:
    return MessageTranslator(fetcher)


@pytest.fixture
def response_translator(publisher) -> ResponseTranslator:
    return ResponseTranslator(publisher)
