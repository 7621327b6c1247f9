"""Uploading generated images to the bucket server."""

import httpx
import pytest

from gemini_gateway.asset_publisher import (
    AssetPublisher,
    extract_uploaded_url,
    generate_filename,
    get_extension_from_mime_type,
)
from gemini_gateway.exceptions import PublishError

from conftest import BUCKET_UPLOAD_URL, PNG_BASE64, make_settings

PUBLIC_URL = "https://cdn.test/generated-image-1.png"


@pytest.mark.parametrize(
    "result",
    [
        {"fileUrl": PUBLIC_URL},
        {"success": True, "url": PUBLIC_URL},
        {"url": PUBLIC_URL},
        PUBLIC_URL,
    ],
)
def test_extract_uploaded_url_accepts_known_shapes(result):
    assert extract_uploaded_url(result) == PUBLIC_URL


@pytest.mark.parametrize(
    "result",
    [
        {"success": False, "error": "disk full"},
        {},
        "not a url",
        None,
        {"fileUrl": 42},
        {"url": {"href": PUBLIC_URL}},
        {"success": True, "url": ""},
    ],
)
def test_extract_uploaded_url_rejects_unknown_shapes(result):
    with pytest.raises(PublishError):
        extract_uploaded_url(result)


def test_extension_lookup():
    assert get_extension_from_mime_type("image/png") == ".png"
    assert get_extension_from_mime_type("IMAGE/WEBP") == ".webp"
    assert get_extension_from_mime_type("image/unknown") == ".jpg"
    assert generate_filename("image/png").startswith("generated-image-")
    assert generate_filename("image/png").endswith(".png")


class TestUploadUrl:
    def test_explicit_url_gets_upload_suffix(self):
        publisher = AssetPublisher(make_settings(BUCKET_API_URL="https://bucket.example.com/"))
        assert publisher.upload_url == "https://bucket.example.com/upload"
        assert publisher.health_url == "https://bucket.example.com"

    def test_explicit_upload_url_kept(self):
        publisher = AssetPublisher(make_settings(BUCKET_API_URL="https://bucket.example.com/upload"))
        assert publisher.upload_url == "https://bucket.example.com/upload"

    def test_derived_from_host_and_port(self):
        publisher = AssetPublisher(
            make_settings(BUCKET_API_URL=None, TRANSFORM_TARGET_HOSTNAME="store.local", TRANSFORM_TARGET_PORT="9000")
        )
        assert publisher.upload_url == "http://store.local:9000/upload"
        assert publisher.health_url == "http://store.local:9000"


async def test_publish_uploads_multipart_file(http_client, respx_mock):
    publisher = AssetPublisher(make_settings(BUCKET_API_KEY="secret"), http_client=http_client)
    route = respx_mock.post(BUCKET_UPLOAD_URL).mock(
        return_value=httpx.Response(200, json={"success": True, "url": PUBLIC_URL})
    )

    url = await publisher.publish(PNG_BASE64, "image/png")

    assert url == PUBLIC_URL
    request = route.calls.last.request
    assert request.headers["x-api-key"] == "secret"
    assert request.headers["content-type"].startswith("multipart/form-data")
    assert b'name="file"; filename="generated-image-' in request.content
    assert b"Content-Type: image/png" in request.content


async def test_publish_without_api_key_sends_no_header(publisher, respx_mock):
    route = respx_mock.post(BUCKET_UPLOAD_URL).mock(return_value=httpx.Response(200, json={"fileUrl": PUBLIC_URL}))

    assert await publisher.publish(PNG_BASE64, "image/png", "custom.png") == PUBLIC_URL
    request = route.calls.last.request
    assert "x-api-key" not in request.headers
    assert b'filename="custom.png"' in request.content


async def test_plain_text_response_body(publisher, respx_mock):
    respx_mock.post(BUCKET_UPLOAD_URL).mock(return_value=httpx.Response(200, text=PUBLIC_URL))
    assert await publisher.publish(PNG_BASE64, "image/png") == PUBLIC_URL


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, json={"success": False, "error": "quota"}),
    ],
)
async def test_publish_falls_back_to_data_url(publisher, respx_mock, response):
    respx_mock.post(BUCKET_UPLOAD_URL).mock(return_value=response)
    assert await publisher.publish(PNG_BASE64, "image/png") == f"data:image/png;base64,{PNG_BASE64}"


async def test_publish_falls_back_on_transport_error(publisher, respx_mock):
    respx_mock.post(BUCKET_UPLOAD_URL).mock(side_effect=httpx.ConnectError("refused"))
    assert await publisher.publish(PNG_BASE64, "image/png") == f"data:image/png;base64,{PNG_BASE64}"


async def test_upload_rejects_invalid_base64(publisher):
    with pytest.raises(PublishError):
        await publisher.upload("%%%", "image/png")


async def test_check_health(publisher, respx_mock):
    respx_mock.get(url__startswith="http://bucket.test:3003").mock(return_value=httpx.Response(200))
    assert await publisher.check_health() is True
    assert publisher.bucket_available is True


async def test_check_health_unreachable(publisher, respx_mock):
    respx_mock.get(url__startswith="http://bucket.test:3003").mock(side_effect=httpx.ConnectError("refused"))
    assert await publisher.check_health() is False
    assert publisher.bucket_available is False


async def test_non_string_url_in_reply_falls_back_to_data_url(publisher, respx_mock):
    respx_mock.post(BUCKET_UPLOAD_URL).mock(return_value=httpx.Response(200, json={"fileUrl": 42}))
    assert await publisher.publish(PNG_BASE64, "image/png") == f"data:image/png;base64,{PNG_BASE64}"
