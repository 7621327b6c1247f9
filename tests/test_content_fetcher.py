"""Content fetching, local URL rewriting and redirect resolution."""

import base64

import httpx
import pytest

from gemini_gateway.content_fetcher import ContentFetcher, decode_data_url, transform_url_for_local
from gemini_gateway.exceptions import FetchError
from gemini_gateway.mime_sniffer import FAMILY_AUDIO, FAMILY_FILE, FAMILY_IMAGE

from conftest import PNG_BYTES, make_settings


class TestTransformUrlForLocal:
    def test_rewrites_matching_host(self):
        config = make_settings(TRANSFORM_SOURCE_HOSTNAME="files.example.com", TRANSFORM_TARGET_PORT="3003")
        assert (
            transform_url_for_local("https://files.example.com/img/a.png?x=1", config)
            == "http://localhost:3003/img/a.png?x=1"
        )

    def test_host_comparison_is_case_insensitive(self):
        config = make_settings(TRANSFORM_SOURCE_HOSTNAME="Files.Example.com")
        assert transform_url_for_local("https://files.example.com/a.png", config) == "http://localhost/a.png"

    def test_other_hosts_untouched(self):
        config = make_settings(TRANSFORM_SOURCE_HOSTNAME="files.example.com")
        url = "https://cdn.example.com/a.png"
        assert transform_url_for_local(url, config) == url

    def test_disabled_without_source_hostname(self, settings):
        url = "https://files.example.com/a.png"
        assert transform_url_for_local(url, settings) == url


class TestDecodeDataUrl:
    def test_base64_payload(self):
        encoded = base64.b64encode(PNG_BYTES).decode()
        fetched = decode_data_url(f"data:image/png;base64,{encoded}")
        assert fetched.data == PNG_BYTES
        assert fetched.mime_type == "image/png"
        assert fetched.base64_data == encoded

    def test_invalid_payload_raises(self):
        with pytest.raises(FetchError):
            decode_data_url("data:image/png;base64,@@@not-base64@@@")

    def test_missing_comma_raises(self):
        with pytest.raises(FetchError):
            decode_data_url("data:image/png;base64")

    @pytest.mark.parametrize("embedded", ["application/octet-stream", "text/plain", ""])
    def test_image_family_ignores_non_image_embedded_type(self, embedded):
        encoded = base64.b64encode(PNG_BYTES).decode()
        assert decode_data_url(f"data:{embedded};base64,{encoded}", FAMILY_IMAGE).mime_type == "image/png"

    def test_image_family_default_for_unrecognised_bytes(self):
        encoded = base64.b64encode(b"not an image").decode()
        assert decode_data_url(f"data:text/plain;base64,{encoded}", FAMILY_IMAGE).mime_type == "image/jpeg"

    def test_audio_family_rules(self):
        encoded = base64.b64encode(b"RIFF....WAVE").decode()
        assert decode_data_url(f"data:audio/wav;base64,{encoded}", FAMILY_AUDIO).mime_type == "audio/wav"
        assert decode_data_url(f"data:image/png;base64,{encoded}", FAMILY_AUDIO).mime_type == "application/octet-stream"

    def test_file_family_without_embedded_type_sniffs_bytes(self):
        encoded = base64.b64encode(b"%PDF-1.7\n").decode()
        assert decode_data_url(f"data:;base64,{encoded}", FAMILY_FILE).mime_type == "application/pdf"


class TestFetch:
    async def test_header_mime_type_used(self, fetcher, respx_mock):
        respx_mock.get("https://media.test/cat").mock(
            return_value=httpx.Response(200, content=PNG_BYTES, headers={"Content-Type": "image/webp"})
        )
        fetched = await fetcher.fetch("https://media.test/cat", FAMILY_IMAGE)
        assert fetched.mime_type == "image/webp"
        assert fetched.data == PNG_BYTES

    async def test_falls_through_to_magic_bytes(self, fetcher, respx_mock):
        respx_mock.get("https://media.test/render").mock(
            return_value=httpx.Response(200, content=PNG_BYTES, headers={"Content-Type": "application/octet-stream"})
        )
        fetched = await fetcher.fetch("https://media.test/render", FAMILY_IMAGE)
        assert fetched.mime_type == "image/png"

    async def test_file_family_strips_header_parameters(self, fetcher, respx_mock):
        respx_mock.get("https://media.test/notes").mock(
            return_value=httpx.Response(200, content=b"hi", headers={"Content-Type": "text/plain; charset=utf-8"})
        )
        fetched = await fetcher.fetch("https://media.test/notes", FAMILY_FILE)
        assert fetched.mime_type == "text/plain"

    async def test_non_success_status_raises(self, fetcher, respx_mock):
        respx_mock.get("https://media.test/missing.png").mock(return_value=httpx.Response(404))
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("https://media.test/missing.png", FAMILY_IMAGE)
        assert exc_info.value.upstream_status == 404
        assert "https://media.test/missing.png" in exc_info.value.message

    async def test_transport_error_raises(self, fetcher, respx_mock):
        respx_mock.get("https://media.test/slow.png").mock(side_effect=httpx.ConnectTimeout("timed out"))
        with pytest.raises(FetchError):
            await fetcher.fetch("https://media.test/slow.png", FAMILY_IMAGE)

    async def test_data_url_skips_network(self, fetcher):
        encoded = base64.b64encode(PNG_BYTES).decode()
        fetched = await fetcher.fetch(f"data:image/png;base64,{encoded}", FAMILY_IMAGE)
        assert fetched.mime_type == "image/png"

    async def test_rewritten_url_is_requested(self, http_client, respx_mock):
        config = make_settings(TRANSFORM_SOURCE_HOSTNAME="files.example.com", TRANSFORM_TARGET_PORT="3003")
        route = respx_mock.get("http://localhost:3003/a.png").mock(
            return_value=httpx.Response(200, content=PNG_BYTES, headers={"Content-Type": "image/png"})
        )
        fetched = await ContentFetcher(config, http_client=http_client).fetch("https://files.example.com/a.png")
        assert route.called
        # the public URL is what callers see
        assert fetched.url == "https://files.example.com/a.png"


class TestResolveRedirects:
    async def test_follows_chain(self, fetcher, respx_mock):
        respx_mock.head("https://r.test/a").mock(
            return_value=httpx.Response(302, headers={"Location": "https://r.test/b"})
        )
        respx_mock.head("https://r.test/b").mock(return_value=httpx.Response(200))
        assert await fetcher.resolve_redirects("https://r.test/a") == "https://r.test/b"

    async def test_relative_location(self, fetcher, respx_mock):
        respx_mock.head("https://r.test/a").mock(return_value=httpx.Response(301, headers={"Location": "/final"}))
        respx_mock.head("https://r.test/final").mock(return_value=httpx.Response(200))
        assert await fetcher.resolve_redirects("https://r.test/a") == "https://r.test/final"

    async def test_head_rejected_retries_with_get(self, fetcher, respx_mock):
        respx_mock.head("https://r.test/a").mock(
            return_value=httpx.Response(302, headers={"Location": "https://r.test/b"})
        )
        respx_mock.head("https://r.test/b").mock(return_value=httpx.Response(405))
        get_route = respx_mock.get("https://r.test/b").mock(return_value=httpx.Response(200))
        assert await fetcher.resolve_redirects("https://r.test/a") == "https://r.test/b"
        assert get_route.called

    async def test_cycle_returns_original(self, fetcher, respx_mock):
        respx_mock.head("https://r.test/a").mock(
            return_value=httpx.Response(302, headers={"Location": "https://r.test/b"})
        )
        respx_mock.head("https://r.test/b").mock(
            return_value=httpx.Response(302, headers={"Location": "https://r.test/a"})
        )
        assert await fetcher.resolve_redirects("https://r.test/a") == "https://r.test/a"

    async def test_hop_limit_returns_original(self, http_client, respx_mock):
        fetcher = ContentFetcher(make_settings(MAX_REDIRECTS=2), http_client=http_client)
        for source, target in (("a", "b"), ("b", "c"), ("c", "d")):
            respx_mock.head(f"https://r.test/{source}").mock(
                return_value=httpx.Response(302, headers={"Location": f"https://r.test/{target}"})
            )
        assert await fetcher.resolve_redirects("https://r.test/a") == "https://r.test/a"

    async def test_timeout_returns_original(self, fetcher, respx_mock):
        respx_mock.head("https://r.test/slow").mock(side_effect=httpx.ReadTimeout("timed out"))
        assert await fetcher.resolve_redirects("https://r.test/slow") == "https://r.test/slow"

    async def test_error_status_returns_original(self, fetcher, respx_mock):
        respx_mock.head("https://r.test/gone").mock(return_value=httpx.Response(404))
        assert await fetcher.resolve_redirects("https://r.test/gone") == "https://r.test/gone"

    async def test_non_http_url_untouched(self, fetcher):
        assert await fetcher.resolve_redirects("ftp://r.test/file") == "ftp://r.test/file"

    async def test_annotate_grounding_chunks(self, fetcher, respx_mock):
        respx_mock.head("https://grounding.test/redirect/1").mock(
            return_value=httpx.Response(302, headers={"Location": "https://news.test/story"})
        )
        respx_mock.head("https://news.test/story").mock(return_value=httpx.Response(200))

        chunks = [
            {"web": {"uri": "https://grounding.test/redirect/1", "title": "story"}},
            {"retrievedContext": {"uri": "gs://bucket/doc"}},
        ]
        annotated = await fetcher.annotate_grounding_chunks(chunks)

        assert annotated[0]["web"]["resolved_uri"] == "https://news.test/story"
        assert annotated[0]["web"]["title"] == "story"
        assert annotated[1] == chunks[1]
