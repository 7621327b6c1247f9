"""Exception hierarchy for the gateway.

Request-side failures (validation, media fetches, upstream rejections) are
surfaced to the client as ``{"error": ..., "details": ...}``. Response-side
enrichment failures (asset publishing, redirect resolution) are only logged
and never reach the client.
"""

from typing import Any, Optional


class GatewayError(Exception):
    """Base exception for the gateway."""

    status_code: int = 500

    def __init__(self, message: str, details: Any = None, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details if details is not None else message
        if status_code is not None:
            self.status_code = status_code

    def to_payload(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(GatewayError):
    """Malformed or incomplete inbound request."""

    status_code = 400


class FetchError(GatewayError):
    """A media/file URL could not be retrieved."""

    status_code = 400

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None) -> None:
        self.url = url
        self.reason = reason
        self.upstream_status = status_code
        if status_code is not None:
            reason = f"{status_code} {reason}".strip()
        super().__init__(f"Failed to fetch media: {reason} from URL: {url}")


class TranslationError(GatewayError):
    """Request translation aborted because a media part could not be resolved."""

    status_code = 400

    def __init__(self, url: str, cause: FetchError) -> None:
        self.url = url
        self.cause = cause
        super().__init__(f"Failed to process media from URL: {url}", details=cause.message)


class UpstreamError(GatewayError):
    """The Gemini API rejected or failed the translated request."""

    title = "Error from Google Gemini API"

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None) -> None:
        self.upstream_status = status_code
        self.body = body
        super().__init__(message, details=message, status_code=status_code)

    def to_payload(self) -> dict:
        return {"error": self.title, "details": self.message}


class EmptyCompletionError(UpstreamError):
    """Gemini answered without any candidate, usually because the prompt was blocked."""

    def __init__(self, block_reason: Optional[str] = None, safety_ratings: Any = None) -> None:
        self.block_reason = block_reason
        self.safety_ratings = safety_ratings
        super().__init__("No content generated by the model.", status_code=500)

    def to_payload(self) -> dict:
        payload = {"error": self.message, "details": self.block_reason or self.message}
        if self.block_reason:
            payload["blockReason"] = self.block_reason
        if self.safety_ratings:
            payload["safetyRatings"] = self.safety_ratings
        return payload


class PublishError(GatewayError):
    """Uploading a generated asset to the bucket server failed."""


class RedirectResolutionError(GatewayError):
    """A citation link could not be resolved to its final location."""
