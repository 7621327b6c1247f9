"""
OpenAI API endpoints
"""

from typing import Optional

from fastapi import APIRouter, Header
from fastapi.responses import JSONResponse
from fastuuid import uuid4

from .exceptions import GatewayError
from .helpers import (
    bind_request_context,
    debug_log,
    error_log,
    get_logger,
    request_stage_log,
    reset_request_context,
    warning_log,
)
from .schemas import ChatCompletionRequest
from .services.chat_service import chat_completion_service, error_response

router = APIRouter()

logger = get_logger("openai_api")

service = chat_completion_service


def extract_api_key(authorization: Optional[str]) -> Optional[str]:
    """Return the bearer token from an Authorization header, if well-formed."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization[7:].strip() or None


def _summarize_request(request: ChatCompletionRequest) -> dict:
    # media URLs may be multi-megabyte data URLs; log only their shape
    summary = request.model_dump(exclude={"messages"}, exclude_none=True)
    summary["messages"] = [
        {
            "role": message.role,
            "content": message.content if isinstance(message.content, str) else [part.type for part in message.content],
        }
        for message in request.messages or []
    ]
    return summary


@router.post("/v1/chat/completions")
async def chat_completions(request: ChatCompletionRequest, authorization: Optional[str] = Header(None)):
    """Handle a non-streaming chat completion request."""
    bind_request_context(request_id=str(uuid4())[:8])
    try:
        request_stage_log(
            "received",
            "chat completion request received",
            model=request.model,
            message_count=len(request.messages or []),
            tools_count=len(request.tools) if request.tools else 0,
        )
        debug_log("client request", request_body=_summarize_request(request))

        api_key = extract_api_key(authorization)
        if not api_key:
            return JSONResponse(
                status_code=401,
                content={
                    "error": "API key not provided or invalid format. Use Bearer token in Authorization header.",
                    "details": "Missing or malformed Authorization header",
                },
            )

        if request.stream:
            warning_log("[REQUEST] streaming is not supported, answering with a single completion")

        try:
            return await service.create_completion(request, api_key)
        except Exception as exc:
            status_code, payload = error_response(exc)
            if not isinstance(exc, GatewayError):
                logger.exception("unexpected error while processing request")
            error_log("[REQUEST] responding with error", status_code=status_code, error=payload["error"])
            return JSONResponse(status_code=status_code, content=payload)
    finally:
        reset_request_context("request_id")
