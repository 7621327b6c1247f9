#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Main application entry point - OpenAI chat completions on top of Gemini
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gemini_gateway.asset_publisher import AssetPublisher
from gemini_gateway.config import settings
from gemini_gateway.helpers import info_log
from gemini_gateway.openai_api import router as openai_router
from gemini_gateway.services.network_manager import network_manager


@asynccontextmanager
async def lifespan(app: FastAPI):
    # advisory probe; startup does not wait for or depend on it
    app.state.bucket_health = asyncio.create_task(AssetPublisher(settings).check_health())
    info_log("Gemini gateway started", port=settings.LISTEN_PORT)
    try:
        yield
    finally:
        if not app.state.bucket_health.done():
            app.state.bucket_health.cancel()
        await network_manager.cleanup_clients()


app = FastAPI(
    title="OpenAI Compatible Gemini Gateway",
    description="OpenAI-compatible chat completions backed by the Gemini API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(openai_router)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Report malformed request bodies in the gateway's error shape."""
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
    )


@app.options("/")
async def handle_options():
    """Handle OPTIONS requests"""
    return Response(status_code=200)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "OpenAI Compatible Gemini Gateway",
        "version": "1.0.0",
    }


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.LISTEN_PORT,
        reload=False,
        log_level="info",
    )
