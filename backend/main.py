"""
Codegen Studio Backend - FastAPI Application Entry Point
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from models.generation import GenerationMode
from models.provider import HealthResponse
from routers import catalog, deploy, design, generate
from services.config_manager import ConfigManager
from services.errors import StudioError
from services.llm_service import ProviderClientRegistry
from services.provider_registry import ProviderRegistry

# Provider keys may live in a local .env file
load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "info").upper()

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("codegen-studio")


def describe_validation_error(exc: RequestValidationError) -> str:
    """One readable message for the first invalid request field"""
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        field = ".".join(loc) or "body"
        if error.get("type") == "missing" or field == "prompt":
            return f"Missing required field: {field}"
        if field == "mode":
            return f"Invalid mode. Must be one of: {', '.join(m.value for m in GenerationMode)}"
        return f"Invalid field {field}: {error.get('msg', 'invalid value')}"
    return "Invalid request"


def create_app(
    config_manager: ConfigManager | None = None,
    environ: Mapping[str, str] | None = None,
    groq_factory: Callable[[str], Any] | None = None,
) -> FastAPI:
    """Build the API with its provider registry and transport clients"""
    config_manager = config_manager or ConfigManager(environ=environ)
    config = config_manager.get_config()
    registry = ProviderRegistry(environ=environ)
    clients = ProviderClientRegistry.from_config(registry, config, groq_factory=groq_factory)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager - startup and shutdown logic"""
        logger.info("Starting Codegen Studio Backend (config: %s)", config_manager.config_file)
        providers = registry.available_provider_names()
        if providers:
            logger.info("Available AI providers: %s", ", ".join(providers))
        else:
            logger.warning("No AI providers configured. Add API keys to the environment or .env file.")

        yield

        logger.info("Shutting down Codegen Studio Backend...")
        await clients.close()

    app = FastAPI(
        title="Codegen Studio Backend",
        description="Streams AI-generated web projects from multiple LLM providers",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.config_manager = config_manager
    app.state.registry = registry
    app.state.clients = clients

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.get("corsOrigins", ["*"]),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StudioError)
    async def studio_error_handler(request: Request, exc: StudioError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"ok": False, "message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"ok": False, "message": describe_validation_error(exc)})

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"ok": False, "message": str(exc.detail)})

    app.include_router(generate.router, prefix="/api", tags=["generate"])
    app.include_router(catalog.router, prefix="/api", tags=["models"])
    app.include_router(design.router, prefix="/api", tags=["design"])
    app.include_router(deploy.router, prefix="/api", tags=["deploy"])

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Configured vs. available providers and models"""
        return HealthResponse(**registry.summary())

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    server = app.state.config_manager.get("server", {})
    uvicorn.run(app, host=server.get("host", "0.0.0.0"), port=int(server.get("port", 5173)))
