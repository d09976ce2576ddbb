"""
FastAPI application entry point for the content-management backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cms_backend.config import get_settings
from cms_backend.errors import register_exception_handlers
from cms_backend.languages import LanguageMiddleware
from cms_backend.routes import router
from cms_backend.schemas import HealthResponse


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(title="Bilingual CMS Backend (FastAPI)", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Authorization", "Content-Type", "Accept-Language"],
        expose_headers=["Content-Language"],
    )
    app.add_middleware(LanguageMiddleware)
    register_exception_handlers(app)
    app.include_router(router, prefix=settings.api_prefix)

    @app.get("/", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(message="API is running")

    return app


app = create_app()
