"""
Request language resolution.

The language a request is served in comes from an explicit ``lang`` /
``language`` query value, else the first ``Accept-Language`` preference,
else the configured default. Anything outside the supported set collapses
to the fallback language.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Mapping, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from cms_backend.config import get_settings

LANGUAGE_QUERY_KEYS = ("lang", "language")


@dataclass(frozen=True)
class LanguageConfig:
    """Supported language codes and the fallback used for everything else."""

    supported: tuple[str, ...] = ("en", "es")
    fallback: str = "en"

    def __post_init__(self):
        if self.fallback not in self.supported:
            raise ValueError(
                f"Fallback language {self.fallback!r} is not in {self.supported!r}"
            )

    def normalize(self, code: Optional[str]) -> str:
        """Collapse a language tag (``es-MX``, ``EN``) to a supported code."""
        primary = _primary_subtag(code or "")
        return primary if primary in self.supported else self.fallback


DEFAULT_LANGUAGES = LanguageConfig()


@lru_cache(maxsize=1)
def get_language_config() -> LanguageConfig:
    settings = get_settings()
    return LanguageConfig(
        supported=tuple(code.lower() for code in settings.supported_languages),
        fallback=settings.default_language.lower(),
    )


def _primary_subtag(tag: str) -> str:
    # "en-US;q=0.8" -> "en"
    return tag.split(";")[0].strip().lower().split("-")[0]


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


def resolve_language(
    query_params: Mapping[str, Any],
    headers: Mapping[str, str],
    config: LanguageConfig = DEFAULT_LANGUAGES,
) -> str:
    """Return the request language; never fails."""
    explicit = None
    for key in LANGUAGE_QUERY_KEYS:
        if query_params.get(key):
            explicit = query_params[key]
            break

    if explicit:
        code = _primary_subtag(str(explicit))
    else:
        accept = _header(headers, "Accept-Language")
        code = _primary_subtag(accept.split(",")[0]) if accept else config.fallback

    return code if code in config.supported else config.fallback


class LanguageMiddleware(BaseHTTPMiddleware):
    """Expose ``request.state.language`` and echo it as ``Content-Language``."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        language = resolve_language(
            request.query_params, request.headers, get_language_config()
        )
        request.state.language = language

        response = await call_next(request)
        response.headers["Content-Language"] = language
        return response


def get_request_language(request: Request) -> str:
    """FastAPI dependency returning the language resolved for this request."""
    language = getattr(request.state, "language", None)
    if language is None:
        language = resolve_language(
            request.query_params, request.headers, get_language_config()
        )
        request.state.language = language
    return language


def resolve_write_language(
    payload: Mapping[str, Any], request_language: str, config: LanguageConfig
) -> str:
    """Legacy writers name their language in a body ``lang`` key."""
    if payload.get("lang"):
        return config.normalize(str(payload["lang"]))
    return request_language
