"""
HTTP middleware that serves GET responses from the response cache.
"""

import json
from typing import Callable, Iterable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from shared.logging import get_logger
from .response_cache import ResponseCache, build_cache_key


DEFAULT_EXCLUDED_PATHS = ("/api/cache", "/metrics", "/docs", "/redoc", "/openapi.json")


class ResponseCacheMiddleware(BaseHTTPMiddleware):
    """
    Short-circuits cacheable GET requests on a hit and captures successful
    JSON responses on a miss.

    Handler exceptions propagate untouched and nothing is stored for them.
    Non-200 responses pass through with ``X-Cache: MISS`` and the tier's
    ``Cache-Control`` header.
    """

    def __init__(
        self,
        app: ASGIApp,
        cache: ResponseCache,
        excluded_paths: Optional[Iterable[str]] = None,
    ):
        super().__init__(app)
        self.cache = cache
        self.excluded_paths = tuple(excluded_paths if excluded_paths is not None else DEFAULT_EXCLUDED_PATHS)
        self.logger = get_logger("climate.cache.middleware")

    def is_cacheable(self, request: Request) -> bool:
        """Only GET requests outside the administrative paths are cached."""
        if request.method != "GET":
            return False
        path = request.url.path
        return not any(path.startswith(prefix) for prefix in self.excluded_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.is_cacheable(request):
            return await call_next(request)

        full_path = request.url.path
        if request.url.query:
            full_path = f"{full_path}?{request.url.query}"

        key = build_cache_key(request.method, full_path)
        ttl = self.cache.classify_ttl(request.url.path)
        cache_control = f"public, max-age={int(ttl)}"

        entry = self.cache.lookup(key)
        if entry is not None:
            if self.cache.etag_enabled and request.headers.get("if-none-match") == entry.fingerprint:
                self.cache.record_not_modified()
                return Response(
                    status_code=304,
                    headers={
                        "ETag": entry.fingerprint,
                        "Cache-Control": cache_control,
                        "X-Cache": "HIT",
                    },
                )

            headers = {
                "X-Cache": "HIT",
                "X-Cache-Key": key,
                "Cache-Control": cache_control,
            }
            if self.cache.etag_enabled:
                headers["ETag"] = entry.fingerprint
            return JSONResponse(content=entry.payload, headers=headers)

        response = await call_next(request)

        if response.status_code == 200 and self._is_json(response):
            response = await self._capture(key, ttl, response)

        response.headers["Cache-Control"] = cache_control
        response.headers["X-Cache"] = "MISS"
        response.headers["X-Cache-Key"] = key
        return response

    async def _capture(self, key: str, ttl: int, response: Response) -> Response:
        """Buffer the handler's body, store its payload and rebuild the response."""
        chunks = []
        async for chunk in response.body_iterator:
            chunks.append(chunk if isinstance(chunk, bytes) else chunk.encode("utf-8"))
        body = b"".join(chunks)

        rebuilt = Response(content=body, status_code=response.status_code)
        # Keep repeated headers such as Set-Cookie.
        rebuilt.raw_headers = list(response.raw_headers)

        try:
            payload = json.loads(body)
        except ValueError:
            self.logger.warning("Response body is not valid JSON; not cached", key=key)
            return rebuilt

        entry = self.cache.store(key, payload, ttl)
        if self.cache.etag_enabled:
            rebuilt.headers["ETag"] = entry.fingerprint
        return rebuilt

    @staticmethod
    def _is_json(response: Response) -> bool:
        return response.headers.get("content-type", "").startswith("application/json")
