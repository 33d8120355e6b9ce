"""
HTTP caching for the read API.

Responses carry an ETag derived from the ledger's change fingerprints and are
answered with 304 Not Modified when the client's If-None-Match still matches.
Fresh bodies are kept in Redis under a key that includes the fingerprint, so a
ledger change never serves a stale body.
"""

from typing import Any, Callable, Dict, Optional

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse, Response

from ordinals.services.cache_service import CacheService

logger = structlog.get_logger()

_cache_service: Optional[CacheService] = None


def get_cache_service() -> CacheService:
    global _cache_service
    if _cache_service is None:
        _cache_service = CacheService()
    return _cache_service


def quote_etag(fingerprint: str) -> str:
    return f'"{fingerprint}"'


def etag_matches(if_none_match: Optional[str], etag: str) -> bool:
    """Weak comparison of an If-None-Match header against an ETag"""
    if not if_none_match:
        return False
    if if_none_match.strip() == "*":
        return True
    for candidate in if_none_match.split(","):
        candidate = candidate.strip()
        if candidate.startswith("W/"):
            candidate = candidate[2:]
        if candidate == etag:
            return True
    return False


def not_modified(etag: str) -> Response:
    return Response(status_code=304, headers={"ETag": etag})


def cached_json_response(
    request: Request,
    cache: CacheService,
    prefix: str,
    fingerprint: Callable[[], Optional[str]],
    build: Callable[[], Any],
    params: Optional[Dict] = None,
) -> Response:
    """
    Serve a JSON body validated by a change fingerprint.

    The fingerprint is read again once a fresh body is built. If the ledger
    moved in between, the body is returned without an ETag and is not cached,
    so no body is ever stored under a fingerprint it does not match.

    Args:
        request: Incoming request, inspected for If-None-Match
        cache: Response cache
        prefix: Cache key namespace for the route
        fingerprint: Reads the change fingerprint covering everything the body depends on
        build: Produces the JSON-serializable body on a cache miss
        params: Request parameters that select the body

    Returns:
        304 when the client copy is current, otherwise the body with its ETag
    """
    current = fingerprint()
    etag = quote_etag(current)
    if etag_matches(request.headers.get("if-none-match"), etag):
        return not_modified(etag)

    key_parts = [current]
    if params:
        key_parts.extend(f"{name}={params[name]}" for name in sorted(params))
    key = cache.generate_key(prefix, *key_parts)

    body = cache.get(key)
    if body is not None:
        logger.debug("Response served from cache", key=key)
        return JSONResponse(content=body, headers={"ETag": etag})

    body = build()
    if fingerprint() != current:
        logger.warning("Ledger changed while building response, not caching it", prefix=prefix)
        return JSONResponse(content=body)

    cache.set(key, body)
    return JSONResponse(content=body, headers={"ETag": etag})
