"""Response middleware: block outgoing JSON that contains raw contact data.

This is a last-resort safety net.  All application code must already
avoid placing unmasked phone numbers or email addresses in responses.  If
any pattern from contactguard.core.logging.CONTACT_PATTERNS fires on a JSON
response body, the response is replaced with HTTP 500 and the incident is
logged.

Safety note: the matched text span is never logged; only the pattern
index is recorded.
"""
from __future__ import annotations

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from contactguard.core.logging import CONTACT_PATTERNS

logger = logging.getLogger(__name__)

# Headers that must not be copied verbatim because their values become
# invalid once we re-buffer the body into a new Response.
_SKIP_HEADERS = frozenset({"content-length", "transfer-encoding"})


class ContactFilterMiddleware(BaseHTTPMiddleware):
    """Starlette middleware that blocks JSON responses containing raw contact data.

    Only responses with Content-Type: application/json are scanned.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            return response

        chunks: list[bytes] = []
        async for chunk in response.body_iterator:
            if isinstance(chunk, str):
                chunk = chunk.encode("utf-8")
            chunks.append(chunk)
        body = b"".join(chunks)
        text = body.decode("utf-8", errors="replace")

        for idx, pattern in enumerate(CONTACT_PATTERNS):
            if pattern.search(text):
                # SAFETY: log the pattern index only, never the matched text
                logger.error(
                    "ContactFilterMiddleware: raw contact data detected in response body "
                    "(pattern_index=%d, path=%s). Response blocked.",
                    idx,
                    request.url.path,
                )
                return JSONResponse(
                    status_code=500,
                    content={"detail": "Internal error: response blocked by contact filter."},
                )

        safe_headers = {
            k: v for k, v in response.headers.items()
            if k.lower() not in _SKIP_HEADERS
        }
        return Response(
            content=body,
            status_code=response.status_code,
            headers=safe_headers,
            media_type=response.media_type,
        )
