"""
HTTP middleware: response headers, access log, CORS and trusted hosts.
"""
import time
from typing import Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from core.logger import get_logger

logger = get_logger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}

# Responses under these paths may carry presigned download URLs or personal data
NO_STORE_PREFIXES = ("/api/",)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers; API responses are never cached."""

    def __init__(self, app, headers: Optional[Dict[str, str]] = None, no_store_prefixes=NO_STORE_PREFIXES):
        super().__init__(app)
        self.headers = headers if headers is not None else SECURITY_HEADERS
        self.no_store_prefixes = tuple(no_store_prefixes)

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        if request.url.path.startswith(self.no_store_prefixes):
            response.headers["Cache-Control"] = "no-store"
        return response


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One log line per request: method, path, status and duration."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        log = logger.warning if response.status_code >= 500 else logger.info
        log(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)")
        return response


def setup_cors(app: FastAPI, allowed_origins: List[str]):
    """Allow the portal front end to call the API with credentials."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
        expose_headers=["Content-Disposition"],
    )


def setup_trusted_hosts(app: FastAPI, allowed_hosts: List[str]):
    """Reject requests whose Host header is not one of ours (production only)."""
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=allowed_hosts)
