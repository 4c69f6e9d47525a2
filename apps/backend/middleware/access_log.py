import logging
import re
import time
from typing import Any, Dict, Mapping

from fastapi import FastAPI, Request, Response

log = logging.getLogger("canwin.access")

SENSITIVE_HEADERS = {
    "authorization",
    "cookie",
    "apikey",
    "x-supabase-key",
}
MASK = "***masked***"

# 12-digit runs in query strings are Aadhar numbers
_AADHAR_RUN = re.compile(r"\d{12}")


def mask_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    return {k: (MASK if k.lower() in SENSITIVE_HEADERS else v) for k, v in headers.items()}


def mask_query(query: str) -> str:
    return _AADHAR_RUN.sub(lambda m: "********" + m.group(0)[-4:], query or "")


def access_entry(request: Request, response: Response, start_time: float) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "method": request.method,
        "path": request.url.path,
        "status_code": response.status_code,
        "duration_ms": int((time.time() - start_time) * 1000),
        "client": request.client.host if request.client else None,
        "admin": request.url.path.startswith("/admin"),
        "headers": mask_headers(request.headers),
    }
    if request.url.query:
        entry["query"] = mask_query(request.url.query)
    return entry


def install_access_log(app: FastAPI) -> None:
    """
    One log line per request. Server errors log at WARNING so they surface
    without a separate handler.
    """

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        entry = access_entry(request, response, start)
        log.log(logging.WARNING if response.status_code >= 500 else logging.INFO, entry)
        return response
