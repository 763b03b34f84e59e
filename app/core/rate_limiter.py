from typing import Mapping

from slowapi import Limiter
from starlette.requests import Request

from .config import settings

UNKNOWN_CLIENT = "unknown"


def client_id_from_headers(headers: Mapping[str, str]) -> str:
    """
    Derive the caller identity from network origin headers.

    First hop of X-Forwarded-For, then X-Real-IP, then "unknown".
    Callers behind the same NAT or proxy share one identity.
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    real_ip = headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return UNKNOWN_CLIENT


def get_client_id(request: Request) -> str:
    return client_id_from_headers(request.headers)


# Request-frequency limit; the concurrency quota lives in services/generation_limiter.py
limiter = Limiter(key_func=get_client_id, enabled=settings.RATE_LIMIT_ENABLED)
limit_param = f"{settings.RATE_LIMIT_MIN}/minute"
