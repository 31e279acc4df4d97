"""
Admin Gate

FastAPI dependency protecting destructive and admin-only endpoints.

The caller must send the shared admin key in `x-arp-admin-key`. When
ARP_ALLOWED_ORIGINS is configured, the request's Origin (or the origin
of its Referer) must also be listed.
"""

import hmac
import logging
from typing import List, Optional
from urllib.parse import urlparse

from fastapi import Depends, Header, HTTPException, status

from aigeo.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)


def referer_origin(referer: Optional[str]) -> Optional[str]:
    """scheme://host[:port] of a Referer header."""
    if not referer:
        return None
    parsed = urlparse(referer)
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}"


def origin_allowed(origin: Optional[str], allowed: List[str]) -> bool:
    if not allowed:
        return True
    if not origin:
        return False
    return origin.rstrip("/") in {a.rstrip("/") for a in allowed}


async def require_admin(
    x_arp_admin_key: Optional[str] = Header(None),
    origin: Optional[str] = Header(None),
    referer: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Require the admin key (and an allowed origin when configured).

    Raises:
        HTTPException 500: ARP_ADMIN_KEY not set
        HTTPException 401: Missing or wrong key
        HTTPException 403: Origin not allowed
    """
    if not settings.ARP_ADMIN_KEY:
        logger.error("Admin endpoint called but ARP_ADMIN_KEY is not set")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server misconfigured: ARP_ADMIN_KEY missing",
        )

    if not x_arp_admin_key or not hmac.compare_digest(
        x_arp_admin_key.encode("utf-8"), settings.ARP_ADMIN_KEY.encode("utf-8")
    ):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    request_origin = origin or referer_origin(referer)
    if not origin_allowed(request_origin, settings.allowed_origins):
        logger.warning(f"Admin request from disallowed origin: {request_origin}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden origin")
