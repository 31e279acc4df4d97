"""Admin authorization for protected endpoints."""

from .admin import origin_allowed, referer_origin, require_admin

__all__ = [
    "origin_allowed",
    "referer_origin",
    "require_admin",
]
