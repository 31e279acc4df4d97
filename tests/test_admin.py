"""
Tests for the admin gate.
"""

import pytest
from fastapi import HTTPException

from aigeo.auth import require_admin
from aigeo.auth.admin import origin_allowed, referer_origin
from aigeo.utils.config import Settings


def admin_settings(**overrides) -> Settings:
    values = {"ARP_ADMIN_KEY": "admin-secret", "ARP_ALLOWED_ORIGINS": ""}
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestOriginHelpers:

    def test_referer_origin(self):
        assert referer_origin("https://app.example.com:8443/dashboard?x=1") == "https://app.example.com:8443"
        assert referer_origin("not a url") is None
        assert referer_origin(None) is None

    def test_no_allow_list_allows_all(self):
        assert origin_allowed(None, [])

    def test_allow_list(self):
        allowed = ["https://app.example.com/"]
        assert origin_allowed("https://app.example.com", allowed)
        assert not origin_allowed("https://evil.example.net", allowed)
        assert not origin_allowed(None, allowed)


@pytest.mark.asyncio
class TestRequireAdmin:

    async def test_valid_key(self):
        await require_admin(x_arp_admin_key="admin-secret", origin=None, referer=None, settings=admin_settings())

    async def test_missing_key(self):
        with pytest.raises(HTTPException) as exc_info:
            await require_admin(x_arp_admin_key=None, origin=None, referer=None, settings=admin_settings())
        assert exc_info.value.status_code == 401

    async def test_wrong_key(self):
        with pytest.raises(HTTPException) as exc_info:
            await require_admin(x_arp_admin_key="guess", origin=None, referer=None, settings=admin_settings())
        assert exc_info.value.status_code == 401

    async def test_non_ascii_key_rejected(self):
        with pytest.raises(HTTPException) as exc_info:
            await require_admin(x_arp_admin_key="clé", origin=None, referer=None, settings=admin_settings())
        assert exc_info.value.status_code == 401

    async def test_non_ascii_configured_key(self):
        await require_admin(
            x_arp_admin_key="clé-secrète", origin=None, referer=None, settings=admin_settings(ARP_ADMIN_KEY="clé-secrète")
        )

    async def test_key_not_configured(self):
        with pytest.raises(HTTPException) as exc_info:
            await require_admin(
                x_arp_admin_key="admin-secret", origin=None, referer=None, settings=admin_settings(ARP_ADMIN_KEY=None)
            )
        assert exc_info.value.status_code == 500

    async def test_origin_from_referer(self):
        settings = admin_settings(ARP_ALLOWED_ORIGINS="https://app.example.com, https://ops.example.com")
        await require_admin(
            x_arp_admin_key="admin-secret",
            origin=None,
            referer="https://ops.example.com/audit-dashboard.html",
            settings=settings,
        )

    async def test_disallowed_origin(self):
        settings = admin_settings(ARP_ALLOWED_ORIGINS="https://app.example.com")
        with pytest.raises(HTTPException) as exc_info:
            await require_admin(
                x_arp_admin_key="admin-secret", origin="https://evil.example.net", referer=None, settings=settings
            )
        assert exc_info.value.status_code == 403
