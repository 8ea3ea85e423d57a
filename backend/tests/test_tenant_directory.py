"""Tests for the Supabase-backed tenant directory."""

from unittest.mock import MagicMock

import pytest

from app.database import SupabaseTenantDirectory, get_tenant


def _mock_client(rows):
    """Supabase client whose query chain returns ``rows``."""
    client = MagicMock()
    query = client.table.return_value.select.return_value.eq.return_value.limit.return_value
    query.execute.return_value = MagicMock(data=rows)
    return client


class TestGetTenant:
    @pytest.mark.asyncio
    async def test_returns_tenant(self):
        client = _mock_client(
            [{"id": "tenant-lyon", "slug": "golf-de-lyon", "name": "Golf de Lyon", "is_active": True}]
        )
        tenant = await get_tenant(client, "tenant-lyon")
        assert tenant.slug == "golf-de-lyon"
        assert tenant.is_active is True
        client.table.assert_called_with("tenants")
        client.table.return_value.select.return_value.eq.assert_called_with("id", "tenant-lyon")

    @pytest.mark.asyncio
    async def test_missing_tenant_is_none(self):
        assert await get_tenant(_mock_client([]), "nope") is None


class TestSupabaseTenantDirectory:
    @pytest.mark.asyncio
    async def test_uses_configured_table(self):
        from app.config import get_settings

        client = _mock_client(
            [{"id": "t1", "slug": "old-course", "name": "Old Course", "is_active": False}]
        )
        directory = SupabaseTenantDirectory(get_settings(), client=client)
        tenant = await directory.get_tenant("t1")
        assert tenant.is_active is False
        client.table.assert_called_with(get_settings().tenants_table)

    @pytest.mark.asyncio
    async def test_ping_reports_failure(self):
        client = MagicMock()
        client.table.side_effect = RuntimeError("connection refused")
        directory = SupabaseTenantDirectory(client=client)
        assert await directory.ping() is False

    @pytest.mark.asyncio
    async def test_ping_ok(self):
        directory = SupabaseTenantDirectory(client=MagicMock())
        assert await directory.ping() is True
