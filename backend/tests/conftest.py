"""Pytest configuration and fixtures."""

import os
import secrets

import pytest

# Generate a unique test secret for this test run to prevent token forgery
_TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("JWT_SECRET_KEY", _TEST_JWT_SECRET)

from app.main import app  # noqa: E402
from app.models import Tenant  # noqa: E402
from app.rate_limit import limiter  # noqa: E402
from app.sync.store import RecordStore  # noqa: E402
from app.tenancy import TenantRouter, get_tenant_router  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

ACTIVE_TENANT_ID = "tenant-lyon"
SUSPENDED_TENANT_ID = "tenant-closed"
OTHER_TENANT_ID = "tenant-nice"


class FakeTenantDirectory:
    """In-memory stand-in for the Supabase tenants table."""

    def __init__(self, tenants=None):
        self.tenants = {t.id: t for t in (tenants or [])}
        self.lookups = 0

    async def get_tenant(self, tenant_id):
        self.lookups += 1
        return self.tenants.get(tenant_id)

    async def ping(self):
        return True


def default_tenants():
    return [
        Tenant(id=ACTIVE_TENANT_ID, slug="golf-de-lyon", name="Golf de Lyon"),
        Tenant(id=OTHER_TENANT_ID, slug="golf-de-nice", name="Golf de Nice"),
        Tenant(id=SUSPENDED_TENANT_ID, slug="old-course", name="Old Course", is_active=False),
    ]


@pytest.fixture(autouse=True)
def disable_rate_limit():
    """Sync routes are rate limited; keep the suite from tripping the limit."""
    limiter.enabled = False
    yield
    limiter.enabled = True
    limiter.reset()


@pytest.fixture
def tenant_directory():
    return FakeTenantDirectory(default_tenants())


@pytest.fixture
def tenant_router(tenant_directory, tmp_path):
    return TenantRouter(tenant_directory, tmp_path / "tenants")


@pytest.fixture
def store(tmp_path):
    return RecordStore(tmp_path / "greenkeep_t_test.db")


@pytest.fixture
def client(tenant_router):
    """Create a test client bound to the fake tenant directory."""
    app.dependency_overrides[get_tenant_router] = lambda: tenant_router
    yield TestClient(app)
    app.dependency_overrides.pop(get_tenant_router, None)


def _make_token(user_id="usr_TEST_ONLY_000000", tenant_id=ACTIVE_TENANT_ID, role="team"):
    from app.auth import create_access_token
    from app.config import get_settings

    return create_access_token(user_id, get_settings(), tenant_id=tenant_id, role=role)


@pytest.fixture
def make_headers():
    """Build auth headers for any user, tenant and role."""

    def _headers(**kwargs):
        return {"Authorization": f"Bearer {_make_token(**kwargs)}"}

    return _headers


@pytest.fixture
def auth_headers():
    """Create auth headers with a test token for the active tenant."""
    return {"Authorization": f"Bearer {_make_token()}"}


@pytest.fixture
def superadmin_headers():
    token = _make_token(user_id="usr_TEST_SUPERADMIN", tenant_id=None, role="superadmin")
    return {"Authorization": f"Bearer {token}"}
