"""Database utilities for Supabase integration.

The global Supabase database holds only the tenant directory. Tenant data
lives in per-tenant record stores (see ``app.tenancy``).
"""

from supabase import Client, create_client

from .config import Settings, get_settings
from .logging_config import get_logger
from .models import Tenant

logger = get_logger("greenkeep.database")

_supabase_client: Client | None = None


def get_supabase_client(settings: Settings | None = None) -> Client:
    """Get cached Supabase client."""
    global _supabase_client
    if _supabase_client is None:
        if settings is None:
            settings = get_settings()
        # Prefer new secret key, fall back to legacy service_role_key
        api_key = settings.supabase_secret_key or settings.supabase_service_role_key
        if not api_key:
            raise ValueError("Either SUPABASE_SECRET_KEY or SUPABASE_SERVICE_ROLE_KEY must be set")
        _supabase_client = create_client(settings.supabase_url, api_key)
    return _supabase_client


# =============================================================================
# Tenant Directory
# =============================================================================


async def get_tenant(db: Client, tenant_id: str, table: str = "tenants") -> Tenant | None:
    """Get a tenant by ID."""
    result = (
        db.table(table)
        .select("id, slug, name, is_active")
        .eq("id", tenant_id)
        .limit(1)
        .execute()
    )
    if not result.data:
        return None
    return Tenant.model_validate(result.data[0])


class SupabaseTenantDirectory:
    """Tenant lookups against the global Supabase database.

    The client is created on first use so the app can start (and serve
    ``/health``) before Supabase is reachable.
    """

    def __init__(self, settings: Settings | None = None, client: Client | None = None):
        self._settings = settings
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_client(self._settings)
        return self._client

    async def get_tenant(self, tenant_id: str) -> Tenant | None:
        settings = self._settings or get_settings()
        return await get_tenant(self.client, tenant_id, table=settings.tenants_table)

    async def ping(self) -> bool:
        """Check that the tenant directory answers."""
        settings = self._settings or get_settings()
        try:
            self.client.table(settings.tenants_table).select("id").limit(1).execute()
            return True
        except Exception as e:
            logger.warning(f"Tenant directory unreachable: {str(e)[:100]}")
            return False
