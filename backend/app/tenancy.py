"""Tenant routing: map an authenticated request to its tenant's record store.

TenantRouter owns the registry of open stores. One router is created per
application and reached through the ``get_tenant_router`` dependency.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Dict, Protocol

from fastapi import Depends, Request

from .auth import CurrentUser
from .config import get_settings
from .database import SupabaseTenantDirectory
from .logging_config import get_logger, log_tenant_event
from .models import Tenant
from .sync.store import RecordStore

logger = get_logger("greenkeep.tenancy")

TENANT_DB_PREFIX = "greenkeep_t_"


class TenantError(Exception):
    """Base class for tenant resolution failures."""

    def __init__(self, tenant_id: str, message: str):
        super().__init__(message)
        self.tenant_id = tenant_id
        self.message = message


class TenantNotFound(TenantError):
    def __init__(self, tenant_id: str):
        super().__init__(tenant_id, "Tenant not found")


class TenantSuspended(TenantError):
    def __init__(self, tenant_id: str):
        super().__init__(tenant_id, "Tenant is suspended")


class TenantDirectory(Protocol):
    async def get_tenant(self, tenant_id: str) -> Tenant | None: ...


@dataclass(frozen=True)
class TenantHandle:
    """A resolved, active tenant and the store holding its records."""

    tenant: Tenant
    store: RecordStore


def tenant_db_name(slug: str) -> str:
    """Database name for a tenant: ``greenkeep_t_`` + slug with dashes as underscores."""
    return f"{TENANT_DB_PREFIX}{slug.replace('-', '_')}"


class TenantRouter:
    """Resolves tenant ids to record stores.

    Tenants are looked up on every resolution, so suspending a tenant takes
    effect on its next request. Stores are opened once per tenant and kept
    for the life of the process.

    Args:
        directory: Source of tenant records (the global database)
        data_dir: Directory holding one database file per tenant
    """

    def __init__(self, directory: TenantDirectory, data_dir: Path | str):
        self.directory = directory
        self.data_dir = Path(data_dir)
        self._stores: Dict[str, RecordStore] = {}

    async def resolve(self, tenant_id: str) -> TenantHandle:
        """Look the tenant up and return it with its store.

        Raises:
            TenantNotFound: No such tenant.
            TenantSuspended: The tenant exists but is inactive.
        """
        tenant = await self.directory.get_tenant(tenant_id)
        if tenant is None:
            raise TenantNotFound(tenant_id)
        if not tenant.is_active:
            log_tenant_event("REJECTED", tenant_id, "suspended")
            raise TenantSuspended(tenant_id)
        return TenantHandle(tenant=tenant, store=self._store_for(tenant))

    def _store_for(self, tenant: Tenant) -> RecordStore:
        store = self._stores.get(tenant.id)
        if store is None:
            db_path = self.data_dir / f"{tenant_db_name(tenant.slug)}.db"
            store = RecordStore(db_path)
            self._stores[tenant.id] = store
            log_tenant_event("STORE OPENED", tenant.id, db_path.name)
        return store

    @property
    def open_store_count(self) -> int:
        return len(self._stores)


def build_tenant_router() -> TenantRouter:
    settings = get_settings()
    return TenantRouter(SupabaseTenantDirectory(settings), settings.tenant_data_dir)


def get_tenant_router(request: Request) -> TenantRouter:
    """FastAPI dependency: the application's TenantRouter."""
    router = getattr(request.app.state, "tenant_router", None)
    if router is None:
        router = build_tenant_router()
        request.app.state.tenant_router = router
    return router


async def get_tenant_handle(
    request: Request,
    auth: CurrentUser,
    router: Annotated[TenantRouter, Depends(get_tenant_router)],
) -> TenantHandle:
    """FastAPI dependency: the caller's tenant and store."""
    return await router.resolve(auth.effective_tenant_id(request))


# Type alias for dependency injection
CurrentTenant = Annotated[TenantHandle, Depends(get_tenant_handle)]
