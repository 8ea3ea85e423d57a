"""HTTP transport between the greenkeep client and the sync server.

Pure HTTP/credential logic: no cache access. Every ``httpx`` failure is
wrapped in ``SyncTransportError`` so callers handle a single exception type.
"""

import json
import logging
import os
import time
from typing import Any, Dict, List, Optional

import httpx

from greenkeep.utils import get_greenkeep_home, validate_backend_url

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class SyncTransportError(Exception):
    """The sync server could not be reached or answered with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def load_credentials() -> Optional[Dict[str, Optional[str]]]:
    """Load sync credentials from the credentials file and environment.

    Priority:
    1. ~/.greenkeep/credentials.json
    2. Environment variables (GREENKEEP_BACKEND_URL, GREENKEEP_AUTH_TOKEN,
       GREENKEEP_TENANT_ID) override file values

    Returns:
        Dict with 'backend_url', 'auth_token' and 'tenant_id', or None if
        the backend URL or token is missing or the URL is unsafe.
    """
    backend_url = None
    auth_token = None
    tenant_id = None

    credentials_path = get_greenkeep_home() / "credentials.json"
    if credentials_path.exists():
        try:
            with open(credentials_path) as f:
                creds = json.load(f)
            backend_url = creds.get("backend_url")
            auth_token = creds.get("auth_token")
            tenant_id = creds.get("tenant_id")
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Could not read {credentials_path}: {e}")

    backend_url = os.environ.get("GREENKEEP_BACKEND_URL") or backend_url
    auth_token = os.environ.get("GREENKEEP_AUTH_TOKEN") or auth_token
    tenant_id = os.environ.get("GREENKEEP_TENANT_ID") or tenant_id

    if backend_url:
        backend_url = validate_backend_url(backend_url)

    if not backend_url or not auth_token:
        return None
    return {
        "backend_url": backend_url.rstrip("/"),
        "auth_token": auth_token,
        "tenant_id": tenant_id,
    }


class SyncClient:
    """Talks to ``/sync/pull``, ``/sync/push`` and ``/health``.

    Args:
        backend_url: Base URL of the sync server
        auth_token: Bearer token (JWT carrying the tenant claim)
        tenant_id: Sent as ``X-Tenant-Id`` (only honoured for superadmins)
        timeout: Per-request timeout in seconds
        http: Client to send requests with; defaults to a new ``httpx.Client``
    """

    def __init__(
        self,
        backend_url: str,
        auth_token: str,
        tenant_id: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        http: Optional[httpx.Client] = None,
    ):
        self.backend_url = backend_url.rstrip("/")
        self.auth_token = auth_token
        self.tenant_id = tenant_id
        self.timeout = timeout
        self._owns_http = http is None
        self._http = http if http is not None else httpx.Client(timeout=timeout)

    @classmethod
    def from_credentials(cls, **kwargs) -> Optional["SyncClient"]:
        """Build a client from stored credentials, or None if not configured."""
        creds = load_credentials()
        if not creds:
            return None
        return cls(
            creds["backend_url"],
            creds["auth_token"],
            tenant_id=kwargs.pop("tenant_id", None) or creds.get("tenant_id"),
            **kwargs,
        )

    def close(self):
        if self._owns_http:
            self._http.close()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.auth_token}",
            "Content-Type": "application/json",
        }
        if self.tenant_id:
            headers["X-Tenant-Id"] = self.tenant_id
        return headers

    def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.backend_url}{path}"
        try:
            response = self._http.post(
                url, json=body, headers=self._headers(), timeout=self.timeout
            )
        except httpx.TimeoutException as e:
            raise SyncTransportError(f"Request to {path} timed out") from e
        except httpx.HTTPError as e:
            raise SyncTransportError(f"Connection failed: {e}") from e

        if response.status_code != 200:
            detail = response.text[:200]
            try:
                detail = response.json().get("detail", detail)
            except (ValueError, AttributeError):
                pass
            raise SyncTransportError(
                f"{path} returned {response.status_code}: {detail}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise SyncTransportError(f"{path} returned invalid JSON") from e

    def pull(self, last_sync_versions: Dict[str, int]) -> Dict[str, List[Dict[str, Any]]]:
        """Fetch records newer than the given checkpoints."""
        result = self._post("/sync/pull", {"last_sync_versions": last_sync_versions})
        return result.get("changes", {})

    def push(self, changes: Dict[str, List[Dict[str, Any]]]) -> Dict[str, Any]:
        """Send grouped records; returns ``{"accepted": ..., "rejected": ...}``."""
        result = self._post("/sync/push", {"changes": changes})
        return {
            "accepted": result.get("accepted", {}),
            "rejected": result.get("rejected", {}),
            "server_time": result.get("server_time"),
        }

    def health_check(self) -> Dict[str, Any]:
        """Test server connectivity.

        Returns:
            Dict with 'healthy' and either 'latency_ms' or 'error'.
        """
        start = time.monotonic()
        try:
            response = self._http.get(f"{self.backend_url}/health", timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.debug("Sync health check failed: %s", e)
            return {"healthy": False, "error": f"Connection failed: {e}"}

        if response.status_code == 200:
            latency_ms = round((time.monotonic() - start) * 1000, 2)
            return {"healthy": True, "latency_ms": latency_ms}
        return {"healthy": False, "error": f"HTTP {response.status_code}"}
