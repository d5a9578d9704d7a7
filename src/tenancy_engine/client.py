"""
TenancyClient SDK — sync client for the Tenancy-Engine admin API.

Used by the storefront/vendor backends and operator tooling to provision
tenants and inspect the registry.
"""

import json
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import httpx


@dataclass
class ClientTenant:
    """Tenant info returned by the SDK."""

    id: str
    entity_id: str
    entity_name: str
    schema_name: str
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class ClientResult:
    """Outcome of a mutating call."""

    success: bool
    tenant: Optional[ClientTenant] = None
    created: bool = False
    message: str = ""
    code: str = ""


@dataclass
class ClientReconcileReport:
    clean: bool
    orphaned_rows: list[str] = field(default_factory=list)
    leaked_namespaces: list[str] = field(default_factory=list)
    stale_pending: list[str] = field(default_factory=list)
    drifted_rows: list[str] = field(default_factory=list)
    repaired: list[str] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)


class TenancyClient:
    """
    Synchronous HTTP client for the tenant admin API.

    Can be wrapped in async by consumers; designed for simplicity in sync contexts.
    """

    def __init__(
        self,
        server_url: str = "http://localhost:9000",
        admin_key: Optional[str] = None,
        timeout: int = 30,
        max_retries: int = 3,
        retry_backoff_base: float = 0.5,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.server_url = server_url.rstrip("/")
        self.admin_key = admin_key
        self.max_retries = max_retries
        self.retry_backoff_base = retry_backoff_base
        self._http = httpx.Client(
            base_url=self.server_url,
            timeout=timeout,
            transport=transport,
        )

    def _admin_headers(self) -> dict[str, str]:
        headers = {}
        if self.admin_key:
            headers["x-admin-key"] = self.admin_key
        return headers

    def _request(
        self,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> tuple[int, dict[str, Any]]:
        """Central HTTP method with retry and structured error handling.

        Retries on timeouts, transport errors, 5xx and 429. Other 4xx are
        returned as-is. Returns ``(status_code, body)``; on exhausted retries
        the status is 0 and the body carries ``code: CONNECTION_ERROR``.
        """
        kwargs.setdefault("headers", self._admin_headers())
        last_error = None
        for attempt in range(self.max_retries):
            try:
                resp = self._http.request(method, path, **kwargs)
                if resp.status_code >= 500 or resp.status_code == 429:
                    last_error = f"HTTP {resp.status_code}"
                    if attempt < self.max_retries - 1:
                        time.sleep(self.retry_backoff_base * (2 ** attempt))
                        continue
                    return resp.status_code, self._error_body(resp, "SERVER_ERROR")
                if resp.status_code >= 400:
                    return resp.status_code, self._error_body(resp, "CLIENT_ERROR")
                return resp.status_code, resp.json()
            except httpx.TimeoutException:
                last_error = "timeout"
                if attempt < self.max_retries - 1:
                    time.sleep(self.retry_backoff_base * (2 ** attempt))
                    continue
            except httpx.HTTPError as e:
                last_error = str(e)
                if attempt < self.max_retries - 1:
                    time.sleep(self.retry_backoff_base * (2 ** attempt))
                    continue
            except json.JSONDecodeError:
                return 0, {"error": "Invalid JSON response", "code": "JSON_ERROR"}

        return 0, {
            "error": f"All {self.max_retries} retries exhausted: {last_error}",
            "code": "CONNECTION_ERROR",
        }

    @staticmethod
    def _error_body(resp: httpx.Response, fallback_code: str) -> dict[str, Any]:
        try:
            data = resp.json()
        except json.JSONDecodeError:
            data = {}
        return {
            "error": data.get("error") or f"HTTP {resp.status_code}",
            "code": data.get("code") or fallback_code,
        }

    @staticmethod
    def _parse_datetime(value: Any) -> Optional[datetime]:
        if not value:
            return None
        try:
            return datetime.fromisoformat(value)
        except (ValueError, TypeError):
            return None

    @classmethod
    def _parse_tenant(cls, data: dict) -> ClientTenant:
        return ClientTenant(
            id=data.get("id", ""),
            entity_id=data.get("entityId", ""),
            entity_name=data.get("entityName", ""),
            schema_name=data.get("schemaName", ""),
            status=data.get("status", ""),
            created_at=cls._parse_datetime(data.get("createdAt")),
            updated_at=cls._parse_datetime(data.get("updatedAt")),
        )

    def _result(self, status: int, data: dict[str, Any]) -> ClientResult:
        if "error" in data:
            return ClientResult(
                success=False, message=data["error"], code=data.get("code", "")
            )
        return ClientResult(
            success=True,
            tenant=self._parse_tenant(data["tenant"]) if data.get("tenant") else None,
            created=status == 201,
            message=data.get("message", ""),
        )

    # ── Registry ──

    def initialize(self) -> ClientResult:
        status, data = self._request("POST", "/tenants/init")
        if "error" in data:
            return ClientResult(success=False, message=data["error"], code=data.get("code", ""))
        return ClientResult(success=bool(data.get("success")), message=data.get("message", ""))

    def list_tenants(self) -> Optional[list[ClientTenant]]:
        """Return all tenants, or None when the server could not be queried."""
        _, data = self._request("GET", "/tenants")
        if "error" in data:
            return None
        return [self._parse_tenant(t) for t in data.get("tenants", [])]

    def create_tenant(self, entity_id: str, entity_name: str) -> ClientResult:
        status, data = self._request(
            "POST", "/tenants", json={"entityId": entity_id, "entityName": entity_name}
        )
        return self._result(status, data)

    def get_tenant(self, entity_id: str) -> Optional[ClientTenant]:
        _, data = self._request("GET", f"/tenants/{entity_id}")
        if data.get("tenant"):
            return self._parse_tenant(data["tenant"])
        return None

    def update_tenant(
        self,
        entity_id: str,
        entity_name: Optional[str] = None,
        status: Optional[str] = None,
    ) -> ClientResult:
        body: dict[str, Any] = {}
        if entity_name is not None:
            body["entityName"] = entity_name
        if status is not None:
            body["status"] = status
        code, data = self._request("PATCH", f"/tenants/{entity_id}", json=body)
        return self._result(code, data)

    def delete_tenant(self, entity_id: str) -> bool:
        _, data = self._request("DELETE", f"/tenants/{entity_id}")
        return "deletedTenant" in data

    def reconcile(self, repair: bool = False, drop_leaked: bool = False) -> Optional[ClientReconcileReport]:
        _, data = self._request(
            "POST", "/tenants/reconcile",
            json={"repair": repair, "dropLeaked": drop_leaked},
        )
        if "error" in data:
            return None
        return ClientReconcileReport(
            clean=data.get("clean", False),
            orphaned_rows=data.get("orphanedRows", []),
            leaked_namespaces=data.get("leakedNamespaces", []),
            stale_pending=data.get("stalePending", []),
            drifted_rows=data.get("driftedRows", []),
            repaired=data.get("repaired", []),
            dropped=data.get("dropped", []),
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "TenancyClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
