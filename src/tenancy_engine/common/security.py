"""Shared-secret authentication for the administrative routes."""

import hmac
from typing import Optional

from fastapi import Header, HTTPException


async def require_admin_key(
    x_admin_key: Optional[str] = Header(None, alias="x-admin-key"),
) -> str:
    """FastAPI dependency that validates the admin shared secret from header."""
    from tenancy_engine.common.config import get_settings

    settings = get_settings()
    if not x_admin_key or not hmac.compare_digest(
        x_admin_key.encode(), settings.admin_key.encode()
    ):
        raise HTTPException(status_code=401, detail="Invalid admin key")
    return x_admin_key
