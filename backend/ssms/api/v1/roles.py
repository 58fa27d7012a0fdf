from __future__ import annotations

from fastapi import APIRouter

from ssms.core.permissions import catalog_document

router = APIRouter()


@router.get("/catalog")
async def role_catalog():
    """Roles, permissions and per-role defaults. Public; clients never hard-code these."""
    return catalog_document()
