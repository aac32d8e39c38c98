"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status

if TYPE_CHECKING:
    from ingredient_scanner.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.get("/users", dependencies=[Depends(require_admin)])
async def list_users(request: Request) -> dict[str, object]:
    """Return users with scan counts and cumulative cost."""
    container: AppContainer = request.app.state.container
    return {"users": container.admin_service.list_users()}


@router.get("/users/{user_id}/scans", dependencies=[Depends(require_admin)])
async def list_user_scans(
    user_id: UUID, request: Request, limit: int = Query(default=20, ge=1, le=200)
) -> dict[str, object]:
    """Return a user's most recent scans."""
    container: AppContainer = request.app.state.container
    return {"scans": container.admin_service.list_user_scans(user_id, limit)}


@router.get("/products", dependencies=[Depends(require_admin)])
async def list_products(
    request: Request, limit: int = Query(default=20, ge=1, le=200)
) -> dict[str, object]:
    """Return recently created products."""
    container: AppContainer = request.app.state.container
    return {"products": container.admin_service.list_products(limit)}
