from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from revalidator.dependencies.auth import Role, User, role_required
from revalidator.services.database import DatabaseHealthCheck
from revalidator.validation.service import RevalidationService

require_editor = role_required(Role.EDITOR)
require_viewer = role_required(Role.VIEWER)
require_admin = role_required(Role.ADMIN)

EditorUser = Annotated[User, Depends(require_editor)]
ViewerUser = Annotated[User, Depends(require_viewer)]
AdminUser = Annotated[User, Depends(require_admin)]


async def get_revalidation_service(request: Request) -> RevalidationService:
    service = getattr(request.app.state, "revalidation_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Revalidation service is not configured")
    return service


async def get_health_check(request: Request) -> DatabaseHealthCheck | None:
    return getattr(request.app.state, "health_check", None)
