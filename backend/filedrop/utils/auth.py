"""
Utility functions for authentication and authorization.
"""
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from ..config import settings
from ..core.dependencies import AppServices, get_services

basic_auth = HTTPBasic(auto_error=False, realm=settings.AUTH_REALM)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": f'Basic realm="{settings.AUTH_REALM}"'},
    )


async def get_admin_user(
    credentials: Optional[HTTPBasicCredentials] = Depends(basic_auth),
    services: AppServices = Depends(get_services),
) -> str:
    """Return the username of the authenticated administrator.

    Missing or wrong credentials get a 401 with a Basic challenge so that
    browsers prompt for a login.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    if not await services.users.verify(credentials.username, credentials.password):
        raise _unauthorized("Invalid username or password")

    return credentials.username
