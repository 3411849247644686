"""FastAPI dependencies: get_current_staff / require_permission.

Usage in any protected router:
    from src.da_gateway.auth.dependencies import require_permission

    CanEdit = Annotated[StaffPrincipal, Depends(require_permission("pnl", PermissionAction.EDIT))]

    @router.post("/pnl")
    async def create(staff: CanEdit):
        ...
"""

from collections.abc import Awaitable, Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from src.da_common.enums import PermissionAction
from src.da_common.errors import InvalidCredentialsError, PermissionDeniedError
from src.da_gateway.auth.jwt_handler import decode_token
from src.da_gateway.auth.permissions import StaffPrincipal

# Tokens come from the external auth service; tokenUrl only feeds Swagger's "Authorize" button
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

# Reusable 401 exception with WWW-Authenticate header (OAuth2 standard)
_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_staff(token: str = Depends(oauth2_scheme)) -> StaffPrincipal:
    """Validate the Bearer token and return the staff principal.

    Raises HTTP 401 if the token is missing, invalid, or expired.
    """
    try:
        claims = decode_token(token)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None
    return StaffPrincipal.from_claims(claims)


def require_permission(
    resource: str, action: PermissionAction
) -> Callable[..., Awaitable[StaffPrincipal]]:
    """Build a dependency that admits only staff allowed `action` on `resource`."""

    async def _check(
        staff: StaffPrincipal = Depends(get_current_staff),
    ) -> StaffPrincipal:
        if not staff.can(resource, action):
            raise PermissionDeniedError(resource, action.value)
        return staff

    return _check
