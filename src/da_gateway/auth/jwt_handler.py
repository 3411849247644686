"""Staff JWT verification.

Tokens are issued by the external auth service and signed with the shared
JWT_SECRET (HS256). This service only verifies them; `create_access_token`
exists for local tooling and tests.

Claims:
    sub          staff id
    type         "access"
    role         StaffRole value; "ADMIN" bypasses permission checks
    permissions  {resource: {"view": bool, "edit": bool, "delete": bool}}
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from config.settings import settings
from src.da_common.errors import InvalidCredentialsError

_ALGORITHM = settings.JWT_ALGORITHM  # "HS256"
_DEFAULT_EXPIRE = timedelta(minutes=30)


def create_access_token(
    staff_id: str,
    role: str,
    permissions: dict[str, dict[str, bool]],
    expires_in: timedelta = _DEFAULT_EXPIRE,
) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": staff_id,
        "type": "access",
        "role": role,
        "permissions": permissions,
        "iat": now,
        "exp": now + expires_in,
    }
    return str(jwt.encode(payload, settings.JWT_SECRET, algorithm=_ALGORITHM))


def decode_token(token: str) -> dict[str, Any]:
    """Decode and validate an access token.

    Raises:
        InvalidCredentialsError: signature invalid, token expired, or wrong type.
    """
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[_ALGORITHM],  # Explicit list prevents algorithm confusion
        )
    except JWTError:
        raise InvalidCredentialsError() from None

    if payload.get("type") != "access" or not payload.get("sub"):
        raise InvalidCredentialsError()
    return payload
