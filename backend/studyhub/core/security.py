"""Identity-provider token utilities.

Access tokens are issued by the external identity provider; this module only
verifies them.  ``create_access_token`` mints tokens with the same secret for
local development and tests.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from studyhub.config import settings


def create_access_token(
    data: dict,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    if settings.IDP_ISSUER:
        to_encode.setdefault("iss", settings.IDP_ISSUER)
    if settings.IDP_AUDIENCE:
        to_encode.setdefault("aud", settings.IDP_AUDIENCE)
    return jwt.encode(
        to_encode, settings.IDP_JWT_SECRET, algorithm=settings.IDP_JWT_ALGORITHM
    )


def decode_identity_token(token: str) -> dict | None:
    """Verify an identity-provider JWT. Returns the claims or None on failure."""
    options = {"verify_aud": bool(settings.IDP_AUDIENCE)}
    try:
        return jwt.decode(
            token,
            settings.IDP_JWT_SECRET,
            algorithms=[settings.IDP_JWT_ALGORITHM],
            audience=settings.IDP_AUDIENCE or None,
            issuer=settings.IDP_ISSUER or None,
            options=options,
        )
    except JWTError:
        return None
