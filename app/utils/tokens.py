from typing import Any
from jose import JWTError, jwt
from app.config import get_settings

class InvalidToken(Exception):
    pass

def decode_access_token(token: str) -> dict[str, Any]:
    """Verify a bearer token issued by the identity provider and return its claims."""
    settings = get_settings()
    try:
        claims = jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE or None,
        )
    except JWTError as exc:
        raise InvalidToken(str(exc)) from exc
    if not claims.get("sub"):
        raise InvalidToken("Token has no subject claim")
    return claims

def profile_from_claims(claims: dict[str, Any]) -> dict[str, str]:
    """Fields for a new ``users`` row, taken from provider claims."""
    metadata = claims.get("user_metadata") or {}
    email = claims.get("email") or f"{claims['sub']}@users.invalid"
    user_type = metadata.get("user_type")
    return {
        "email": email,
        "name": metadata.get("name") or email.split("@")[0],
        "user_type": user_type if user_type in ("designer", "tester") else "tester",
    }
