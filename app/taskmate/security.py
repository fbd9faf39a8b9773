from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from werkzeug.security import check_password_hash, generate_password_hash


class TokenError(Exception):
    """Raised when a bearer token cannot be trusted."""


class TokenExpired(TokenError):
    pass


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    return check_password_hash(password_hash, password)


def issue_token(user_id: int, config: dict, *, now: datetime | None = None) -> str:
    """Sign a token for `user_id` that expires after JWT_EXPIRES_HOURS."""
    issued = now or datetime.now(timezone.utc)
    expires = issued + timedelta(hours=int(config["JWT_EXPIRES_HOURS"]))
    claims = {
        "sub": str(user_id),
        "iat": int(issued.timestamp()),
        "exp": int(expires.timestamp()),
    }
    return jwt.encode(claims, config["JWT_SECRET"], algorithm=config.get("JWT_ALGORITHM", "HS256"))


def decode_token(token: str, config: dict) -> int:
    """Verify signature and expiry; return the user id from `sub`."""
    try:
        payload = jwt.decode(token, config["JWT_SECRET"], algorithms=[config.get("JWT_ALGORITHM", "HS256")])
    except ExpiredSignatureError as e:
        raise TokenExpired("Token expired") from e
    except JWTError as e:
        raise TokenError("Token is not valid") from e

    sub = payload.get("sub")
    try:
        return int(sub)
    except (TypeError, ValueError) as e:
        raise TokenError("Token is not valid") from e


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an `Authorization: Bearer <token>` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None
