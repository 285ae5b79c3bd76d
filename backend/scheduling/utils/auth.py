from datetime import datetime, timedelta, timezone
from typing import Sequence

import jwt
from jwt import InvalidTokenError


def create_access_token(
    *,
    subject: str,
    secret: str,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=30))
    payload = {"sub": subject, "iat": now, "exp": exp}
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(
    token: str,
    *,
    secret: str,
    algorithms: Sequence[str],
) -> str:
    """Return the token subject; raises ValueError for invalid, expired or subject-less tokens."""
    try:
        payload = jwt.decode(token, secret, algorithms=list(algorithms))
    except InvalidTokenError as exc:  # includes ExpiredSignatureError
        raise ValueError("invalid token") from exc

    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub:
        raise ValueError("token missing sub")
    return sub
