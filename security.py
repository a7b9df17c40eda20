import os
from typing import Any, Dict

import jwt

from errors import AuthenticationError

# Tokens are issued by the campus identity service and signed with this secret.
JWT_SECRET = os.getenv("JWT_SECRET", "change-this-secret-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")


def decode_token(token: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError("Invalid token") from exc
    return payload


def token_email(payload: Dict[str, Any]) -> str:
    email = payload.get("email") or payload.get("sub")
    if not email or not isinstance(email, str):
        raise AuthenticationError("Invalid token subject")
    return email
