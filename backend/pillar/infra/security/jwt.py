"""Bearer token decoding. Tokens are issued by the auth service; this API only verifies them."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from pillar.settings import settings

logger = logging.getLogger(__name__)


def decode_token(token: str) -> Optional[dict[str, Any]]:
    """Decode and verify a JWT. Returns the claims, or None if the token is invalid or expired."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except jwt.PyJWTError as e:
        logger.debug("Rejected bearer token: %s", e)
        return None


def create_access_token(user_id: str, expires_in_seconds: int = 3600) -> str:
    """Mint an access token (used by tests and local tooling)."""
    now = datetime.now(timezone.utc)
    claims = {"sub": user_id, "type": "access", "iat": now, "exp": now + timedelta(seconds=expires_in_seconds)}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)
