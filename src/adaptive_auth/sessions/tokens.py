"""Session token minting."""

import base64
import secrets
from datetime import datetime

from adaptive_auth.common.constants import SessionConstants


def generate_session_token(now: datetime, random_bytes: int = SessionConstants.TOKEN_RANDOM_BYTES) -> str:
    """Opaque token: unix timestamp plus random bytes, URL-safe base64 without padding."""
    raw = str(int(now.timestamp())).encode("ascii") + secrets.token_bytes(random_bytes)
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")
