"""One-time code primitives - generation and keyed hashing."""

import hashlib
import hmac
import secrets
from typing import Union

from adaptive_auth.common.constants import MfaConstants


class OtpCodeGenerator:
    """Cryptographically random numeric codes of fixed length."""

    def __init__(self, length: int = MfaConstants.CODE_LENGTH):
        if length <= 0:
            raise ValueError("Code length must be positive")
        self.length = length

    def generate(self) -> str:
        return f"{secrets.randbelow(10 ** self.length):0{self.length}d}"


class CodeHasher:
    """HMAC-SHA256 over `session_id:code`.

    A code only verifies against the session it was issued for.
    """

    def __init__(self, key: Union[str, bytes]):
        if not key:
            raise ValueError("Hash key must not be empty")
        self._key = key.encode("utf-8") if isinstance(key, str) else key

    def hash(self, session_id: str, code: str) -> str:
        message = f"{session_id}:{code}".encode("utf-8")
        return hmac.new(self._key, message, hashlib.sha256).hexdigest()

    def verify(self, session_id: str, code: str, expected_hash: str) -> bool:
        """Constant-time comparison against a stored hash."""
        return hmac.compare_digest(self.hash(session_id, code), expected_hash)
