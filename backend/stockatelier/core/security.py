from __future__ import annotations

import base64
import hashlib
import json
from uuid import UUID

from cryptography.fernet import Fernet, InvalidToken


def _derive_fernet_key(secret: str) -> bytes:
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


def issue_session_token(secret: str, user_id: UUID, token_version: int) -> str:
    f = Fernet(_derive_fernet_key(secret))
    payload = json.dumps({"sub": str(user_id), "ver": int(token_version)}).encode("utf-8")
    return f.encrypt(payload).decode("utf-8")


def read_session_token(secret: str, token: str, ttl_sec: int) -> tuple[UUID, int]:
    """
    Return ``(user_id, token_version)`` sealed in ``token``.

    Raises ValueError when the token is malformed, tampered with, or older than ``ttl_sec``.
    """
    f = Fernet(_derive_fernet_key(secret))
    try:
        raw = f.decrypt(token.encode("utf-8"), ttl=ttl_sec)
    except InvalidToken as e:
        raise ValueError("invalid session token") from e

    try:
        data = json.loads(raw)
        return UUID(str(data["sub"])), int(data["ver"])
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError("invalid session token payload") from e
