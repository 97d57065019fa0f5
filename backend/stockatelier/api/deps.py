from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from stockatelier.core.config import settings
from stockatelier.core.errors import UnauthenticatedError
from stockatelier.core.security import read_session_token
from stockatelier.db.models.user import User
from stockatelier.db.session import get_session as _get_session
from stockatelier.services.authz import Principal


async def get_db() -> AsyncIterator[AsyncSession]:
    async for s in _get_session():
        yield s


async def get_current_principal(
    authorization: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthenticatedError()

    try:
        user_id, token_version = read_session_token(settings.app_secret_key, token.strip(), settings.session_ttl_sec)
    except ValueError as e:
        raise UnauthenticatedError("invalid or expired session") from e

    user = await db.get(User, user_id)
    if user is None or not user.active or int(user.token_version) != token_version:
        raise UnauthenticatedError("invalid or expired session")
    return Principal.from_user(user)
