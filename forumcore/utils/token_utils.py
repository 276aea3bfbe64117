from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from forumcore import config
from forumcore.database import get_async_session
from forumcore.models.user_model import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")


def _get_secret_key() -> str:
    secret = config.SECRET_KEY
    if not secret:
        # Fail fast with a clear message instead of a generic 500
        raise RuntimeError("SECRET_KEY is not configured in the backend environment")
    if len(secret) < 32:
        raise RuntimeError("SECRET_KEY is too short; use at least 32 characters")
    return secret


def create_access_token(user: User) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {
        "id": user.id,         # what get_current_user expects
        "sub": user.username,  # helpful for auditing/logs
        "role": user.role,
        "exp": expire,
    }
    return jwt.encode(to_encode, _get_secret_key(), algorithm=config.ALGORITHM)


def _user_id_from_token(token: str) -> Optional[int]:
    try:
        payload = jwt.decode(token, _get_secret_key(), algorithms=[config.ALGORITHM])
    except JWTError:
        return None
    user_id = payload.get("id")
    return int(user_id) if user_id is not None else None


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_async_session)
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    user_id = _user_id_from_token(token)
    if user_id is None:
        raise credentials_exception

    user = await session.get(User, user_id)
    if not user:
        raise credentials_exception

    return user


async def get_current_user_optional(
    request: Request,
    session: AsyncSession = Depends(get_async_session),
) -> Optional[User]:
    """Same as get_current_user, but anonymous/invalid tokens simply yield None."""
    auth = request.headers.get("Authorization")
    if not auth or not auth.lower().startswith("bearer "):
        return None
    user_id = _user_id_from_token(auth.split(" ", 1)[1].strip())
    if user_id is None:
        return None
    return await session.get(User, user_id)
