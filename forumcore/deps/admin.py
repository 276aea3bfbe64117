# forumcore/deps/admin.py
from fastapi import Depends, HTTPException, status
from forumcore.models.user_model import User
from forumcore.utils.token_utils import get_current_user


def is_admin(user: "User") -> bool:
    return (getattr(user, "role", "") or "").upper() == "ADMIN"


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """
    Requires the authenticated user to have role=ADMIN.
    Raises 403 if not an admin.
    """
    if not is_admin(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return user
