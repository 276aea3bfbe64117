# forumcore/routes/user_routes.py
from fastapi import APIRouter, Depends

from forumcore.deps.forum import get_cascade_deleter
from forumcore.models.user_model import User
from forumcore.schemas.forum_schemas import AccountPurgeOut
from forumcore.services.cascade_deleter import CascadeDeleter
from forumcore.utils.token_utils import get_current_user

router = APIRouter(prefix="/users", tags=["users"])


@router.delete("/me", response_model=AccountPurgeOut)
async def delete_my_account(
    user: User = Depends(get_current_user),
    deleter: CascadeDeleter = Depends(get_cascade_deleter),
):
    """Close the caller's account; their forum contributions are purged or hidden."""
    return await deleter.delete_user_content(user.id)
