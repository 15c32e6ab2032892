from fastapi import APIRouter, Depends

from guestbook.auth.dependencies import get_current_user
from guestbook.models.user import User

router = APIRouter(tags=['auth'])


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return {"id": current_user.id, "name": current_user.name, "role": current_user.role}
