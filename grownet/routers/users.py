from fastapi import APIRouter, status
from sqlalchemy import select

from grownet.dependencies import AdminUser, CurrentUser, DbSession
from grownet.exceptions import NotFound
from grownet.models.user import User
from grownet.schemas.user import UserRead, UserUpdate

router = APIRouter(prefix="/users", tags=["users"])


def _get_user_or_404(user_id: int, db) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found.")
    return user


@router.get("/me", response_model=UserRead)
def get_me(user: CurrentUser):
    return user


@router.get("", response_model=list[UserRead])
def list_users(admin: AdminUser, db: DbSession):
    users = db.execute(select(User).order_by(User.id)).scalars().all()
    return users


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, admin: AdminUser, db: DbSession):
    return _get_user_or_404(user_id, db)


@router.put("/{user_id}", response_model=UserRead)
def update_user(user_id: int, updates: UserUpdate, admin: AdminUser, db: DbSession):
    user = _get_user_or_404(user_id, db)

    for field, value in updates.model_dump(exclude_unset=True).items():
        setattr(user, field, value)

    db.flush()
    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: int, admin: AdminUser, db: DbSession):
    user = _get_user_or_404(user_id, db)
    db.delete(user)
    db.flush()
