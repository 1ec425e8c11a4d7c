from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from grownet.models.user import User


class UserDirectory:
    """Read-only user lookups; deactivated accounts are treated as absent."""

    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, user_id: int) -> User | None:
        user: User | None = self.db.get(User, user_id)
        if user is None or not user.is_active:
            return None
        return user

    def find_many(self, user_ids: Iterable[int]) -> list[User]:
        """Return the active users among ``user_ids``, in the order given."""
        ids: list[int] = list(user_ids)
        if not ids:
            return []
        users: list[User] = self.db.execute(
            select(User).where(User.id.in_(ids), User.is_active.is_(True))
        ).scalars().all()
        by_id: dict[int, User] = {u.id: u for u in users}
        return [by_id[i] for i in ids if i in by_id]
