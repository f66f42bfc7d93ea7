from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.data.models.user import UserModel


class UserRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_role(self, user_id: int) -> str | None:
        """Role of a known user, None when the id is unknown."""
        return self.db.execute(
            select(UserModel.role).where(UserModel.id == user_id)
        ).scalar_one_or_none()
