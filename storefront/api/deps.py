# storefront/api/deps.py
"""
Request dependencies: database session and caller identity.

Authentication itself happens upstream; the gateway forwards the caller id in
the X-User-Id header and roles are read from the users table.
"""
from dataclasses import dataclass

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from storefront.api.errors import to_http
from storefront.data.database import get_db
from storefront.data.models.user import ADMIN_ROLE
from storefront.domain.errors import AccessDenied, Unauthenticated
from storefront.repos.user_repo import UserRepo
from storefront.services.idempotency_service import IdempotencyService


@dataclass(frozen=True)
class CurrentUser:
    id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def get_current_user(
    x_user_id: str | None = Header(None, alias="X-User-Id"),
    db: Session = Depends(get_db),
) -> CurrentUser:
    if not x_user_id or not x_user_id.strip().isdigit():
        raise to_http(Unauthenticated())

    user_id = int(x_user_id)
    role = UserRepo(db).get_role(user_id)
    if role is None:
        raise to_http(Unauthenticated())

    return CurrentUser(id=user_id, role=role)


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise to_http(AccessDenied("Admin access required"))
    return user


def get_idempotency_service() -> IdempotencyService:
    return IdempotencyService()
