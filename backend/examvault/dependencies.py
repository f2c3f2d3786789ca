from typing import Optional

from fastapi import Depends, HTTPException, status, Request
from .models.user_model import User, UserRole
from .security import current_active_user
from .services.content_store import ContentStore
from .services.notification_service import ExamNotifier


def current_user_has_role(required_role: UserRole):
    async def current_user_contains_role(user: User = Depends(current_active_user)):
        if user.role != required_role:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Operation not permitted",
            )
        return user
    return current_user_contains_role


current_admin = current_user_has_role(UserRole.ADMIN)
current_institute = current_user_has_role(UserRole.INSTITUTE)
current_student = current_user_has_role(UserRole.STUDENT)


async def users_router_permission(request: Request, user: User = Depends(current_active_user)):
    # anyone may read or patch their own profile; everything else is admin only
    if request.url.path.rstrip("/").endswith("/users/me"):
        return True
    if user.role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Operation not permitted")
    return True


def get_content_store(request: Request) -> ContentStore:
    return request.app.state.content_store


def get_notifier(request: Request) -> Optional[ExamNotifier]:
    return getattr(request.app.state, "notifier", None)
