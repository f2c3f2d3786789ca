from fastapi_users import schemas
from ..models.user_model import UserRole
import uuid
from pydantic import BaseModel, field_validator


class UserRead(schemas.BaseUser[uuid.UUID]):
    full_name: str
    role: UserRole


class UserCreate(schemas.BaseUserCreate):
    full_name: str
    role: UserRole = UserRole.STUDENT

    @field_validator("role")
    @classmethod
    def no_self_registered_admins(cls, v):
        # admins are created directly in the database
        if v == UserRole.ADMIN:
            raise ValueError("Cannot register as admin")
        return v


class UserUpdate(schemas.BaseUserUpdate):
    full_name: str | None = None


class LoginRequest(BaseModel):
    email: str
    password: str
