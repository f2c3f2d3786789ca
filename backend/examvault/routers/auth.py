#  custom login route for the app
import logging

from fastapi import APIRouter
from ..security import get_jwt_strategy
from fastapi import Depends, HTTPException, status
from ..db import get_user_db
from ..schemas.user_schema import LoginRequest, UserRead
from fastapi_users.password import PasswordHelper

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/auth', tags=['auth'])

pwd_helper = PasswordHelper()


@router.post("/login")
async def login(payload: LoginRequest, user_db = Depends(get_user_db)):

    user = await user_db.get_by_email(payload.email)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")

    valid, new_hash = pwd_helper.verify_and_update(payload.password, user.hashed_password)

    if not valid:
        logger.warning("Failed login for %s", payload.email)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")

    if new_hash:
        await user_db.update(user, {"hashed_password": new_hash})

    access_token = await get_jwt_strategy().write_token(user)

    # user and token; the role tells the frontend which dashboard to open
    return {"user": UserRead.model_validate(user, from_attributes=True), "token": access_token}
