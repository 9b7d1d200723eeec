from datetime import datetime, timedelta
from typing import Optional
from fastapi import APIRouter, Depends, Response
from sqlmodel.ext.asyncio.session import AsyncSession
from framework.database.manager import get_db
from framework.repository.unit_of_work import UnitOfWork
from framework.response import ResponseModel
from framework.security import CurrentUser, get_current_user
from framework.config import settings
from ..models import User
from ..service import IdentityService
from pydantic import BaseModel, EmailStr

router = APIRouter()

class RegisterSchema(BaseModel):
    email: EmailStr
    password: str
    first_name: str
    last_name: str
    date_of_birth: Optional[datetime] = None

class LoginSchema(BaseModel):
    email: EmailStr
    password: str

class ChangePasswordSchema(BaseModel):
    current_password: str
    new_password: str

def get_uow(
    db: AsyncSession = Depends(get_db)
) -> UnitOfWork:
    """Dependency: create UnitOfWork."""
    return UnitOfWork(session=db)

def get_identity_service(uow: UnitOfWork = Depends(get_uow)) -> IdentityService:
    """Dependency: create IdentityService."""
    return IdentityService(uow)

def user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "full_name": user.full_name,
        "date_of_birth": user.date_of_birth.isoformat() if user.date_of_birth else None,
        "profile_picture_url": user.profile_picture_url,
        "roles": user.role_names,
    }

@router.post("/register")
async def register(
    data: RegisterSchema,
    service: IdentityService = Depends(get_identity_service)
):
    """Register a new user with the default role."""
    user = await service.register_user(
        data.email, data.password, data.first_name, data.last_name, data.date_of_birth
    )
    return ResponseModel.success(data=user_payload(user), message="User registered successfully")

@router.post("/login")
async def login(
    data: LoginSchema,
    response: Response,
    service: IdentityService = Depends(get_identity_service)
):
    """Login: return JWT and set cookie."""
    user = await service.authenticate_user(data.email, data.password)
    expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = service.issue_token(user, expires_delta=expires_delta)

    response.set_cookie(
        key=settings.ACCESS_TOKEN_COOKIE_NAME,
        value=access_token,
        max_age=int(expires_delta.total_seconds()),
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE
    )

    return ResponseModel.success(
        data={
            "access_token": access_token,
            "token_type": "bearer",
            "expires_in": int(expires_delta.total_seconds()),
            "user": user_payload(user)
        }
    )

@router.get("/profile")
async def profile(
    current_user: CurrentUser = Depends(get_current_user),
    service: IdentityService = Depends(get_identity_service)
):
    user = await service.get_profile(current_user.id)
    return ResponseModel.success(data=user_payload(user))

@router.post("/change-password")
async def change_password(
    data: ChangePasswordSchema,
    current_user: CurrentUser = Depends(get_current_user),
    service: IdentityService = Depends(get_identity_service)
):
    await service.change_password(current_user.id, data.current_password, data.new_password)
    return ResponseModel.success(message="Password changed successfully")

@router.post("/logout")
async def logout(response: Response):
    """Logout: clear token cookie."""
    response.delete_cookie(
        key=settings.ACCESS_TOKEN_COOKIE_NAME,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE
    )
    return ResponseModel.success(data={"message": "Logged out successfully"})

@router.get("/validate-token")
async def validate_token(current_user: CurrentUser = Depends(get_current_user)):
    """Echo the claims of a valid token."""
    return ResponseModel.success(data={"valid": True, **current_user.model_dump()})
