from datetime import datetime, timedelta
from typing import Optional
from loguru import logger
from sqlalchemy.exc import IntegrityError
from framework.security import create_access_token, get_password_hash, verify_password
from framework.exceptions.handler import BusinessException, ConflictException, NotFoundException
from framework.config import settings
from framework.repository.unit_of_work import UnitOfWork
from .models import User
from .repository import RoleRepository, UserRepository


class IdentityService:
    def __init__(self, uow: UnitOfWork):
        """Initialize Identity Service with UnitOfWork."""
        self.uow = uow
        self.users = uow.get_repository(UserRepository)
        self.roles = uow.get_repository(RoleRepository)

    def _check_password(self, password: str) -> None:
        if len(password) < settings.PASSWORD_MIN_LENGTH:
            raise BusinessException(
                f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters long",
                code=400
            )

    async def register_user(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        date_of_birth: Optional[datetime] = None,
    ) -> User:
        """Register a user with the default role."""
        self._check_password(password)
        if not await self.users.is_email_unique(email):
            raise ConflictException("Email is already registered")

        role = await self.roles.get_or_create(settings.DEFAULT_USER_ROLE)
        user = User(
            email=email,
            username=email,
            hashed_password=get_password_hash(password),
            first_name=first_name,
            last_name=last_name,
            date_of_birth=date_of_birth,
            roles=[role],
        )
        await self.users.add(user)
        try:
            await self.uow.save_changes()
        except IntegrityError as e:
            error_msg = str(e.orig) if hasattr(e, 'orig') else str(e)
            logger.warning(f"Registration conflict for {email}: {error_msg}")
            raise ConflictException("Email is already registered")

        logger.info(f"User {email} registered with role {role.name}")
        return await self.users.get_by_id(user.id)

    async def authenticate_user(self, email: str, password: str) -> User:
        """Authenticate user by email and password."""
        user = await self.users.get_by_email(email)
        if not user or not verify_password(password, user.hashed_password):
            logger.warning(f"Failed login attempt for {email}")
            raise BusinessException("Invalid email or password", status_code=401, code=401)

        logger.info(f"User {email} authenticated successfully")
        return user

    async def get_profile(self, user_id: int) -> User:
        user = await self.users.get_by_id(user_id)
        if not user:
            raise NotFoundException("User not found")
        return user

    async def change_password(self, user_id: int, current_password: str, new_password: str) -> None:
        user = await self.get_profile(user_id)
        if not verify_password(current_password, user.hashed_password):
            raise BusinessException("Current password is incorrect", code=400)
        self._check_password(new_password)
        user.hashed_password = get_password_hash(new_password)
        await self.users.update(user)
        await self.uow.save_changes()
        logger.info(f"User {user.email} changed password")

    def issue_token(self, user: User, expires_delta: Optional[timedelta] = None) -> str:
        """JWT for the user with its current roles."""
        return create_access_token(
            subject=user.id,
            email=user.email,
            roles=user.role_names,
            expires_delta=expires_delta,
        )
