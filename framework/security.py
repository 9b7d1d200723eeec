from datetime import datetime, timedelta, timezone
from typing import Optional, List, Sequence
from jose import jwt, JWTError
from passlib.context import CryptContext
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel
from framework.config import settings
from framework.exceptions.handler import AuthenticationError, BusinessException

# 1. Password hashing (BCrypt)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# 2. Bearer token from the Authorization header; cookie is the fallback
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_AUTH_PREFIX}/login", auto_error=False)

# --- Core models ---

class CurrentUser(BaseModel):
    """Current logged-in user context, built from token claims."""
    id: int
    email: str
    roles: List[str] = []

    def has_role(self, *roles: str) -> bool:
        return any(role in self.roles for role in roles)

# --- Helpers ---

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def create_access_token(
    subject: int,
    email: str,
    roles: Sequence[str] = (),
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed JWT carrying user id, email and roles."""
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": str(subject),
        "email": email,
        "roles": list(roles),
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

def decode_access_token(token: str) -> dict:
    """Validate signature, issuer, audience and lifetime (no clock skew). Returns claims."""
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
            options={"leeway": 0},
        )
    except JWTError as e:
        raise AuthenticationError(f"Invalid token: {e}")

def user_from_claims(claims: dict) -> CurrentUser:
    subject = claims.get("sub")
    email = claims.get("email")
    if subject is None or email is None:
        raise AuthenticationError()
    try:
        user_id = int(subject)
    except (TypeError, ValueError):
        raise AuthenticationError()
    return CurrentUser(id=user_id, email=email, roles=claims.get("roles") or [])

# --- FastAPI dependencies ---

def get_token_from_request(
    request: Request,
    token_from_header: Optional[str] = Depends(oauth2_scheme)
) -> Optional[str]:
    """Get token from request: prefer Authorization header, then cookie."""
    if token_from_header:
        return token_from_header
    return request.cookies.get(settings.ACCESS_TOKEN_COOKIE_NAME)

def get_current_user(token: Optional[str] = Depends(get_token_from_request)) -> CurrentUser:
    """
    Dependency: validate token and extract user. Use in router as user: CurrentUser = Depends(get_current_user).
    """
    if not token:
        raise AuthenticationError("Not authenticated")
    return user_from_claims(decode_access_token(token))

def require_roles(*roles: str):
    """Dependency factory: current user must hold at least one of the roles."""
    def checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not user.has_role(*roles):
            raise BusinessException("Insufficient permissions", status_code=403, code=403)
        return user
    return checker
