from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Generator, Optional
import logging

from ..core.config import Settings
from ..core.database import Store
from ..core.errors import AuthenticationError, AuthorizationError, RateLimitExceeded
from ..core.security import security, verify_token, UserRole, TokenPayload
from ..models.user import User
from ..services.booking_service import BookingService
from ..services.slot_service import SlotService

logger = logging.getLogger(__name__)

def get_settings(request: Request) -> Settings:
    return request.app.state.settings

def get_store(request: Request) -> Store:
    return request.app.state.store

# Database dependency
def get_db(store: Store = Depends(get_store)) -> Generator[Session, None, None]:
    """Get database session."""
    with store.session_scope() as db:
        yield db

# Redis dependency
def get_redis(request: Request):
    """Get Redis client, or None when rate limiting is off."""
    return request.app.state.redis

def get_booking_service(store: Store = Depends(get_store)) -> BookingService:
    return BookingService(store)

def get_slot_service(store: Store = Depends(get_store)) -> SlotService:
    return SlotService(store)

async def get_current_user_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    config: Settings = Depends(get_settings)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    if credentials is None:
        raise AuthenticationError()

    token_payload = verify_token(credentials.credentials, config)
    if not token_payload:
        raise AuthenticationError("Invalid or expired token")

    if token_payload.token_type != "access" or not token_payload.sub:
        raise AuthenticationError("Invalid token")

    return token_payload

def get_current_user(
    token_payload: TokenPayload = Depends(get_current_user_token),
    db: Session = Depends(get_db)
) -> User:
    """Get current authenticated user from database."""
    user = db.query(User).filter(User.id == token_payload.sub).first()
    if not user:
        raise AuthenticationError("User not found")

    return user

# Role-based access control dependencies
def require_role(*allowed_roles: UserRole):
    """Create a dependency that requires specific user roles."""
    def role_checker(
        current_user: User = Depends(get_current_user)
    ) -> User:
        if current_user.role not in allowed_roles:
            raise AuthorizationError(
                f"Access denied. Required roles: {[role.value for role in allowed_roles]}"
            )
        return current_user

    return role_checker

# Specific role dependencies
def get_admin_user(
    current_user: User = Depends(require_role(UserRole.ADMIN))
) -> User:
    """Require admin role."""
    return current_user

def get_patient_user(
    current_user: User = Depends(require_role(UserRole.PATIENT))
) -> User:
    """Require patient role."""
    return current_user

# Rate limiting dependency
def rate_limit_check(
    request: Request,
    redis_client = Depends(get_redis),
    config: Settings = Depends(get_settings)
) -> None:
    """Fixed-window rate limiting for authentication endpoints."""
    if redis_client is None:
        return

    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:{request.url.path}:{client_ip}"

    current_requests = redis_client.incr(key)
    if current_requests == 1:
        redis_client.expire(key, config.RATE_LIMIT_WINDOW_SECONDS)

    if current_requests > config.RATE_LIMIT_MAX_REQUESTS:
        logger.warning(f"Rate limit hit for {client_ip} on {request.url.path}")
        raise RateLimitExceeded()
