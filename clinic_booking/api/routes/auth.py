from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..deps import get_db, get_settings, rate_limit_check
from ...core.config import Settings
from ...services.auth_service import AuthService
from ...schemas.auth import UserLogin, UserRegister, LoginResponse, UserResponse

router = APIRouter(tags=["Authentication"])

@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserRegister,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Register a new patient account."""
    auth_service = AuthService(db)
    user = auth_service.register_user(user_data)
    return UserResponse.model_validate(user)

@router.post("/login", response_model=LoginResponse)
def login(
    login_data: UserLogin,
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
    _: None = Depends(rate_limit_check)
):
    """Authenticate user and return a bearer token."""
    auth_service = AuthService(db, config)
    return auth_service.authenticate_user(login_data)
