from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import Optional
import logging

from ..models.user import User
from ..core.config import Settings, settings
from ..core.errors import EmailAlreadyRegistered, InvalidCredentials
from ..core.security import (
    verify_password, get_password_hash, create_user_token, UserRole
)
from ..schemas.auth import UserLogin, UserRegister, LoginResponse, UserSummary

logger = logging.getLogger(__name__)

class AuthService:
    def __init__(self, db: Session, config: Optional[Settings] = None):
        self.db = db
        self.config = config or settings

    def register_user(self, user_data: UserRegister) -> User:
        """Register a new patient account."""
        # Check if user already exists
        existing_user = self.db.query(User).filter(
            User.email == user_data.email
        ).first()

        if existing_user:
            raise EmailAlreadyRegistered()

        new_user = User(
            name=user_data.name,
            email=user_data.email,
            password_hash=get_password_hash(user_data.password),
            role=UserRole.PATIENT,
        )

        self.db.add(new_user)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration for the same email
            self.db.rollback()
            raise EmailAlreadyRegistered()
        self.db.refresh(new_user)

        logger.info(f"Registered user {new_user.id}")
        return new_user

    def authenticate_user(self, login_data: UserLogin) -> LoginResponse:
        """Authenticate user and return a bearer token."""
        user = self.db.query(User).filter(
            User.email == login_data.email
        ).first()

        if not user or not verify_password(login_data.password, user.password_hash):
            logger.info("Rejected login attempt")
            raise InvalidCredentials()

        token = create_user_token(user.id, user.email, user.role, self.config)

        return LoginResponse(
            token=token,
            expires_in=self.config.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            role=user.role,
            user=UserSummary.model_validate(user)
        )

    def ensure_admin(self, name: str, email: str, password: str) -> User:
        """Create the admin account if it does not exist yet.

        An existing account with the same email is left untouched.
        """
        email = email.strip().lower()
        user = self.db.query(User).filter(User.email == email).first()
        if user:
            return user

        user = User(
            name=name,
            email=email,
            password_hash=get_password_hash(password),
            role=UserRole.ADMIN,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)

        logger.info(f"Created admin account {user.email}")
        return user
