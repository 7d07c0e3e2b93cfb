from sqlalchemy.orm import Session
from datetime import datetime, timedelta
import logging

from ..models.user import User, RefreshToken
from ..core.config import settings
from ..core.exceptions import AccountLockedError, AuthenticationError
from ..core.security import (
    verify_password, create_token_pair, verify_token, hash_token
)
from ..schemas.auth import UserLogin, UserRegister, TokenResponse, UserResponse
from .user_service import UserService

logger = logging.getLogger(__name__)

class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def register_user(self, user_data: UserRegister) -> User:
        """Register a new patient or doctor account."""
        return UserService(self.db).create_user(
            email=user_data.email,
            password=user_data.password,
            full_name=user_data.full_name,
            role=user_data.self_service_role,
            phone=user_data.phone
        )

    def authenticate_user(self, login_data: UserLogin) -> TokenResponse:
        """Authenticate user and return tokens."""
        user = self.db.query(User).filter(
            User.email == login_data.email
        ).first()

        if not user:
            logger.warning(f"Login attempt for unknown email {login_data.email}")
            raise AuthenticationError("Invalid email or password")

        # Check account lockout
        if user.locked_until and user.locked_until > datetime.utcnow():
            raise AccountLockedError()

        # Verify password
        if not verify_password(login_data.password, user.password_hash):
            self._handle_failed_login(user)
            raise AuthenticationError("Invalid email or password")

        if not user.is_active:
            raise AuthenticationError("Account is deactivated")

        # Reset failed login attempts
        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login = datetime.utcnow()

        tokens = create_token_pair(user.id, user.email, user.role)
        self._store_refresh_token(user.id, tokens.refresh_token)

        self.db.commit()
        self.db.refresh(user)
        logger.info(f"User {user.id} logged in")

        return self._token_response(user, tokens, "Login successful")

    def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """Exchange a live refresh token for a new token pair."""
        token_payload = verify_token(refresh_token)
        if not token_payload or token_payload.token_type != "refresh":
            raise AuthenticationError("Invalid refresh token")

        stored_token = self.db.query(RefreshToken).filter(
            RefreshToken.token_hash == hash_token(refresh_token),
            RefreshToken.is_revoked == False,  # noqa: E712
            RefreshToken.expires_at > datetime.utcnow()
        ).first()

        if not stored_token:
            raise AuthenticationError("Invalid or expired refresh token")

        user = self.db.query(User).filter(
            User.id == token_payload.sub
        ).first()

        if not user or not user.is_active:
            raise AuthenticationError("User not found or inactive")

        new_tokens = create_token_pair(user.id, user.email, user.role)

        # Revoke old refresh token and store new one
        stored_token.is_revoked = True
        self._store_refresh_token(user.id, new_tokens.refresh_token)

        self.db.commit()

        return self._token_response(user, new_tokens, "Token refreshed")

    def logout_user(self, refresh_token: str) -> bool:
        """Revoke a refresh token. Unknown tokens are ignored."""
        stored_token = self.db.query(RefreshToken).filter(
            RefreshToken.token_hash == hash_token(refresh_token)
        ).first()

        if not stored_token:
            return False

        stored_token.is_revoked = True
        self.db.commit()
        return True

    def _token_response(self, user: User, tokens, message: str) -> TokenResponse:
        return TokenResponse(
            message=message,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_type=tokens.token_type,
            expires_in=tokens.expires_in,
            user=UserResponse.model_validate(user)
        )

    def _handle_failed_login(self, user: User):
        """Count a failed attempt and lock the account past the threshold."""
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1

        if user.failed_login_attempts >= settings.MAX_FAILED_LOGINS:
            user.locked_until = datetime.utcnow() + timedelta(minutes=settings.LOCKOUT_MINUTES)
            logger.warning(f"User {user.id} locked after {user.failed_login_attempts} failed logins")

        self.db.commit()

    def _store_refresh_token(self, user_id: int, refresh_token: str):
        """Store refresh token in database, revoking older ones."""
        token_payload = verify_token(refresh_token)
        if token_payload and token_payload.exp:
            expires_at = datetime.utcfromtimestamp(token_payload.exp)
        else:
            expires_at = datetime.utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

        self.db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id
        ).update({"is_revoked": True})

        self.db.add(RefreshToken(
            user_id=user_id,
            token_hash=hash_token(refresh_token),
            expires_at=expires_at
        ))
