from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from ..core.exceptions import AuthenticationError, NotFoundError, ValidationFailed
from ..core.security import UserRole, get_password_hash, verify_password
from ..models.user import User, RefreshToken
from ..schemas.user import AdminUserUpdate, ProfileUpdate

logger = logging.getLogger(__name__)

class UserService:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User not found")
        return user

    def create_user(
        self,
        email: str,
        password: str,
        full_name: str,
        role: UserRole,
        phone: Optional[str] = None
    ) -> User:
        """Insert a user after checking the email is free."""
        self._ensure_email_free(email)

        user = User(
            email=email,
            password_hash=get_password_hash(password),
            full_name=full_name,
            phone=phone or None,
            role=role,
            is_active=True
        )
        self.db.add(user)
        self._commit()
        self.db.refresh(user)

        logger.info(f"Created {role.value} account {user.id} <{email}>")
        return user

    def list_doctors(self) -> List[User]:
        return self.db.query(User).filter(
            User.role == UserRole.DOCTOR,
            User.is_active == True  # noqa: E712
        ).order_by(User.full_name.asc()).all()

    def list_users(
        self,
        role: Optional[UserRole] = None,
        search: Optional[str] = None
    ) -> List[User]:
        query = self.db.query(User)
        if role is not None:
            query = query.filter(User.role == role)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(or_(
                User.full_name.ilike(pattern),
                User.email.ilike(pattern)
            ))
        return query.order_by(User.created_at.desc(), User.id.desc()).all()

    def update_profile(self, user: User, data: ProfileUpdate) -> User:
        """Apply a partial update to the caller's own profile."""
        if not self._apply(user, data.model_dump(exclude_unset=True)):
            raise ValidationFailed("No changes provided")
        self._commit()
        self.db.refresh(user)
        return user

    def admin_update_user(
        self,
        admin: User,
        user_id: int,
        data: AdminUserUpdate
    ) -> User:
        user = self.get_user(user_id)
        changes = data.model_dump(exclude_unset=True)

        role_changed = False
        role = changes.pop("role", None)
        if role is not None and role != user.role:
            if user.id == admin.id:
                raise ValidationFailed("You cannot change your own role")
            user.role = role
            role_changed = True

        if not self._apply(user, changes) and not role_changed:
            raise ValidationFailed("No changes provided")
        self._commit()
        self.db.refresh(user)

        logger.info(f"Admin {admin.id} updated user {user.id}")
        return user

    def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")

        user.password_hash = get_password_hash(new_password)
        self.db.commit()

    def reset_password(self, user_id: int, new_password: str) -> None:
        """Admin override; also revokes the user's refresh tokens."""
        user = self.get_user(user_id)
        user.password_hash = get_password_hash(new_password)
        user.failed_login_attempts = 0
        user.locked_until = None

        self.db.query(RefreshToken).filter(
            RefreshToken.user_id == user.id
        ).update({"is_revoked": True})

        self.db.commit()
        logger.info(f"Password reset for user {user.id}")

    def set_active(self, admin: User, user_id: int, is_active: bool) -> User:
        user = self.get_user(user_id)
        if user.id == admin.id and not is_active:
            raise ValidationFailed("You cannot deactivate your own account")

        user.is_active = is_active
        self.db.commit()
        self.db.refresh(user)
        return user

    def delete_user(self, admin: User, user_id: int) -> None:
        if user_id == admin.id:
            raise ValidationFailed("You cannot delete your own account")

        user = self.get_user(user_id)
        self.db.query(RefreshToken).filter(RefreshToken.user_id == user.id).delete()
        self.db.delete(user)
        self.db.commit()
        logger.info(f"Admin {admin.id} deleted user {user_id}")

    def _ensure_email_free(self, email: str, exclude_id: Optional[int] = None) -> None:
        query = self.db.query(User).filter(User.email == email)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first():
            raise ValidationFailed("Email already registered")

    def _commit(self) -> None:
        """Commit, mapping a lost race on the unique email index to a 400."""
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValidationFailed("Email already registered")

    def _apply(self, user: User, changes: dict) -> bool:
        """Copy profile fields onto the user; returns whether anything changed."""
        updated = False

        if changes.get("full_name"):
            user.full_name = changes["full_name"].strip()
            updated = True

        if "phone" in changes:
            user.phone = changes["phone"] or None
            updated = True

        if changes.get("email"):
            self._ensure_email_free(changes["email"], exclude_id=user.id)
            user.email = changes["email"]
            updated = True

        return updated
