#!/usr/bin/env python3
"""
Create the initial admin account, or reset its password if it already exists.

Run with: python create_admin.py --email admin@example.com --password 'Admin123!'
Defaults come from ADMIN_EMAIL / ADMIN_PASSWORD / ADMIN_NAME.
"""
import argparse
import logging
import os
import sys

from app.core.database import SessionLocal, init_db
from app.core.security import UserRole, get_password_hash
from app.models import User
from app.services.user_service import UserService

logger = logging.getLogger("create_admin")

def create_or_reset_admin(db, email: str, password: str, full_name: str) -> User:
    """Create the admin, or promote/reset the existing account with that email."""
    email = email.strip().lower()
    user = db.query(User).filter(User.email == email).first()

    if user:
        user.password_hash = get_password_hash(password)
        user.role = UserRole.ADMIN
        user.is_active = True
        user.failed_login_attempts = 0
        user.locked_until = None
        db.commit()
        logger.info(f"Admin password updated for {email}")
        return user

    user = UserService(db).create_user(
        email=email,
        password=password,
        full_name=full_name,
        role=UserRole.ADMIN
    )
    logger.info(f"Admin created: {email}")
    return user

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create or reset the admin account")
    parser.add_argument("--email", default=os.getenv("ADMIN_EMAIL"))
    parser.add_argument("--password", default=os.getenv("ADMIN_PASSWORD"))
    parser.add_argument("--name", default=os.getenv("ADMIN_NAME", "Administrator"))
    args = parser.parse_args(argv)

    if not args.email or not args.password:
        parser.error("--email and --password are required (or ADMIN_EMAIL / ADMIN_PASSWORD)")
    if len(args.password) < 6:
        parser.error("password must be at least 6 characters")

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    init_db()
    db = SessionLocal()
    try:
        create_or_reset_admin(db, args.email, args.password, args.name)
    finally:
        db.close()
    return 0

if __name__ == "__main__":
    sys.exit(main())
