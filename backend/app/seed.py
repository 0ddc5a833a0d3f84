"""Admin account provisioning.

Registration only ever creates regular users, so administrators are
created here, from configuration, on startup.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.database import SessionLocal
from app.models.user import User, UserRole
from app.services.auth_service import hash_password

logger = logging.getLogger(__name__)


def ensure_admin(db: Session, name: str, email: str, password: str) -> User:
    """Create the admin account unless a user with ``email`` already exists."""
    email = email.lower()
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        if existing.role != UserRole.admin:
            logger.warning("User %s exists but is not an admin; leaving role unchanged", email)
        else:
            logger.debug("Admin user %s already exists", email)
        return existing

    admin = User(name=name, email=email, password_hash=hash_password(password), role=UserRole.admin)
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("Created admin user %s (%s)", admin.user_id, email)
    return admin


def seed_from_settings() -> Optional[User]:
    if not (settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD):
        return None
    db = SessionLocal()
    try:
        return ensure_admin(db, settings.ADMIN_NAME, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
    finally:
        db.close()
