import logging

from sqlalchemy.orm import Session
from ..db import models
from . import security

logger = logging.getLogger(__name__)


def authenticate_admin(db: Session, login: str, password: str) -> models.AdminUser | None:
    admin = db.query(models.AdminUser).filter_by(login=login).first()
    if not admin:
        return None
    if not security.verify_password(password, admin.password_hash):
        return None
    return admin


def ensure_admin_exists(db: Session, login: str, password: str) -> models.AdminUser:
    """Create the bootstrap admin, or reset its password and role to the configured ones."""
    admin = db.query(models.AdminUser).filter_by(login=login).first()
    if admin is None:
        admin = models.AdminUser(
            login=login,
            password_hash=security.get_password_hash(password),
            role=models.AdminRole.admin,
        )
        db.add(admin)
        db.commit()
        logger.info("Created default admin user '%s'", login)
        return admin

    changed = False
    if not security.verify_password(password, admin.password_hash):
        admin.password_hash = security.get_password_hash(password)
        changed = True
    if admin.role != models.AdminRole.admin:
        admin.role = models.AdminRole.admin
        changed = True
    if changed:
        db.commit()
        logger.info("Updated default admin user '%s'", login)
    return admin
