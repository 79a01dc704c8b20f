# storefront/auth.py
import logging
from typing import Any, Dict, Optional

from fastapi import Depends
from werkzeug.security import check_password_hash, generate_password_hash

from .database import Store
from .errors import InvalidCredentials, Unauthenticated, ValidationFailed
from .models import Admin
from .sessions import SessionContext, get_session

logger = logging.getLogger("storefront.auth")


def ensure_admin(store: Store, username: str, password: str) -> Optional[Admin]:
    """Seed the first admin account when the store has none."""
    if store.admins:
        return None
    admin = store.create_admin(username, generate_password_hash(password))
    logger.info("Seeded admin account %r", username)
    return admin


def login(store: Store, session: SessionContext, username: Optional[str], password: Optional[str]) -> Dict[str, Any]:
    if not username or not password:
        raise ValidationFailed("Missing credentials")
    admin = store.find_admin(username)
    if admin is None or not check_password_hash(admin.password_hash, password):
        logger.warning("Failed admin login for %r", username)
        raise InvalidCredentials()
    session.rotate()
    session.admin_id = admin.id
    logger.info("Admin %r logged in", username)
    return {"id": admin.id, "username": admin.username}


def logout(session: SessionContext) -> Dict[str, Any]:
    session.destroy()
    return {"ok": True}


def current_admin(session: SessionContext) -> Dict[str, Any]:
    if session.admin_id is None:
        raise Unauthenticated()
    return {"id": session.admin_id}


# FastAPI dependency guarding every catalog mutation.
def require_admin(session: SessionContext = Depends(get_session)) -> SessionContext:
    if session.admin_id is None:
        raise Unauthenticated()
    return session
