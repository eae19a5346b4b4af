# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every order must be attributable to a cashier. Uses bcrypt for
password hashing and validates password strength on creation.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, upper, lower and a digit required
- Session tokens managed separately (see session_service.py)
"""

import logging
import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User, USER_ROLES
from ..validation import ConflictError, ValidationError, coerce_text

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Raised when credentials or a session are rejected."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def _bcrypt_rounds() -> int:
    return int(current_app.config.get("BCRYPT_ROUNDS", 12))


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt. Stored as a string."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe check via bcrypt.checkpw. Malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(name: str, email: str, password: str, role: str = "cashier") -> User:
    """
    Create a staff account.

    Raises:
        ValidationError: bad name/email/role or weak password
        ConflictError: email already registered
    """
    name = coerce_text("name", name)
    email = coerce_text("email", email)
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of {', '.join(USER_ROLES)}")

    existing = db.session.query(User).filter(User.email == email.strip().lower()).first()
    if existing:
        raise ConflictError("Email already registered")

    user = User(name=name, email=email, password_hash=hash_password(password), role=role)
    db.session.add(user)
    db.session.commit()
    logger.info("Created %s user %s", role, user.email)
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Returns User if credentials are valid and the account is active,
    None otherwise. All login flows go through here.
    """
    if not email or not password:
        return None

    user = db.session.query(User).filter(
        User.email == str(email).strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.name.asc()).all()


def set_user_active(user_id: int, is_active: bool) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise AuthError("User not found")
    user.is_active = is_active
    db.session.commit()
    return user
