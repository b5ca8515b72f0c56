# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Every sale and stock change must be attributable to an operator. Uses
bcrypt for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper and lower case letters and a digit
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import logging
import re

import bcrypt

from ..extensions import db
from ..models import Role, User
from ..validation import ConflictError, ValidationError
from pos_app.time_utils import utcnow

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]{3,64}$")
USER_MUTABLE_FIELDS = {"name", "role", "is_active", "password"}


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str, *, rounds: int = 12) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    A malformed stored hash counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _get_role(role_name: str) -> Role:
    role = db.session.query(Role).filter_by(name=role_name).first()
    if role is None:
        raise ValidationError(f"Role {role_name} not found")
    return role


def get_user(user_id: int) -> User | None:
    return db.session.query(User).filter_by(id=user_id).first()


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.username.asc()).all()


def create_user(
    username: str,
    password: str,
    name: str | None = None,
    role_name: str = "cashier",
    *,
    rounds: int = 12,
) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises:
        ValidationError: bad username or unknown role
        ConflictError: username already taken
        PasswordValidationError: weak password
    """
    username = (username or "").strip()
    if not USERNAME_RE.match(username):
        raise ValidationError(
            "username must be 3-64 characters: letters, digits, '.', '_' or '-'"
        )

    existing = db.session.query(User).filter_by(username=username).first()
    if existing:
        raise ConflictError("Username already exists")

    role = _get_role(role_name)
    password_hash = hash_password(password, rounds=rounds)

    user = User(
        username=username,
        name=(name or "").strip() or username,
        password_hash=password_hash,
        role=role,
    )

    db.session.add(user)
    db.session.commit()
    logger.info("user %s created with role %s", username, role.name)
    return user


def update_user(user_id: int, patch: dict, *, rounds: int = 12) -> User | None:
    """
    Edit name, role, active flag or password. Returns None if the user does
    not exist. Deactivating a user revokes their sessions.
    """
    user = get_user(user_id)
    if user is None:
        return None

    unknown = set(patch) - USER_MUTABLE_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    if "name" in patch:
        name = str(patch["name"] or "").strip()
        if not name:
            raise ValidationError("name cannot be blank")
        user.name = name
    if "role" in patch:
        user.role = _get_role(str(patch["role"]))
    if "password" in patch:
        user.password_hash = hash_password(patch["password"], rounds=rounds)
    if "is_active" in patch:
        if not isinstance(patch["is_active"], bool):
            raise ValidationError("is_active must be true or false")
        user.is_active = patch["is_active"]

    db.session.commit()

    if user.is_active is False or "password" in patch:
        from .session_service import revoke_all_user_sessions
        revoke_all_user_sessions(user.id)

    return user


def delete_user(user_id: int) -> bool:
    """
    Delete a user. Sales keep their sold_by name; their user_id link is
    cleared.
    """
    from ..models import Sale

    user = get_user(user_id)
    if user is None:
        return False

    db.session.query(Sale).filter(Sale.user_id == user_id).update(
        {Sale.user_id: None}, synchronize_session=False
    )
    db.session.delete(user)
    db.session.commit()
    logger.info("user %s deleted", user.username)
    return True


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate user with username and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        User.username == (username or "").strip(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password or "", user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    logger.warning("failed login for %s", user.username)
    return None
