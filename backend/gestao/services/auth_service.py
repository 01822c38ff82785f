# Overview: Service-layer operations for auth; password hashing and user accounts.

"""
Authentication Service

Users belong to exactly one organization (org_id). Username/email
uniqueness is tenant-scoped. Passwords are hashed with bcrypt (cost 12)
and must pass a strength check before hashing.
"""

import re

import bcrypt

from ..extensions import db
from ..models import User
from gestao.time_utils import utcnow
from .tenant_service import TenantAccessError, validate_org_active


class PasswordValidationError(ValueError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Requirements: 8+ characters, one uppercase, one lowercase, one digit,
    one special character.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    org_id: int,
    name: str | None = None,
) -> User:
    """
    Create a user with a bcrypt-hashed password.

    Raises:
        ValueError: org missing/inactive, or username/email taken in this org
        PasswordValidationError: weak password
    """
    try:
        validate_org_active(org_id)
    except TenantAccessError as e:
        raise ValueError(str(e)) from e

    existing = db.session.query(User).filter(
        User.org_id == org_id,
        db.or_(User.username == username, User.email == email)
    ).first()

    if existing:
        raise ValueError("Username or email already exists in this organization")

    user = User(
        org_id=org_id,
        username=username,
        email=email,
        name=name,
        password_hash=hash_password(password),
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str, org_id: int | None = None) -> User | None:
    """
    Check credentials (username or email). Returns the User or None.

    When org_id is given, the lookup is limited to that organization.
    Updates last_login_at on success.
    """
    query = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    )
    if org_id is not None:
        query = query.filter(User.org_id == org_id)

    user = query.first()
    if not user:
        return None

    try:
        validate_org_active(user.org_id)
    except TenantAccessError:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
