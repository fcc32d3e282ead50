# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every action must be attributable. Uses bcrypt for secure password
hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
- Inactive or soft-deleted users cannot authenticate
"""

import bcrypt
import re
from ..extensions import db
from ..models import User, Site, Department
from ..permissions import roles
from casework.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
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
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    A malformed stored hash verifies as False.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    *,
    username: str,
    full_name: str,
    password: str,
    role: str,
    email: str | None = None,
    site_id: int | None = None,
    department_id: int | None = None,
    is_site_admin: bool = False,
) -> User:
    """
    Create new staff user with bcrypt password hashing.

    Raises:
        ValueError: unknown role, duplicate username/email, missing site/department
        PasswordValidationError: If password doesn't meet requirements
    """
    if not roles.is_valid_role(role):
        raise ValueError(f"Unknown role: {role}")

    existing_filters = [User.username == username]
    if email:
        existing_filters.append(User.email == email)
    existing = db.session.query(User).filter(db.or_(*existing_filters)).first()
    if existing:
        raise ValueError("Username or email already exists")

    if site_id is not None:
        site = db.session.query(Site).filter_by(id=site_id).first()
        if not site:
            raise ValueError("Site not found")

    if department_id is not None:
        department = db.session.query(Department).filter_by(id=department_id, deleted_at=None).first()
        if not department:
            raise ValueError("Department not found")

    # Hash password with bcrypt (validates strength automatically)
    password_hash = hash_password(password)

    user = User(
        username=username,
        full_name=full_name,
        email=email,
        password_hash=password_hash,
        role=role,
        site_id=site_id,
        department_id=department_id,
        is_site_admin=is_site_admin,
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate user with username (or email) and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
        User.deleted_at.is_(None),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
