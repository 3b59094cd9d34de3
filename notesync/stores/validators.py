"""
Credential Form Validators.

Pure functions returning a user-facing message when the value is
rejected, or None when it is acceptable.
"""

import re

EMAIL_PATTERN = re.compile(r"^[\w.+-]+@([\w-]+\.)+[\w-]{2,}$")
USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
PASSWORD_STRENGTH_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128
USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 30
NAME_MAX_LENGTH = 50


def validate_email(email: str | None) -> str | None:
    if email is None or not email.strip():
        return "Email is required"
    if not EMAIL_PATTERN.match(email.strip()):
        return "Please enter a valid email address"
    return None


def validate_password(password: str | None, is_new_password: bool = False) -> str | None:
    """
    Validate a password.

    A login password only has to be present. A new password must be at
    least PASSWORD_MIN_LENGTH characters and mix lowercase, uppercase and
    digits.
    """
    if not password:
        return "Password is required"
    if is_new_password:
        if len(password) < PASSWORD_MIN_LENGTH:
            return f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
        if len(password) > PASSWORD_MAX_LENGTH:
            return f"Password must be at most {PASSWORD_MAX_LENGTH} characters long"
        if not PASSWORD_STRENGTH_PATTERN.match(password):
            return "Password must contain uppercase, lowercase and numbers"
    return None


def validate_username(username: str | None) -> str | None:
    if username is None or not username.strip():
        return "Username is required"
    value = username.strip()
    if len(value) < USERNAME_MIN_LENGTH:
        return f"Username must be at least {USERNAME_MIN_LENGTH} characters long"
    if len(value) > USERNAME_MAX_LENGTH:
        return f"Username must be at most {USERNAME_MAX_LENGTH} characters long"
    if not USERNAME_PATTERN.match(value):
        return "Username can only contain letters, numbers and underscore"
    return None


def validate_name(name: str | None, field_name: str) -> str | None:
    """Optional name field; only its length is checked."""
    if name and len(name.strip()) > NAME_MAX_LENGTH:
        return f"{field_name} must be less than {NAME_MAX_LENGTH} characters"
    return None
