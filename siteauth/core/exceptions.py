# siteauth/core/exceptions.py
from datetime import datetime


class AuthAPIException(Exception):
    """Base class for every error the API turns into a structured response."""
    def __init__(self, message: str = "Authentication error"):
        self.message = message
        super().__init__(self.message)


class ValidationException(AuthAPIException):
    """Malformed input. `errors` maps field names to human-readable messages."""
    def __init__(self, errors: dict[str, str], message: str = "Validation failed"):
        self.errors = errors
        super().__init__(message)


class DuplicateEmailException(AuthAPIException):
    def __init__(self, message: str = "Email already registered"):
        super().__init__(message)


class InvalidCredentialsException(AuthAPIException):
    """Unknown email or wrong password. Both cases share one message."""
    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class AccountLockedException(AuthAPIException):
    """Raised when a login is attempted while `locked_until` is still in the future."""
    def __init__(self, message: str = "Account is locked", locked_until: datetime | None = None):
        self.locked_until = locked_until
        super().__init__(message)


class InvalidTokenException(AuthAPIException):
    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message)


class StorageException(AuthAPIException):
    def __init__(self, message: str = "Database error"):
        super().__init__(message)


class HashingException(AuthAPIException):
    def __init__(self, message: str = "Password hashing failed"):
        super().__init__(message)


class VerificationException(HashingException):
    def __init__(self, message: str = "Password verification failed"):
        super().__init__(message)
