"""Authentication services package."""

from fintrack.services.auth.firebase_auth import (
    AuthError,
    FirebaseAuthService,
    get_error_message,
)

__all__ = [
    "AuthError",
    "FirebaseAuthService",
    "get_error_message",
]
