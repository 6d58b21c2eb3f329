"""
Authentication Service using the Firebase Identity Toolkit REST API

DESIGN DECISION: We call the public REST endpoints instead of the Admin SDK
because:
1. The Admin SDK cannot verify a password, only the client API can
2. The same endpoints back every Firebase client library
3. A plain HTTP call is trivial to stub in tests

This service handles:
1. Email/password sign in
2. Account creation
3. Password reset emails
4. Translating backend error codes to user-facing messages

Session state (who is signed in) is NOT kept here; the UI layer holds
the returned AuthSession.
"""

from typing import Optional

import requests
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from fintrack.config import get_settings
from fintrack.models.auth import AuthSession


logger = structlog.get_logger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1/accounts"


# Identity Toolkit REST codes -> client SDK style codes
REST_ERROR_CODES = {
    "INVALID_LOGIN_CREDENTIALS": "auth/invalid-credential",
    "INVALID_PASSWORD": "auth/wrong-password",
    "EMAIL_NOT_FOUND": "auth/user-not-found",
    "EMAIL_EXISTS": "auth/email-already-in-use",
    "WEAK_PASSWORD": "auth/weak-password",
    "INVALID_EMAIL": "auth/invalid-email",
    "MISSING_EMAIL": "auth/invalid-email",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "auth/too-many-requests",
    "USER_DISABLED": "auth/user-disabled",
}

ERROR_MESSAGES = {
    "auth/invalid-credential": "Invalid credentials",
    "auth/user-not-found": "No account found with this email address",
    "auth/wrong-password": "Incorrect password",
    "auth/email-already-in-use": "This email address is already in use",
    "auth/weak-password": "The password must be at least 6 characters long",
    "auth/invalid-email": "Invalid email address",
    "auth/too-many-requests": "Too many attempts. Please try again later",
}

DEFAULT_ERROR_MESSAGE = "An error occurred. Please try again"


def get_error_message(code: str) -> str:
    """User-facing message for an auth error code."""
    return ERROR_MESSAGES.get(code, DEFAULT_ERROR_MESSAGE)


def normalize_error_code(rest_message: str) -> str:
    """
    Convert a REST error message to an auth code.

    REST messages look like "EMAIL_EXISTS" or
    "WEAK_PASSWORD : Password should be at least 6 characters".
    """
    raw = rest_message.split(":")[0].strip()
    return REST_ERROR_CODES.get(raw, "auth/unknown")


class AuthError(Exception):
    """Authentication request failed."""

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        self.message = message or get_error_message(code)
        super().__init__(self.message)


class FirebaseAuthService:
    """
    Email/password authentication against Firebase.

    IMPORTANT BOUNDARIES:
    1. This service does NOT validate form input; the flows do
    2. Every failure surfaces as AuthError with a stable code
    3. Network errors are retried, rejections are not
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        if api_key is None or timeout is None:
            settings = get_settings().firebase
            api_key = api_key or settings.web_api_key
            timeout = timeout or settings.auth_timeout_seconds
        self._api_key = api_key
        self._timeout = timeout

    @retry(
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _send(self, endpoint: str, payload: dict) -> requests.Response:
        return requests.post(
            f"{IDENTITY_TOOLKIT_URL}:{endpoint}?key={self._api_key}",
            json=payload,
            timeout=self._timeout,
        )

    def _post(self, endpoint: str, payload: dict) -> dict:
        """
        Call an accounts endpoint and return the decoded body.

        Raises:
            AuthError: On rejection or when the service is unreachable
        """
        try:
            response = self._send(endpoint, payload)
        except requests.RequestException as e:
            logger.error("auth_request_failed", endpoint=endpoint, error=str(e))
            raise AuthError("auth/network-request-failed")

        try:
            body = response.json()
        except ValueError:
            body = {}

        if not response.ok:
            rest_message = body.get("error", {}).get("message", "")
            code = normalize_error_code(rest_message)
            logger.warning(
                "auth_request_rejected",
                endpoint=endpoint,
                status=response.status_code,
                code=code,
            )
            raise AuthError(code)

        return body

    def _session(self, body: dict) -> AuthSession:
        return AuthSession(
            user_id=body["localId"],
            email=body.get("email", ""),
            id_token=body.get("idToken", ""),
            refresh_token=body.get("refreshToken", ""),
        )

    def sign_in(self, email: str, password: str) -> AuthSession:
        """Sign in with email and password."""
        body = self._post("signInWithPassword", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        return self._session(body)

    def sign_up(self, email: str, password: str) -> AuthSession:
        """Create an account; the new user is signed in."""
        body = self._post("signUp", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        return self._session(body)

    def send_password_reset(self, email: str) -> None:
        """Ask Firebase to email a password reset link."""
        self._post("sendOobCode", {
            "requestType": "PASSWORD_RESET",
            "email": email,
        })
