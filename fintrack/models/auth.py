"""
Authentication form models.

These mirror the rules enforced on the sign-in, sign-up and
password-reset forms. The backend applies its own rules as well;
validating here gives immediate, field-level feedback.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class LoginForm(BaseModel):
    """Email/password sign-in."""
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(
        ...,
        min_length=1,
        pattern=EMAIL_PATTERN,
        description="Account email"
    )
    password: str = Field(
        ...,
        min_length=6,
        description="Account password (at least 6 characters)"
    )


class SignupForm(BaseModel):
    """
    Account creation.

    Passwords need a lowercase letter, an uppercase letter and a digit,
    and must be typed twice.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(
        ...,
        min_length=1,
        pattern=EMAIL_PATTERN,
    )
    password: str = Field(
        ...,
        min_length=6,
    )
    confirm_password: str

    @field_validator('password')
    @classmethod
    def validate_password_strength(cls, v: str) -> str:
        if not (
            any(c.islower() for c in v)
            and any(c.isupper() for c in v)
            and any(c.isdigit() for c in v)
        ):
            raise ValueError(
                "Password must contain at least one uppercase letter, "
                "one lowercase letter and one digit"
            )
        return v

    @model_validator(mode='after')
    def validate_passwords_match(self) -> 'SignupForm':
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class ForgotPasswordForm(BaseModel):
    """Password reset request."""
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(
        ...,
        min_length=1,
        pattern=EMAIL_PATTERN,
    )


class AuthSession(BaseModel):
    """An authenticated user, as returned by the auth backend."""

    user_id: str = Field(
        ...,
        min_length=1,
        description="Backend user ID (namespace for all user records)"
    )
    email: str
    id_token: Optional[str] = None
    refresh_token: Optional[str] = None
