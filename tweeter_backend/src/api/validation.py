"""
Input validation for register, login and post-creation requests.

The validators are pure: they take the decoded JSON body and return a
ValidationResult with field-keyed messages. The ``*_input`` dependencies wrap
them for use in a route's dependency list and raise ValidationError (400).
"""
import json
from typing import Any, Dict, Type

from email_validator import EmailNotValidError, validate_email
from fastapi import Request
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from src.api.errors import ValidationError

USERNAME_MIN, USERNAME_MAX = 2, 30
PASSWORD_MIN, PASSWORD_MAX = 6, 30
TEXT_MAX = 140


class ValidationResult(BaseModel):
    valid: bool
    errors: Dict[str, str] = Field(default_factory=dict)
    data: Dict[str, Any] = Field(default_factory=dict)


def _as_text(value: Any) -> str:
    # null, numbers, lists etc. are treated as a missing value
    return value if isinstance(value, str) else ""


def _required(value: str, field: str) -> str:
    if not value.strip():
        raise PydanticCustomError(field, f"{field.capitalize()} is required")
    return value


def _check_email(value: str) -> str:
    value = _required(value.strip(), "email")
    try:
        # display-name forms such as "Alice <alice@example.com>" are rejected
        return validate_email(value, check_deliverability=False).normalized
    except EmailNotValidError:
        raise PydanticCustomError("email", "Email is invalid")


class RegisterInput(BaseModel):
    # missing keys must still go through the required checks
    model_config = ConfigDict(validate_default=True)

    username: str = ""
    email: str = ""
    password: str = ""

    @field_validator("username", "email", "password", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("username")
    @classmethod
    def _username(cls, value: str) -> str:
        value = _required(value.strip(), "username")
        if not USERNAME_MIN <= len(value) <= USERNAME_MAX:
            raise PydanticCustomError(
                "username", f"Username must be between {USERNAME_MIN} and {USERNAME_MAX} characters"
            )
        return value

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("password")
    @classmethod
    def _password(cls, value: str) -> str:
        _required(value, "password")
        if not PASSWORD_MIN <= len(value) <= PASSWORD_MAX:
            raise PydanticCustomError(
                "password", f"Password must be between {PASSWORD_MIN} and {PASSWORD_MAX} characters"
            )
        return value


class LoginInput(BaseModel):
    # missing keys must still go through the required checks
    model_config = ConfigDict(validate_default=True)

    email: str = ""
    password: str = ""

    @field_validator("email", "password", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("password")
    @classmethod
    def _password(cls, value: str) -> str:
        return _required(value, "password")


class PostInput(BaseModel):
    # missing keys must still go through the required checks
    model_config = ConfigDict(validate_default=True)

    text: str = ""

    @field_validator("text", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("text")
    @classmethod
    def _text(cls, value: str) -> str:
        value = _required(value.strip(), "text")
        if len(value) > TEXT_MAX:
            raise PydanticCustomError("text", f"Text must be between 1 and {TEXT_MAX} characters")
        return value


def _validate(model: Type[BaseModel], data: Any) -> ValidationResult:
    if not isinstance(data, dict):
        data = {}
    try:
        parsed = model.model_validate(data)
    except PydanticValidationError as exc:
        errors: Dict[str, str] = {}
        for err in exc.errors():
            field = str(err["loc"][0]) if err["loc"] else "body"
            errors.setdefault(field, err["msg"])
        return ValidationResult(valid=False, errors=errors)
    return ValidationResult(valid=True, data=parsed.model_dump())


# PUBLIC_INTERFACE
def validate_register_input(data: Any) -> ValidationResult:
    """Check username, email and password of a registration body."""
    return _validate(RegisterInput, data)


# PUBLIC_INTERFACE
def validate_login_input(data: Any) -> ValidationResult:
    """Check email and password of a login body."""
    return _validate(LoginInput, data)


# PUBLIC_INTERFACE
def validate_post_input(data: Any) -> ValidationResult:
    """Check the text of a new post."""
    return _validate(PostInput, data)


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}


def _raise_if_invalid(result: ValidationResult) -> Dict[str, Any]:
    if not result.valid:
        raise ValidationError(errors=result.errors)
    return result.data


async def register_input(request: Request) -> Dict[str, Any]:
    return _raise_if_invalid(validate_register_input(await _read_json(request)))


async def login_input(request: Request) -> Dict[str, Any]:
    return _raise_if_invalid(validate_login_input(await _read_json(request)))


async def post_input(request: Request) -> Dict[str, Any]:
    return _raise_if_invalid(validate_post_input(await _read_json(request)))
