from __future__ import annotations

import re
from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import BaseModel, Field, StringConstraints, TypeAdapter, ValidationError

from ...errors import InvalidInput

# E.164-like: optional '+', no leading zero, 2..15 digits
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$", re.ASCII)

Required = Annotated[str, StringConstraints(min_length=1)]


def is_valid_phone(phone: str) -> bool:
    return PHONE_PATTERN.fullmatch(phone) is not None


class SendOtp(BaseModel):
    action: Literal["send_otp"]
    phone: Required

    missing_message: ClassVar[str] = "Invalid phone number"


class VerifyOtp(BaseModel):
    action: Literal["verify_otp"]
    phone: Required
    otp: Required

    missing_message: ClassVar[str] = "Phone number and OTP required"


class ResetPassword(BaseModel):
    action: Literal["reset_password"]
    token: Required
    password: Required

    missing_message: ClassVar[str] = "Token and password required"


class EnableOtp(BaseModel):
    action: Literal["enable_otp"]
    user_id: Required
    phone: Required

    missing_message: ClassVar[str] = "User ID and phone number required"


class DisableOtp(BaseModel):
    action: Literal["disable_otp"]
    user_id: Required

    missing_message: ClassVar[str] = "User ID required"


ActionRequest = Annotated[
    Union[SendOtp, VerifyOtp, ResetPassword, EnableOtp, DisableOtp],
    Field(discriminator="action"),
]

_ADAPTER: TypeAdapter[ActionRequest] = TypeAdapter(ActionRequest)
_BY_ACTION: dict[str, type[BaseModel]] = {
    "send_otp": SendOtp,
    "verify_otp": VerifyOtp,
    "reset_password": ResetPassword,
    "enable_otp": EnableOtp,
    "disable_otp": DisableOtp,
}


def parse_action(body: Any) -> ActionRequest:
    """Turn a decoded JSON body into one of the action variants.

    An unknown or absent `action` raises InvalidInput("Invalid action"); a known
    action with missing fields raises InvalidInput with that action's message.
    """
    try:
        return _ADAPTER.validate_python(body)
    except ValidationError as e:
        action = body.get("action") if isinstance(body, dict) else None
        model = _BY_ACTION.get(action) if isinstance(action, str) else None
        if model is None:
            raise InvalidInput("Invalid action") from e
        raise InvalidInput(model.missing_message) from e  # type: ignore[attr-defined]


class ActionOut(BaseModel):
    success: bool = True
    message: str
    token: str | None = None
