from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class ErrorResponse(BaseModel):
    code: str
    message: str


class AuthRequiredResponse(ErrorResponse):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "code": "AUTH_REQUIRED",
                "message": "Login required",
                "login_url": "https://organizaciondame.org/auth?next=%2Fevents%2Fsalsa-night",
                "intent_id": "9f2c1e7a4b2d4f5a8e3c6b1d0a9f8e7d",
            }
        }
    )

    login_url: str
    intent_id: Optional[str] = None


class BadRequestResponse(ErrorResponse):
    field: Optional[str] = None
    attendee_position: Optional[int] = None
    min: Optional[int] = None
    max: Optional[int] = None


class ServerRejectedResponse(ErrorResponse):
    errors: Dict[str, Any] = {}


class ValidationErrorResponseDetail(BaseModel):
    field: str
    message: str


class ValidationErrorResponse(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "message": "Validation error in the request data (Pydantic validation).",
                "errors": [
                    {
                        "field": "quantity",
                        "message": "Input should be a valid integer",
                    },
                ],
            }
        },
    )

    message: str
    errors: list[ValidationErrorResponseDetail]


class NotFoundResponse(BaseModel):
    message: str = "Not Found"


class InternalServerErrorResponse(BaseModel):
    detail: str
