"""
Coded errors and the JSON error body rendered for them
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import structlog

logger = structlog.get_logger(__name__)


class ErrorCode(Enum):
    """Business error codes with their numeric code and default message"""

    ORGANIZATION_NAME_REQUIRED = (1000, "Organization name is required.")
    TENANT_ALREADY_EXISTS = (1001, "Organization name already exists.")
    DOMAIN_ALREADY_EXISTS = (1002, "Domain name already exists.")
    ADMIN_USERNAME_ALREADY_EXISTS = (1003, "Admin username already exists.")
    ADMIN_EMAIL_ALREADY_EXISTS = (1004, "Admin email already exists.")
    REALM_ALREADY_EXISTS = (1005, "Organization realm already exists.")
    ADMIN_USERNAME_REQUIRED = (1006, "Admin username is required.")
    REALM_CREATION_FAILED = (1006, "Unable to create organization realm.")
    ADMIN_EMAIL_REQUIRED = (1007, "Admin email is required.")
    INVALID_DOMAIN = (1007, "A valid domain name is required.")
    ORGANIZATION_PHONE_NUMBER_REQUIRED = (1008, "Organization phone number is required.")
    CLIENT_CREATION_FAILED = (1008, "Unable to create organization client.")
    ORGANIZATION_PHONE_NUMBER_ALREADY_EXISTS = (1009, "Organization phone number already exists.")
    USER_CREATION_FAILED = (1010, "Unable to create organization admin user.")
    USER_CONFIG_FAILED = (1010, "Unable to configure organization admin user.")
    ORGANIZATION_EMAIL_REQUIRED = (1011, "Organization email is required.")
    EMAIL_SEND_FAILED = (1011, "Unable to send welcome email.")
    ORGANIZATION_EMAIL_ALREADY_EXISTS = (1012, "Organization email already exists.")
    UNKNOWN_STATE = (1013, "Organization is in an unknown provisioning state.")
    INTERNAL_ERROR = (1013, "Organization could not be created.")
    TENANT_NOT_FOUND = (1014, "Organization not found.")
    TENANT_ALREADY_ACTIVE = (1015, "Organization is already active.")
    ADMIN_PHONE_NUMBER_ALREADY_EXISTS = (1016, "Admin phone number already exists.")
    ADMIN_PHONE_NUMBER_REQUIRED = (1017, "Admin phone number is required.")
    TENANT_NAME_IMMUTABLE = (1018, "Organization name cannot be changed.")
    INVALID_PARENT_TENANT = (1019, "Parent organization does not exist.")
    USERNAME_GENERATION_FAILED = (1020, "Unable to generate a unique username.")

    GROUP_ALREADY_EXISTS = (2001, "Group already exists.")
    ROLE_ALREADY_EXISTS = (2002, "Role already exists.")

    IDP_USER_CREATION_FAILED = (3001, "Unable to create user in identity provider.")
    USER_UPDATE_FAILED = (3003, "Unable to update user in identity provider.")
    DEFAULT_USER_DELETE_NOT_ALLOWED = (3005, "The organization admin user cannot be deleted.")
    USER_EMAIL_EXISTS = (3101, "Email already exists.")
    USER_USERNAME_EXISTS = (3102, "Username already exists.")
    USER_PHONE_EXISTS = (3103, "Phone number already exists.")
    IDP_USER_EXISTS = (3104, "User already exists in identity provider.")

    VALIDATION_FAILED = (4000, "Request validation failed.")

    def __init__(self, number: int, default_message: str):
        self.number = number
        self.default_message = default_message


class IamOperationError(Exception):
    """Business failure carrying a stable error code"""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, error: ErrorCode, message: Optional[str] = None):
        self.error = error
        self.message = message or error.default_message
        super().__init__(self.message)

    @property
    def error_code(self) -> str:
        return self.error.name

    @property
    def error_number(self) -> int:
        return self.error.number


class ResourceNotFoundError(Exception):
    """Requested resource does not exist"""

    error_code = "RESOURCE_NOT_FOUND"
    error_number = 4040

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthenticationFailed(Exception):
    """Bearer token was missing, unverifiable or expired"""

    def __init__(self, error: str = "Invalid token"):
        self.error = error
        super().__init__(error)


def error_body(error_code: str, error_number: int, message: str) -> dict:
    return {
        "success": False,
        "errorCode": error_code,
        "errorNumber": error_number,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def iam_operation_error_handler(request: Request, exc: IamOperationError):
    logger.warning(f"{exc.error_code} ({exc.error_number}) on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.error_code, exc.error_number, exc.message),
    )


async def not_found_handler(request: Request, exc: ResourceNotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=error_body(exc.error_code, exc.error_number, exc.message),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', []))}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(
            ErrorCode.VALIDATION_FAILED.name,
            ErrorCode.VALIDATION_FAILED.number,
            details or ErrorCode.VALIDATION_FAILED.default_message,
        ),
    )


async def authentication_failed_handler(request: Request, exc: AuthenticationFailed):
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"error": exc.error, "status": status.HTTP_401_UNAUTHORIZED},
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(
            "INTERNAL_SERVER_ERROR",
            5000,
            "An unexpected error occurred. Please try again later.",
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(IamOperationError, iam_operation_error_handler)
    app.add_exception_handler(ResourceNotFoundError, not_found_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(AuthenticationFailed, authentication_failed_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
