from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse


class TelecareError(Exception):
    """Base of the domain error taxonomy.

    ``message`` is safe to show to clients; anything more detailed belongs in
    the server log.
    """

    status_code: int = 400
    default_message: str = "Request failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(TelecareError):
    status_code = 400
    default_message = "Invalid input data"


class AuthenticationError(TelecareError):
    status_code = 401
    default_message = "Invalid or expired token"


class ForbiddenError(TelecareError):
    status_code = 403
    default_message = "Access denied"


class NotFoundError(TelecareError):
    status_code = 404
    default_message = "Not found"


class ConflictError(TelecareError):
    status_code = 409
    default_message = "Request conflicts with current state"


class DuplicateError(TelecareError):
    status_code = 409
    default_message = "Duplicate request"


def create_error_response(error_message: str, status_code: int = 400) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "data": None,
        "error": error_message
    }


def create_success_response(data) -> dict:
    """Create a standardized success response"""
    return {
        "success": True,
        "data": data,
        "error": None
    }


async def telecare_exception_handler(request: Request, exc: TelecareError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.message, exc.status_code)
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    # Convert 403 from HTTPBearer to 401 for missing authentication
    if exc.status_code == 403 and "Not authenticated" in str(exc.detail):
        return JSONResponse(
            status_code=401,
            content=create_error_response("Authentication required", 401)
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.detail, exc.status_code)
    )
