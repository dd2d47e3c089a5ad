from pydantic import BaseModel
from typing import Optional


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None


class DeleteResponse(BaseModel):
    success: bool = True
    message: str
    deleted_id: str


# Documented on every admin router so the OpenAPI schema shows the error body
ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}
