# telecare/schemas/common/common.py
from pydantic import BaseModel
from typing import Any, Optional


class ErrorResponse(BaseModel):
    success: bool = False
    data: Optional[Any] = None
    error: str


class ActionResponse(BaseModel):
    success: bool = True
    message: str
