"""
Shared response schemas.
"""

from typing import Dict, Optional
from pydantic import BaseModel


class SuccessResponse(BaseModel):
    """Generic success response."""

    success: bool = True
    message: str = "OK"


class ErrorResponse(BaseModel):
    """Error envelope returned by every failing request."""

    error: str
    fields: Optional[Dict[str, str]] = None

