"""Helpers for building consistent HTTP error bodies."""

from typing import Optional

from fastapi import HTTPException


def api_error(status_code: int, error: str, message: str, detail: Optional[str] = None) -> HTTPException:
    """Build an HTTPException whose detail matches ``ErrorResponse``."""
    return HTTPException(
        status_code=status_code,
        detail={"error": error, "message": message, "detail": detail},
    )
