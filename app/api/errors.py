"""
Application errors

Domain failures raise AppError; the handlers in main.py render it as the
standard envelope {"code", "message", "data": null}.
"""
from __future__ import annotations


class AppError(Exception):
    """
    Application error

    - code: business error code (HTTP status * 1000 + sequence)
    - message: user facing message
    - status_code: HTTP status

    Example:
        raise AppError(code=404201, message="Image not found", status_code=404)
    """

    def __init__(self, *, code: int, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code


def not_authenticated() -> AppError:
    return AppError(code=401000, message="Not authenticated", status_code=401)


def forbidden() -> AppError:
    return AppError(code=403000, message="Forbidden", status_code=403)


def insufficient_nuts() -> AppError:
    """
    "Insufficient nuts" error

    402 is semantically accurate, but many clients treat it specially.
    """
    return AppError(code=402001, message="Insufficient nuts", status_code=400)


def downstream_error(code: int, message: str) -> AppError:
    """Failure of an external provider, surfaced with its message"""
    return AppError(code=code, message=message, status_code=502)
