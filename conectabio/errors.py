"""
Error taxonomy shared by the stores, flows and HTTP layer.

Each error carries a message that is safe to show to the user. The
underlying cause, when there is one, is chained with ``raise ... from``
and logged where it is caught; it is never put in the message.
"""

from __future__ import annotations


class ConectaBioError(Exception):
    """Base class for all application errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ConectaBioError):
    """Malformed input (bad data URI, short username, unknown card type)."""

    status_code = 400


class AuthError(ConectaBioError):
    status_code = 401


class NotFoundError(ConectaBioError):
    status_code = 404


class PersistenceError(ConectaBioError):
    """A remote table operation was rejected."""

    status_code = 502


class UploadError(ConectaBioError):
    """A blob storage operation failed."""

    status_code = 502


class ExtractionError(ConectaBioError):
    """The scraper found neither a name nor an image."""

    status_code = 422
