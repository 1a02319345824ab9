"""
Error types raised by the stores and integrations.

Each carries the HTTP status the API layer answers with; main.py turns
them into JSON bodies.
"""
from typing import Optional


class ApiError(Exception):
    status_code = 500

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class NotFoundError(ApiError):
    status_code = 404


class InvalidRequestError(ApiError):
    status_code = 400


class UpstreamError(ApiError):
    """S3 or Google Places failed; `code` holds the upstream error code if any."""
    status_code = 500


class ReviewLookupError(UpstreamError):
    pass


class ConfigError(ApiError):
    status_code = 500
