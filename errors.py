"""
Error kinds raised by the store services.

Each carries the HTTP status code it maps to; main.py turns them into
{"message": ...} JSON responses.
"""


class StoreError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(StoreError):
    status_code = 404


class InvalidRequest(StoreError):
    status_code = 400


class InsufficientStock(StoreError):
    status_code = 400


class Unauthorized(StoreError):
    status_code = 401


class Forbidden(StoreError):
    status_code = 403


class InternalError(StoreError):
    status_code = 500
