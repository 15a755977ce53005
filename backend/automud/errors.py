"""Error taxonomy raised by the service layer and rendered by ``main``."""

from __future__ import annotations


class AutomudError(Exception):
    code = "AUTOMUD_ERROR"
    http_status = 500

    def __init__(self, message: str, *, code: str | None = None, http_status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if http_status is not None:
            self.http_status = http_status


class InvalidInput(AutomudError):
    """Malformed or missing input, rejected before any store is touched."""

    code = "INVALID_INPUT"
    http_status = 400


class NotFound(AutomudError):
    """A request, image, or offer id that does not resolve."""

    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, resource: str, resource_id: object | None = None) -> None:
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} {resource_id} not found"
        super().__init__(message)
        self.resource = resource
        self.resource_id = resource_id


class StoreUnavailable(AutomudError):
    """The relational store or the blob store failed on a primary write."""

    code = "STORE_UNAVAILABLE"
    http_status = 500
