"""Typed failures raised by the pricing and negotiation services.

Validation errors are raised before any state change. Conflict errors mean a
race was lost or a precondition no longer holds; the caller should re-fetch
and decide again. ``Expired`` is a conflict specialised to time.
"""


class NegotiationError(Exception):
    http_status = 400
    code = "negotiation_error"

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.context = context

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message, **self.context}


class ValidationFailed(NegotiationError):
    http_status = 400
    code = "validation_failed"


class InvalidCounterPrice(ValidationFailed):
    code = "InvalidCounterPrice"


class NotFound(NegotiationError):
    http_status = 404
    code = "NotFound"

    def __init__(self, resource_name: str, resource_id=None):
        if resource_id is not None:
            message = f"{resource_name} with id {resource_id} not found"
        else:
            message = f"{resource_name} not found"
        super().__init__(message)


class ConflictError(NegotiationError):
    http_status = 409
    code = "conflict"


class AlreadyResolved(ConflictError):
    code = "AlreadyResolved"


class AlreadyBound(ConflictError):
    code = "AlreadyBound"


class DuplicateActiveQuotation(ConflictError):
    code = "DuplicateActiveQuotation"


class Expired(ConflictError):
    code = "Expired"
