"""
Service-level exceptions raised by the arrival reconciliation services.

Routers map these to HTTP status codes; everything else that escapes a
service (SQLAlchemyError and friends) is treated as a transient store failure.
"""


class NotFoundError(ValueError):
    """A referenced vehicle, item, arrival, confirmation or report does not exist."""


class ArrivalLockedError(ValueError):
    """The arrival is confirmed and no longer accepts writes."""


class InvalidStatusError(ValueError):
    """A status outside the confirmation vocabulary, or one that a given path may not write."""


class ViewerError(RuntimeError):
    """The model viewer collaborator failed. Never fatal to a reconciliation write."""


class InvalidReassignmentError(ValueError):
    """A reassignment or its undo does not match the item's current placement."""
