"""
Typed outcomes raised by the engine.

Services never build transport responses themselves.  Each error carries
a message *key* (resolved by ``conduit.i18n`` at the HTTP boundary) plus
optional interpolation parameters, and a status code the exception
handler in ``conduit.main`` uses when rendering it.
"""


class ConduitError(Exception):
    """Base class for every expected, named failure of a service call."""

    status_code: int = 400

    def __init__(self, key: str, **params) -> None:
        super().__init__(key)
        self.key = key
        self.params = params


class NotFoundError(ConduitError):
    """Article, user or comment absent."""

    status_code = 404


class ConflictError(ConduitError):
    """A uniqueness rule or relation state machine rejected the write."""

    status_code = 409


class ForbiddenError(ConduitError):
    """The actor does not own the resource."""

    status_code = 403


class InvalidInputError(ConduitError):
    status_code = 422


class UnauthenticatedError(ConduitError):
    status_code = 401
