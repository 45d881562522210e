"""
Error taxonomy for wotkit.

Synchronous errors (validation, lookup) are raised to the caller and mapped
to HTTP / WebSocket error responses via `status`. Asynchronous errors are
recorded as state (Action status) and never raised through unrelated paths.
"""


class ThingError(Exception):
    """Base class for all wotkit errors"""

    status = 500
    reason = 'Internal Server Error'

    def __init__(self, message: str = ''):
        super().__init__(message or self.reason)
        self.message = message or self.reason

    def toDict(self) -> dict:
        return {'error': self.message, 'status': self.status}


class ValidationError(ThingError):
    """Property value or action input does not satisfy its schema"""

    status = 400
    reason = 'Bad Request'


class UnsupportedOperationError(ValidationError):
    """Operation not permitted on the target, e.g. writing a read-only property"""


class UnknownResourceError(ThingError):
    """Unknown thing, property, action, event or action id"""

    status = 404
    reason = 'Not Found'


class ExecutionError(ThingError):
    """An action strategy failed at runtime; captured into the Action's error status"""


class TransportError(ThingError):
    """A push-channel write failed; isolated to that connection"""


class ActionCancelled(Exception):
    """Raised by a strategy to acknowledge a cancellation request"""
