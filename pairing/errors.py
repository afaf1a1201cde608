"""Pairing error taxonomy.

Every error carries a machine-readable ``error`` code and the HTTP status the
transport layer should answer with. Conflict and not-found errors are business
outcomes returned to the caller as-is; ``CodeExhausted`` and
``StoreUnavailable`` are operational anomalies surfaced as generic failures.
"""


class PairingError(Exception):
    """Base class for all pairing errors."""

    error = "PAIRING_ERROR"
    status_code = 400
    default_message = "Pairing request failed"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(PairingError):
    """Missing, malformed, invalid or expired credential."""

    error = "UNAUTHENTICATED"
    status_code = 401
    default_message = "Authentication required"


class RoomNotFound(PairingError):
    error = "ROOM_NOT_FOUND"
    status_code = 404
    default_message = "Invalid room code"


class AlreadyInRoom(PairingError):
    error = "ALREADY_IN_ROOM"
    status_code = 409
    default_message = "You are already in a room"


class AlreadyPaired(PairingError):
    error = "ALREADY_PAIRED"
    status_code = 409
    default_message = "Room is already full"


class SelfJoin(PairingError):
    error = "SELF_JOIN"
    status_code = 409
    default_message = "Cannot join your own room"


class OperationalError(PairingError):
    """System condition not expected in normal operation."""

    error = "INTERNAL_ERROR"
    status_code = 500
    default_message = "Pairing service failure"
    public_message = "Something went wrong, please try again"


class CodeExhausted(OperationalError):
    default_message = "Could not allocate a free room code"


class StoreUnavailable(OperationalError):
    status_code = 503
    default_message = "Room store unavailable"
