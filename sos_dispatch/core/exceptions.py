"""Service-layer errors, mapped to HTTP statuses by the routers."""

from fastapi import status


class SOSError(Exception):
    """Base class for failures surfaced to the caller."""

    status_code = status.HTTP_400_BAD_REQUEST


class ValidationFailed(SOSError):
    """Malformed or out-of-range input. Raised before any state mutation."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotAuthorized(SOSError):
    """Caller lacks the ownership or role the operation requires."""

    status_code = status.HTTP_403_FORBIDDEN


class StateConflict(SOSError):
    """Alert state no longer satisfies the operation's precondition."""

    status_code = status.HTTP_409_CONFLICT


class NotFound(SOSError):
    status_code = status.HTTP_404_NOT_FOUND
