from fastapi import HTTPException, status


class GrowNetError(HTTPException):
    """Base for errors that map directly onto an HTTP response.

    Subclasses set ``status_code`` and a default ``detail``; callers may
    override the detail with a more specific message.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = ""

    def __init__(self, detail: str | None = None):
        super().__init__(status_code=self.status_code, detail=detail or self.detail)


class InvalidOperation(GrowNetError):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid operation."


class Forbidden(GrowNetError):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "You do not have permission to do that."


class NotFound(GrowNetError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Not found."


class DuplicateRequest(GrowNetError):
    status_code = status.HTTP_409_CONFLICT
    detail = "You already sent a connection request to this user."


class AlreadyConnected(GrowNetError):
    status_code = status.HTTP_409_CONFLICT
    detail = "You are already connected with this user."


class ConcurrentUpdate(GrowNetError):
    status_code = status.HTTP_409_CONFLICT
    detail = "The connection changed while processing the request. Try again."


class EmailAlreadyRegistered(GrowNetError):
    status_code = status.HTTP_409_CONFLICT
    detail = "An account with this email already exists."
