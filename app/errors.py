"""Typed failures raised by the service layer.

Every error carries the HTTP status the API answers with; ``app.main``
registers a single handler for :class:`RoomServiceError`.
"""


class RoomServiceError(Exception):
    status_code = 400
    default_detail = "Request could not be completed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotAuthenticated(RoomServiceError):
    status_code = 401
    default_detail = "Not authenticated"


class Unauthorized(RoomServiceError):
    status_code = 403
    default_detail = "Not allowed"


class NotFound(RoomServiceError):
    status_code = 404
    default_detail = "Not found"


class ValidationError(RoomServiceError):
    status_code = 422
    default_detail = "Invalid input"


class DuplicateMembership(RoomServiceError):
    status_code = 409
    default_detail = "User is already a participant of this room"


class InvalidRoleTransition(RoomServiceError):
    status_code = 400
    default_detail = "Role change not allowed"


class TokenInvalid(RoomServiceError):
    status_code = 400
    default_detail = "Invite link is invalid or has expired"


class RoomFull(RoomServiceError):
    status_code = 409
    default_detail = "Room is full"


class SlugUnavailable(RoomServiceError):
    status_code = 409
    default_detail = "Could not allocate a unique room slug"
