from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    code = "error"

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    code = "not_found"


class ForbiddenError(AppError):
    code = "forbidden"


class ConflictError(AppError):
    code = "conflict"


class ValidationError(AppError):
    code = "validation_error"


class ConversationNotFound(NotFoundError):
    code = "conversation_not_found"


class Unauthorized(ForbiddenError):
    """Caller is not a participant of the conversation it reads or writes."""

    code = "unauthorized"


class NotAParticipant(Unauthorized):
    code = "not_a_participant"


class NotGroupAdmin(ForbiddenError):
    code = "not_group_admin"


class InvalidParticipants(ValidationError):
    code = "invalid_participants"


class InsufficientMembers(ValidationError):
    code = "insufficient_members"


class EmptyMessage(ValidationError):
    code = "empty_message"


ERRORS_BY_CODE: dict[str, type[AppError]] = {
    cls.code: cls
    for cls in (
        NotFoundError,
        ForbiddenError,
        ConflictError,
        ValidationError,
        ConversationNotFound,
        Unauthorized,
        NotAParticipant,
        NotGroupAdmin,
        InvalidParticipants,
        InsufficientMembers,
        EmptyMessage,
    )
}
