class CommentBoardError(Exception):
    """Base class for every error raised by the comment board."""


class AuthError(CommentBoardError):
    def __init__(self, message="Forbidden"):
        super().__init__(message)


class ValidationError(CommentBoardError):
    """A submitted form is missing or oversizes required fields.

    `errors` maps the field name to a message for that field.
    """

    def __init__(self, errors: dict):
        self.errors = errors
        super().__init__(", ".join(errors.values()))


class StoreFault(CommentBoardError):
    """The object store (or the proxy in front of it) failed."""


class WriteConflict(StoreFault):
    """A conditional write lost against a concurrent writer."""


class VerificationFailure(CommentBoardError):
    def __init__(self, message="Verification failed"):
        super().__init__(message)
