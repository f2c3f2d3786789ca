"""
Error taxonomy raised by the services.

Every error that leaves a service is one of these; app.py turns them into JSON
responses using ``status_code``.
"""

from typing import Optional


class ExamVaultError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ExamVaultError):
    """Client input is malformed. ``index`` is the 1-based question number, when known."""

    status_code = 400

    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message)
        self.index = index


class InvalidContentError(ValidationError):
    """An uploaded question bank failed parsing or schema validation."""


class NotFoundError(ExamVaultError):
    status_code = 404


class ContentIntegrityError(ExamVaultError):
    """Server-held exam content could not be decrypted or has the wrong shape."""

    status_code = 500


class CorruptContentError(ContentIntegrityError):
    """Content fetched from the content store could not be decrypted or has the wrong shape."""

    status_code = 502


class ConflictError(ExamVaultError):
    status_code = 409


class AlreadyAttemptedError(ConflictError):
    pass


class NoActiveSessionError(ConflictError):
    pass


class InvalidTransitionError(ConflictError):
    pass


class DeadlineExceededError(ConflictError):
    pass


class NotStartedError(ExamVaultError):
    status_code = 400


class UpstreamUnavailableError(ExamVaultError):
    """The content store or the mail server could not be reached."""

    status_code = 503
