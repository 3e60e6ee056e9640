from django.core.exceptions import ValidationError


class FileRejected(ValidationError):
    """Raised when a candidate attachment fails the size or extension gate.

    ``reason`` mirrors the validation ``code``: ``'too_large'`` or
    ``'bad_extension'``.
    """

    def __init__(self, message, reason, params=None):
        super().__init__(message, code=reason, params=params)
        self.reason = reason


class IncompleteSubmission(ValidationError):
    """Raised by ``validate()`` listing every required field left empty."""

    def __init__(self, missing_fields):
        self.missing_fields = tuple(missing_fields)
        super().__init__({
            name: ValidationError('This field is required.', code='required')
            for name in self.missing_fields
        })


class SubmissionError(Exception):
    """A remote write failed.

    ``stage`` is ``'upload'`` or ``'insert'``; ``cause`` is the original
    exception raised by the storage collaborator.
    """

    UPLOAD = 'upload'
    INSERT = 'insert'

    def __init__(self, stage, cause):
        self.stage = stage
        self.cause = cause
        super().__init__(stage, cause)

    def __str__(self):
        detail = str(self.cause) or self.cause.__class__.__name__
        if self.stage == self.UPLOAD:
            return f'File upload failed: {detail}'
        return f'Submission failed: {detail}'
