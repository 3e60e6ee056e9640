import logging
import os

from django.conf import settings

from .exceptions import FileRejected, IncompleteSubmission, SubmissionError
from .state import (
    FileAttached,
    FileRefused,
    FieldChanged,
    FormState,
    ResetRequested,
    Status,
    SubmissionFailed,
    SubmissionSucceeded,
    SubmitRequested,
    ValidationFailed,
    ValidationPassed,
    transition,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024
DEFAULT_ALLOWED_EXTENSIONS = ['.pdf', '.docx', '.zip']


def _format_size(num_bytes):
    if num_bytes % (1024 * 1024) == 0:
        return f'{num_bytes // (1024 * 1024)}MB'
    return f'{num_bytes} bytes'


class SubmissionFormController:
    """Owns the field values of one submission form and its submit cycle.

    Every change goes through :func:`submissions.state.transition`; the
    resulting snapshot is published to subscribers and any notifications
    are handed to ``notify``.
    """

    def __init__(self, executor, notify=None, max_upload_bytes=None, allowed_extensions=None):
        self.executor = executor
        self.notify = notify
        if max_upload_bytes is None:
            max_upload_bytes = getattr(settings, 'SUBMISSION_MAX_UPLOAD_BYTES', DEFAULT_MAX_UPLOAD_BYTES)
        if allowed_extensions is None:
            allowed_extensions = getattr(settings, 'SUBMISSION_ALLOWED_EXTENSIONS', DEFAULT_ALLOWED_EXTENSIONS)
        self.max_upload_bytes = max_upload_bytes
        self.allowed_extensions = [ext.lower() for ext in allowed_extensions]
        self.state = FormState()
        self._subscribers = []

    @property
    def draft(self):
        return self.state.draft

    def subscribe(self, callback):
        """Call ``callback(state)`` after every transition. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)
        return unsubscribe

    def _dispatch(self, event):
        self.state, effects = transition(self.state, event)
        for callback in list(self._subscribers):
            callback(self.state)
        if self.notify is not None:
            for effect in effects:
                self.notify(effect)
        return self.state

    def set_field(self, name, value):
        if name == 'attached_file':
            raise ValueError('Attachments go through set_file so the upload limits are checked.')
        self._dispatch(FieldChanged(name, value))

    def check_file(self, file):
        """Raise FileRejected if ``file`` fails the size or extension gate."""
        if file.size > self.max_upload_bytes:
            raise FileRejected(
                'Please select a file smaller than %(limit)s.',
                reason='too_large',
                params={'limit': _format_size(self.max_upload_bytes)},
            )
        if self.allowed_extensions:
            ext = os.path.splitext(file.name)[1].lower()
            if ext not in self.allowed_extensions:
                raise FileRejected(
                    'Allowed file types: %(allowed)s.',
                    reason='bad_extension',
                    params={'allowed': ', '.join(self.allowed_extensions)},
                )

    def set_file(self, file):
        """Attach ``file`` (or clear the attachment with ``None``).

        A rejected file leaves the current attachment untouched.
        """
        if file is not None:
            try:
                self.check_file(file)
            except FileRejected as exc:
                logger.warning('rejected attachment %s (%s)', file.name, exc.reason)
                self._dispatch(FileRefused(exc))
                raise
        self._dispatch(FileAttached(file))

    def validate(self):
        missing = self.state.draft.missing_fields()
        if missing:
            raise IncompleteSubmission(missing)
        return self.state.draft

    async def submit(self):
        if self.state.status is not Status.IDLE:
            logger.debug('submit ignored while %s', self.state.status.value)
            return self.state

        self._dispatch(SubmitRequested())
        try:
            draft = self.validate()
        except IncompleteSubmission as exc:
            logger.warning('submission missing fields: %s', ', '.join(exc.missing_fields))
            return self._dispatch(ValidationFailed(exc.missing_fields))

        self._dispatch(ValidationPassed())
        try:
            record = await self.executor.execute(draft)
        except SubmissionError as exc:
            logger.error('Submission error: %s', exc)
            return self._dispatch(SubmissionFailed(exc))
        except Exception as exc:
            logger.exception('unexpected submission error')
            return self._dispatch(SubmissionFailed(exc))

        logger.info('submission %r accepted', draft.project_title)
        return self._dispatch(SubmissionSucceeded(record))

    def reset(self):
        self._dispatch(ResetRequested())
