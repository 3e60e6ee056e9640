"""Form state for a single project submission session.

The controller never mutates state in place. Every user action or
submission outcome is described by an event, and :func:`transition` maps
the current :class:`FormState` plus that event to the next snapshot and
the list of effects (notifications) the presentation layer should show.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field, fields, replace
from typing import Any, Optional, Tuple

REQUIRED_FIELDS = ('full_name', 'enrollment_number', 'branch', 'academic_year', 'project_title')

FIELD_LABELS = {
    'full_name': 'Full Name',
    'enrollment_number': 'Enrollment Number',
    'branch': 'Branch',
    'academic_year': 'Year',
    'project_title': 'Project Title',
    'project_link': 'Project Link',
    'project_description': 'Project Description',
    'attached_file': 'Project File',
}


@dataclass(frozen=True)
class SubmissionDraft:
    full_name: str = ''
    enrollment_number: str = ''
    branch: str = ''
    academic_year: str = ''
    project_title: str = ''
    project_link: str = ''
    project_description: str = ''
    # any file-like object exposing ``name`` and ``size`` (e.g. an UploadedFile)
    attached_file: Any = None

    def with_field(self, name, value):
        if name not in _DRAFT_FIELDS:
            raise ValueError(f'Unknown submission field: {name!r}')
        return replace(self, **{name: value})

    def missing_fields(self):
        missing = []
        for name in REQUIRED_FIELDS:
            value = getattr(self, name)
            if value is None or not str(value).strip():
                missing.append(name)
        return tuple(missing)

    @property
    def is_submit_eligible(self):
        return not self.missing_fields()

    def to_row(self, file_url=None):
        """Column mapping for the ``project_submissions`` table."""
        return {
            'full_name': self.full_name.strip(),
            'enrollment_number': self.enrollment_number.strip(),
            'branch': self.branch,
            'year': self.academic_year,
            'project_title': self.project_title.strip(),
            'project_link': self.project_link or None,
            'project_description': self.project_description or None,
            'file_url': file_url,
        }


_DRAFT_FIELDS = frozenset(f.name for f in fields(SubmissionDraft))


class Status(enum.Enum):
    IDLE = 'idle'
    VALIDATING = 'validating'
    SUBMITTING = 'submitting'
    SUCCEEDED = 'succeeded'


@dataclass(frozen=True)
class Notification:
    SUCCESS = 'success'
    ERROR = 'error'

    level: str
    title: str
    message: str


@dataclass(frozen=True)
class FormState:
    status: Status = Status.IDLE
    draft: SubmissionDraft = field(default_factory=SubmissionDraft)
    missing_fields: Tuple[str, ...] = ()
    error: Optional[str] = None
    record: Any = None

    @property
    def is_submitting(self):
        return self.status is Status.SUBMITTING


# events

@dataclass(frozen=True)
class FieldChanged:
    name: str
    value: Any


@dataclass(frozen=True)
class FileAttached:
    file: Any


@dataclass(frozen=True)
class FileRefused:
    error: Any


@dataclass(frozen=True)
class SubmitRequested:
    pass


@dataclass(frozen=True)
class ValidationFailed:
    missing_fields: Tuple[str, ...]


@dataclass(frozen=True)
class ValidationPassed:
    pass


@dataclass(frozen=True)
class SubmissionSucceeded:
    record: Any


@dataclass(frozen=True)
class SubmissionFailed:
    error: Any


@dataclass(frozen=True)
class ResetRequested:
    pass


FILE_REJECTION_TITLES = {
    'too_large': 'File too large',
    'bad_extension': 'Unsupported file type',
}


def _missing_message(missing):
    labels = ', '.join(FIELD_LABELS[name] for name in missing)
    return f'Please fill in all required fields: {labels}.'


def transition(state, event):
    """Return ``(next_state, effects)`` for ``event`` applied to ``state``."""
    if isinstance(event, FieldChanged):
        return replace(state, draft=state.draft.with_field(event.name, event.value)), []

    if isinstance(event, FileAttached):
        return replace(state, draft=state.draft.with_field('attached_file', event.file)), []

    if isinstance(event, FileRefused):
        title = FILE_REJECTION_TITLES.get(event.error.reason, 'File rejected')
        return state, [Notification(Notification.ERROR, title, event.error.messages[0])]

    if isinstance(event, SubmitRequested):
        if state.status is not Status.IDLE:
            return state, []
        return replace(state, status=Status.VALIDATING, missing_fields=(), error=None), []

    if isinstance(event, ValidationFailed):
        effects = [Notification(Notification.ERROR, 'Missing required fields',
                                _missing_message(event.missing_fields))]
        return replace(state, status=Status.IDLE, missing_fields=tuple(event.missing_fields)), effects

    if isinstance(event, ValidationPassed):
        return replace(state, status=Status.SUBMITTING), []

    if isinstance(event, SubmissionSucceeded):
        effects = [Notification(Notification.SUCCESS, 'Project submitted successfully!',
                                "Your project has been recorded. You'll hear back from our team soon.")]
        return replace(state, status=Status.SUCCEEDED, record=event.record, error=None), effects

    if isinstance(event, SubmissionFailed):
        message = str(event.error) or 'An unexpected error occurred. Please try again.'
        effects = [Notification(Notification.ERROR, 'Submission failed', message)]
        # failed submissions keep the draft so the user can retry
        return replace(state, status=Status.IDLE, error=message), effects

    if isinstance(event, ResetRequested):
        if state.status is Status.SUBMITTING:
            return replace(state, draft=SubmissionDraft(), missing_fields=(), error=None), []
        return FormState(), []

    raise TypeError(f'Unhandled form event: {event!r}')
