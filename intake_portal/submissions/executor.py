import logging
import os
import time

from django.conf import settings

from .exceptions import SubmissionError
from .models import ProjectSubmission

logger = logging.getLogger(__name__)

DEFAULT_BUCKET = 'project-files'


def _now_ms():
    return time.time_ns() // 1_000_000


def build_object_key(file_name, timestamp_ms):
    """Return ``<timestamp>_<original name>`` for a new upload."""
    return f'{timestamp_ms}_{os.path.basename(file_name)}'


class SubmissionExecutor:
    """Perform the two remote writes for a validated draft.

    The attached file, when present, is uploaded first and the metadata
    row is inserted afterwards pointing at the stored path. The writes are
    not transactional: if the insert fails after a successful upload the
    stored file is left in place without a matching record. No compensating
    delete is attempted.
    """

    def __init__(self, object_store, record_store, bucket=None, table=None, clock=_now_ms):
        self.object_store = object_store
        self.record_store = record_store
        self.bucket = bucket or getattr(settings, 'SUBMISSION_FILE_BUCKET', DEFAULT_BUCKET)
        self.table = table or ProjectSubmission._meta.db_table
        self.clock = clock

    async def execute(self, draft):
        file_url = None
        attached = draft.attached_file
        if attached is not None:
            key = None
            try:
                key = build_object_key(attached.name, self.clock())
                logger.info('uploading %s to bucket %s', key, self.bucket)
                file_url = await self.object_store.upload(self.bucket, key, attached)
            except Exception as exc:
                logger.error('upload of %s failed', key, exc_info=True)
                raise SubmissionError(SubmissionError.UPLOAD, exc) from exc

        try:
            row = draft.to_row(file_url)
            record = await self.record_store.insert(self.table, row)
        except Exception as exc:
            logger.error('insert into %s failed', self.table, exc_info=True)
            if file_url is not None:
                logger.warning('stored file %s/%s has no matching submission record', self.bucket, file_url)
            raise SubmissionError(SubmissionError.INSERT, exc) from exc

        logger.info('recorded submission %r (file: %s)', draft.project_title, file_url)
        return record
