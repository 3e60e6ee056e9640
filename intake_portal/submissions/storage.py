"""Remote collaborators used by the submission executor.

Both stores expose a single coroutine so the executor can be exercised
against in-memory fakes. The Django-backed versions below are the
production wiring: object storage goes through a Django ``Storage``
(``default_storage`` unless one is given) and records go through the ORM.
"""
import logging
import posixpath

from asgiref.sync import sync_to_async
from django.core.files.storage import default_storage

from .models import ProjectSubmission

logger = logging.getLogger(__name__)


class DjangoObjectStore:
    """Store uploaded files under ``<bucket>/<key>`` in a Django storage."""

    def __init__(self, storage=None):
        self.storage = storage if storage is not None else default_storage

    async def upload(self, bucket, key, content):
        return await sync_to_async(self._save)(bucket, key, content)

    def _save(self, bucket, key, content):
        name = posixpath.join(bucket, key)
        # keys are never overwritten or silently renamed
        if self.storage.exists(name):
            raise FileExistsError(f'The resource already exists: {name}')
        if hasattr(content, 'seek'):
            content.seek(0)
        saved = self.storage.save(name, content)
        logger.debug('stored %s in bucket %s', saved, bucket)
        # callers get the path relative to the bucket
        return posixpath.relpath(saved, bucket)


class DjangoRecordStore:
    """Insert rows into the table backing :class:`ProjectSubmission`."""

    model = ProjectSubmission

    async def insert(self, table, row):
        if table != self.model._meta.db_table:
            raise LookupError(f'Unknown table: {table}')
        record = self.model(**row)
        # acreate skips field validation; branch and year must be in their choice sets
        await sync_to_async(record.full_clean)()
        await record.asave(force_insert=True)
        return record
