import asyncio
import shutil
import tempfile
from unittest import mock

from django.core.exceptions import ValidationError
from django.core.files.storage import FileSystemStorage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse

from .controller import SubmissionFormController
from .exceptions import FileRejected, IncompleteSubmission, SubmissionError
from .executor import SubmissionExecutor, build_object_key
from .models import ProjectSubmission
from .state import (
    FieldChanged,
    FormState,
    Notification,
    ResetRequested,
    Status,
    SubmissionDraft,
    SubmitRequested,
    transition,
)
from .storage import DjangoObjectStore, DjangoRecordStore

MiB = 1024 * 1024


class StubFile:
    """Stands in for an uploaded file when only name and size matter."""

    def __init__(self, name, size):
        self.name = name
        self.size = size


class FakeObjectStore:
    def __init__(self, calls, error=None):
        self.calls = calls
        self.error = error
        self.objects = {}

    async def upload(self, bucket, key, content):
        self.calls.append(('upload', bucket, key))
        if self.error:
            raise self.error
        self.objects[key] = content
        return key


class FakeRecordStore:
    def __init__(self, calls, error=None):
        self.calls = calls
        self.error = error
        self.rows = []

    async def insert(self, table, row):
        self.calls.append(('insert', table, row))
        if self.error:
            raise self.error
        self.rows.append(row)
        return ProjectSubmission(**row)


class FakeExecutor:
    def __init__(self, error=None, gate=None):
        self.error = error
        self.gate = gate
        self.drafts = []

    async def execute(self, draft):
        self.drafts.append(draft)
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        return ProjectSubmission(**draft.to_row())


def complete_draft(**overrides):
    values = {
        'full_name': 'Asha Rao',
        'enrollment_number': 'E2021',
        'branch': 'AI&DS',
        'academic_year': '2021–2025',
        'project_title': 'Leaf Classifier',
    }
    values.update(overrides)
    return SubmissionDraft(**values)


def fill(controller, draft):
    for name in ('full_name', 'enrollment_number', 'branch', 'academic_year', 'project_title'):
        controller.set_field(name, getattr(draft, name))


class DraftValidationTests(SimpleTestCase):
    def setUp(self):
        self.controller = SubmissionFormController(FakeExecutor())

    def test_every_missing_field_is_reported(self):
        self.controller.set_field('full_name', 'Asha Rao')
        self.controller.set_field('branch', 'AI&DS')
        with self.assertRaises(IncompleteSubmission) as ctx:
            self.controller.validate()
        self.assertEqual(ctx.exception.missing_fields, ('enrollment_number', 'academic_year', 'project_title'))
        self.assertEqual(set(ctx.exception.error_dict), {'enrollment_number', 'academic_year', 'project_title'})

    def test_whitespace_only_counts_as_missing(self):
        fill(self.controller, complete_draft(full_name='   '))
        with self.assertRaises(IncompleteSubmission) as ctx:
            self.controller.validate()
        self.assertEqual(ctx.exception.missing_fields, ('full_name',))

    def test_complete_draft_is_returned_unchanged(self):
        fill(self.controller, complete_draft())
        self.controller.set_field('project_link', 'https://example.com/leaf')
        draft = self.controller.validate()
        self.assertIs(draft, self.controller.draft)
        self.assertEqual(draft.project_link, 'https://example.com/leaf')
        self.assertTrue(draft.is_submit_eligible)

    def test_optional_fields_are_not_required(self):
        fill(self.controller, complete_draft())
        self.assertEqual(self.controller.validate().project_description, '')

    def test_set_field_rejects_unknown_names(self):
        with self.assertRaises(ValueError):
            self.controller.set_field('nickname', 'asha')

    def test_set_field_cannot_attach_files(self):
        with self.assertRaises(ValueError):
            self.controller.set_field('attached_file', StubFile('huge.exe', 50 * MiB))
        self.assertIsNone(self.controller.draft.attached_file)

    def test_reset_is_idempotent(self):
        self.controller.reset()
        self.assertEqual(self.controller.state, FormState())
        fill(self.controller, complete_draft())
        self.controller.set_file(StubFile('report.pdf', 2 * MiB))
        self.controller.reset()
        self.assertEqual(self.controller.state, FormState())
        self.assertIsNone(self.controller.draft.attached_file)


class AttachmentGateTests(SimpleTestCase):
    def setUp(self):
        self.notifications = []
        self.controller = SubmissionFormController(FakeExecutor(), notify=self.notifications.append)

    def test_oversized_file_is_rejected_and_previous_kept(self):
        first = StubFile('report.pdf', 2 * MiB)
        self.controller.set_file(first)
        with self.assertRaises(FileRejected) as ctx:
            self.controller.set_file(StubFile('huge.zip', 10 * MiB + 1))
        self.assertEqual(ctx.exception.reason, 'too_large')
        self.assertIs(self.controller.draft.attached_file, first)
        self.assertEqual(self.notifications[-1].title, 'File too large')
        self.assertEqual(self.notifications[-1].message, 'Please select a file smaller than 10MB.')

    def test_file_at_limit_replaces_attachment(self):
        self.controller.set_file(StubFile('report.pdf', 2 * MiB))
        second = StubFile('slides.zip', 10 * MiB)
        self.controller.set_file(second)
        self.assertIs(self.controller.draft.attached_file, second)
        self.assertEqual(self.notifications, [])

    def test_uploaded_file_is_accepted(self):
        upload = SimpleUploadedFile('report.docx', b'PK\x03\x04docx')
        self.controller.set_file(upload)
        self.assertIs(self.controller.draft.attached_file, upload)

    def test_disallowed_extension_is_rejected(self):
        with self.assertRaises(FileRejected) as ctx:
            self.controller.set_file(StubFile('notes.txt', 10))
        self.assertEqual(ctx.exception.reason, 'bad_extension')
        self.assertIsNone(self.controller.draft.attached_file)
        self.assertEqual(self.notifications[-1].title, 'Unsupported file type')

    def test_extension_check_can_be_disabled(self):
        controller = SubmissionFormController(FakeExecutor(), allowed_extensions=[])
        controller.set_file(StubFile('notes.txt', 10))
        self.assertEqual(controller.draft.attached_file.name, 'notes.txt')

    @override_settings(SUBMISSION_MAX_UPLOAD_BYTES=1024)
    def test_limit_comes_from_settings(self):
        controller = SubmissionFormController(FakeExecutor())
        with self.assertRaises(FileRejected):
            controller.set_file(StubFile('report.pdf', 2048))

    def test_none_clears_attachment(self):
        self.controller.set_file(StubFile('report.pdf', 10))
        self.controller.set_file(None)
        self.assertIsNone(self.controller.draft.attached_file)


class ExecutorTests(SimpleTestCase):
    def setUp(self):
        self.calls = []

    def make_executor(self, upload_error=None, insert_error=None):
        self.objects = FakeObjectStore(self.calls, error=upload_error)
        self.records = FakeRecordStore(self.calls, error=insert_error)
        return SubmissionExecutor(self.objects, self.records, bucket='project-files', clock=lambda: 173)

    def test_object_key_is_timestamp_then_name(self):
        self.assertEqual(build_object_key('report.pdf', 173), '173_report.pdf')
        self.assertEqual(build_object_key('some/dir/report.pdf', 5), '5_report.pdf')

    async def test_upload_then_insert(self):
        executor = self.make_executor()
        draft = complete_draft(attached_file=StubFile('report.pdf', 2 * MiB))
        record = await executor.execute(draft)
        self.assertEqual(record.file_location, '173_report.pdf')
        self.assertEqual([c[0] for c in self.calls], ['upload', 'insert'])
        self.assertEqual(self.calls[0][1:], ('project-files', '173_report.pdf'))
        table, row = self.calls[1][1:]
        self.assertEqual(table, 'project_submissions')
        self.assertEqual(row, {
            'full_name': 'Asha Rao',
            'enrollment_number': 'E2021',
            'branch': 'AI&DS',
            'year': '2021–2025',
            'project_title': 'Leaf Classifier',
            'project_link': None,
            'project_description': None,
            'file_url': '173_report.pdf',
        })

    async def test_no_file_skips_upload(self):
        executor = self.make_executor()
        record = await executor.execute(complete_draft(project_link='https://example.com'))
        self.assertEqual([c[0] for c in self.calls], ['insert'])
        self.assertIsNone(record.file_location)
        self.assertEqual(record.project_link, 'https://example.com')

    async def test_failed_upload_never_inserts(self):
        executor = self.make_executor(upload_error=ConnectionError('bucket unavailable'))
        draft = complete_draft(attached_file=StubFile('report.pdf', 10))
        with self.assertRaises(SubmissionError) as ctx:
            await executor.execute(draft)
        self.assertEqual(ctx.exception.stage, 'upload')
        self.assertEqual(str(ctx.exception), 'File upload failed: bucket unavailable')
        self.assertEqual([c[0] for c in self.calls], ['upload'])
        self.assertEqual(self.records.rows, [])

    async def test_bad_row_is_reported_as_insert_failure(self):
        executor = self.make_executor()
        with self.assertRaises(SubmissionError) as ctx:
            await executor.execute(complete_draft(full_name=42))
        self.assertEqual(ctx.exception.stage, 'insert')
        self.assertEqual(self.calls, [])

    async def test_unnamed_file_is_reported_as_upload_failure(self):
        executor = self.make_executor()
        with self.assertRaises(SubmissionError) as ctx:
            await executor.execute(complete_draft(attached_file=StubFile(None, 10)))
        self.assertEqual(ctx.exception.stage, 'upload')
        self.assertEqual(self.calls, [])

    async def test_failed_insert_leaves_uploaded_file(self):
        executor = self.make_executor(insert_error=ConnectionError('network error'))
        draft = complete_draft(attached_file=StubFile('report.pdf', 2 * MiB))
        with self.assertLogs('submissions.executor', level='WARNING') as logs:
            with self.assertRaises(SubmissionError) as ctx:
                await executor.execute(draft)
        self.assertEqual(ctx.exception.stage, 'insert')
        self.assertIsInstance(ctx.exception.cause, ConnectionError)
        self.assertEqual(str(ctx.exception), 'Submission failed: network error')
        # the stored object has no matching record
        self.assertIn('173_report.pdf', self.objects.objects)
        self.assertTrue(any('no matching submission record' in line for line in logs.output))


class ControllerSubmitTests(SimpleTestCase):
    def setUp(self):
        self.notifications = []

    def make_controller(self, executor):
        return SubmissionFormController(executor, notify=self.notifications.append)

    async def test_missing_title_never_reaches_executor(self):
        executor = FakeExecutor()
        controller = self.make_controller(executor)
        fill(controller, complete_draft(project_title=''))
        state = await controller.submit()
        self.assertEqual(state.status, Status.IDLE)
        self.assertEqual(state.missing_fields, ('project_title',))
        self.assertEqual(executor.drafts, [])
        self.assertEqual(self.notifications[-1].title, 'Missing required fields')
        self.assertIn('Project Title', self.notifications[-1].message)

    async def test_success_is_terminal_until_reset(self):
        executor = FakeExecutor()
        controller = self.make_controller(executor)
        fill(controller, complete_draft())
        state = await controller.submit()
        self.assertEqual(state.status, Status.SUCCEEDED)
        self.assertEqual(state.record.project_title, 'Leaf Classifier')
        self.assertEqual(self.notifications[-1].level, Notification.SUCCESS)

        await controller.submit()
        self.assertEqual(len(executor.drafts), 1)

        controller.reset()
        self.assertEqual(controller.state.status, Status.IDLE)
        self.assertEqual(controller.draft, SubmissionDraft())

    async def test_unexpected_error_returns_to_idle(self):
        executor = FakeExecutor(error=RuntimeError('boom'))
        controller = self.make_controller(executor)
        fill(controller, complete_draft())
        state = await controller.submit()
        self.assertEqual(state.status, Status.IDLE)
        self.assertEqual(state.error, 'boom')
        self.assertEqual(self.notifications[-1].title, 'Submission failed')

        # the form is usable again
        executor.error = None
        state = await controller.submit()
        self.assertEqual(state.status, Status.SUCCEEDED)

    async def test_failure_returns_to_idle_with_data_intact(self):
        cause = ConnectionError('network error')
        executor = FakeExecutor(error=SubmissionError(SubmissionError.INSERT, cause))
        controller = self.make_controller(executor)
        fill(controller, complete_draft())
        state = await controller.submit()
        self.assertEqual(state.status, Status.IDLE)
        self.assertEqual(state.error, 'Submission failed: network error')
        self.assertEqual(state.draft.full_name, 'Asha Rao')
        self.assertEqual(self.notifications[-1].title, 'Submission failed')

        # retrying resubmits the same data
        executor.error = None
        state = await controller.submit()
        self.assertEqual(state.status, Status.SUCCEEDED)
        self.assertEqual(len(executor.drafts), 2)

    async def test_second_submit_while_in_flight_is_ignored(self):
        gate = asyncio.Event()
        executor = FakeExecutor(gate=gate)
        controller = self.make_controller(executor)
        fill(controller, complete_draft())

        first = asyncio.ensure_future(controller.submit())
        await asyncio.sleep(0)
        self.assertTrue(controller.state.is_submitting)
        state = await controller.submit()
        self.assertEqual(state.status, Status.SUBMITTING)

        gate.set()
        await first
        self.assertEqual(len(executor.drafts), 1)
        self.assertEqual(controller.state.status, Status.SUCCEEDED)

    async def test_subscribers_see_each_transition(self):
        controller = self.make_controller(FakeExecutor())
        fill(controller, complete_draft())
        seen = []
        unsubscribe = controller.subscribe(lambda state: seen.append(state.status))
        await controller.submit()
        self.assertEqual(seen, [Status.VALIDATING, Status.SUBMITTING, Status.SUCCEEDED])
        unsubscribe()
        controller.reset()
        self.assertEqual(len(seen), 3)


class TransitionTests(SimpleTestCase):
    def test_field_change_returns_new_snapshot(self):
        state = FormState()
        new_state, effects = transition(state, FieldChanged('full_name', 'Asha Rao'))
        self.assertEqual(state.draft.full_name, '')
        self.assertEqual(new_state.draft.full_name, 'Asha Rao')
        self.assertEqual(effects, [])

    def test_submit_request_only_from_idle(self):
        submitting = FormState(status=Status.SUBMITTING)
        self.assertIs(transition(submitting, SubmitRequested())[0], submitting)
        validating, _ = transition(FormState(error='old'), SubmitRequested())
        self.assertEqual(validating.status, Status.VALIDATING)
        self.assertIsNone(validating.error)

    def test_reset_during_submission_keeps_flag(self):
        state = FormState(status=Status.SUBMITTING, draft=complete_draft())
        new_state, _ = transition(state, ResetRequested())
        self.assertEqual(new_state.status, Status.SUBMITTING)
        self.assertEqual(new_state.draft, SubmissionDraft())


class DjangoStoreTests(TestCase):
    def setUp(self):
        self.media = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.media, ignore_errors=True)
        self.storage = FileSystemStorage(location=self.media)

    async def test_upload_stores_under_bucket(self):
        store = DjangoObjectStore(self.storage)
        path = await store.upload('project-files', '173_report.pdf', SimpleUploadedFile('report.pdf', b'%PDF-1.4'))
        self.assertEqual(path, '173_report.pdf')
        self.assertTrue(self.storage.exists('project-files/173_report.pdf'))

    async def test_upload_refuses_existing_key(self):
        store = DjangoObjectStore(self.storage)
        await store.upload('project-files', '1_a.pdf', SimpleUploadedFile('a.pdf', b'one'))
        with self.assertRaises(FileExistsError):
            await store.upload('project-files', '1_a.pdf', SimpleUploadedFile('a.pdf', b'two'))

    async def test_insert_creates_record(self):
        record = await DjangoRecordStore().insert('project_submissions', complete_draft().to_row('1_a.pdf'))
        self.assertIsNotNone(record.pk)
        self.assertEqual(await ProjectSubmission.objects.acount(), 1)
        self.assertEqual(record.file_location, '1_a.pdf')

    async def test_insert_into_unknown_table_fails(self):
        with self.assertRaises(LookupError):
            await DjangoRecordStore().insert('submissions', complete_draft().to_row())

    async def test_insert_rejects_values_outside_choices(self):
        with self.assertRaises(ValidationError):
            await DjangoRecordStore().insert('project_submissions', complete_draft(branch='XYZ').to_row())
        with self.assertRaises(ValidationError):
            await DjangoRecordStore().insert('project_submissions', complete_draft(academic_year='1999').to_row())
        self.assertEqual(await ProjectSubmission.objects.acount(), 0)

    def test_records_are_immutable(self):
        record = ProjectSubmission.objects.create(**complete_draft().to_row())
        record.project_title = 'Changed'
        with self.assertRaises(ValueError):
            record.save()
        with self.assertRaises(ValueError):
            record.delete()
        self.assertEqual(ProjectSubmission.objects.get(pk=record.pk).project_title, 'Leaf Classifier')


class SubmitProjectViewTests(TestCase):
    def setUp(self):
        self.media = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.media, ignore_errors=True)
        media_override = override_settings(MEDIA_ROOT=self.media)
        media_override.enable()
        self.addCleanup(media_override.disable)
        self.url = reverse('submissions:submit_project')

    def post_data(self, **overrides):
        data = {
            'full_name': 'Asha Rao',
            'enrollment_number': 'E2021',
            'branch': 'AI&DS',
            'academic_year': '2021–2025',
            'project_title': 'Leaf Classifier',
            'project_link': '',
            'project_description': '',
        }
        data.update(overrides)
        return data

    def test_blank_form_renders(self):
        resp = self.client.get(self.url)
        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, 'Project Submission Portal')
        self.assertContains(resp, 'accept=".pdf,.docx,.zip"')

    def test_submission_with_file(self):
        upload = SimpleUploadedFile('report.pdf', b'%PDF-1.4 leaf')
        resp = self.client.post(self.url, self.post_data(attached_file=upload))
        self.assertRedirects(resp, reverse('submissions:submission_done'))
        record = ProjectSubmission.objects.get()
        self.assertTrue(record.file_url.endswith('_report.pdf'))
        self.assertIsNone(record.project_link)
        self.assertEqual(record.year, '2021–2025')
        self.assertTrue(FileSystemStorage(location=self.media).exists(f'project-files/{record.file_url}'))

    def test_success_message_shown_once_on_success_page(self):
        resp = self.client.post(self.url, self.post_data(), follow=True)
        self.assertContains(resp, 'Submission Successful!')
        self.assertContains(resp, 'Project submitted successfully!')
        self.assertContains(resp, 'Leaf Classifier')

        # "Submit Another Project" lands on a clean form
        resp = self.client.get(self.url)
        self.assertNotContains(resp, 'Project submitted successfully!')

    def test_success_page_is_not_repeatable(self):
        self.client.post(self.url, self.post_data())
        done_url = reverse('submissions:submission_done')
        self.assertEqual(self.client.get(done_url).status_code, 200)
        # reloading the success page does not post again
        self.assertRedirects(self.client.get(done_url), self.url)
        self.assertEqual(ProjectSubmission.objects.count(), 1)

    def test_missing_fields_are_highlighted(self):
        resp = self.client.post(self.url, self.post_data(project_title='', enrollment_number=''))
        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, 'Missing required fields')
        self.assertContains(resp, 'This field is required.', count=2)
        self.assertFalse(ProjectSubmission.objects.exists())

    def test_oversized_file_is_refused(self):
        upload = SimpleUploadedFile('huge.zip', b'0' * (10 * 1024 * 1024 + 1))
        resp = self.client.post(self.url, self.post_data(attached_file=upload))
        self.assertContains(resp, 'File too large')
        self.assertFalse(ProjectSubmission.objects.exists())

    def test_malformed_link_is_refused(self):
        resp = self.client.post(self.url, self.post_data(project_link='not a url'))
        self.assertContains(resp, 'Enter a valid URL.')
        self.assertFalse(ProjectSubmission.objects.exists())

    def test_failed_insert_keeps_entered_data(self):
        with mock.patch.object(DjangoRecordStore, 'insert', side_effect=ConnectionError('network error')):
            resp = self.client.post(self.url, self.post_data())
        self.assertContains(resp, 'Submission failed')
        self.assertContains(resp, 'value="Asha Rao"')
        self.assertFalse(ProjectSubmission.objects.exists())
