from asgiref.sync import async_to_sync
from django.contrib import messages
from django.shortcuts import redirect, render

from .controller import SubmissionFormController
from .exceptions import FileRejected
from .executor import SubmissionExecutor
from .forms import ProjectSubmissionForm
from .models import ProjectSubmission
from .state import Notification, Status
from .storage import DjangoObjectStore, DjangoRecordStore


def build_controller(notify=None):
    """Controller wired to the configured Django storage and database."""
    executor = SubmissionExecutor(DjangoObjectStore(), DjangoRecordStore())
    return SubmissionFormController(executor, notify=notify)


def _flash(request):
    def notify(notification):
        text = f'{notification.title} {notification.message}'
        if notification.level == Notification.SUCCESS:
            messages.success(request, text)
        else:
            messages.error(request, text)
    return notify


def submit_project(request):
    if request.method != 'POST':
        return render(request, 'submissions/submit_project.html', {'form': ProjectSubmissionForm()})

    form = ProjectSubmissionForm(request.POST, request.FILES)
    if not form.is_valid():
        messages.error(request, 'Please correct the highlighted fields.')
        return render(request, 'submissions/submit_project.html', {'form': form})

    controller = build_controller(notify=_flash(request))
    for name, value in form.cleaned_data.items():
        if name != 'attached_file':
            controller.set_field(name, value)

    upload = form.cleaned_data.get('attached_file')
    if upload:
        try:
            controller.set_file(upload)
        except FileRejected as exc:
            form.add_error('attached_file', exc)
            return render(request, 'submissions/submit_project.html', {'form': form})

    state = async_to_sync(controller.submit)()
    if state.status is Status.SUCCEEDED:
        # redirect so a browser refresh does not post the same project twice
        request.session['last_submission_id'] = state.record.pk
        return redirect('submissions:submission_done')

    for name in state.missing_fields:
        form.add_error(name, 'This field is required.')
    return render(request, 'submissions/submit_project.html', {'form': form})


def submission_done(request):
    record_id = request.session.pop('last_submission_id', None)
    record = ProjectSubmission.objects.filter(pk=record_id).first() if record_id else None
    if record is None:
        return redirect('submissions:submit_project')
    return render(request, 'submissions/submitted.html', {'record': record})
