from django import forms

from .models import Branch, YEAR_CHOICES


class ProjectSubmissionForm(forms.Form):
    """Input affordance for the submission page.

    Every field is optional at this level: required fields are checked by
    the controller at submit time so the user sees every missing field at
    once. The form only constrains what a browser widget would (closed
    choice sets and a well-formed URL).
    """

    full_name = forms.CharField(max_length=150, required=False)
    enrollment_number = forms.CharField(max_length=50, required=False)
    branch = forms.ChoiceField(choices=[('', 'Select your branch')] + Branch.choices, required=False)
    academic_year = forms.ChoiceField(choices=[('', 'Select year range')] + YEAR_CHOICES, required=False)
    project_title = forms.CharField(max_length=200, required=False)
    project_link = forms.URLField(max_length=500, required=False, assume_scheme='https')
    project_description = forms.CharField(widget=forms.Textarea, required=False)
    attached_file = forms.FileField(
        required=False,
        widget=forms.ClearableFileInput(attrs={'accept': '.pdf,.docx,.zip'}),
    )
