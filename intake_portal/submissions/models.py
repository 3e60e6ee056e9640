from django.db import models


class Branch(models.TextChoices):
    AI_DS = 'AI&DS', 'AI & Data Science'
    AI_ML = 'AI&ML', 'AI & Machine Learning'
    IIOT = 'IIOT', 'Industrial IoT'
    AR = 'AR', 'Augmented Reality'


YEAR_RANGES = [
    '2021–2025', '2022–2026', '2023–2027', '2024–2028',
    '2025–2029', '2026–2030', '2027–2031', '2028–2032',
    '2029–2033', '2030–2034',
]
YEAR_CHOICES = [(y, y) for y in YEAR_RANGES]


class ProjectSubmission(models.Model):
    full_name = models.CharField(max_length=150)
    enrollment_number = models.CharField(max_length=50)
    branch = models.CharField(max_length=10, choices=Branch.choices)
    year = models.CharField(max_length=20, choices=YEAR_CHOICES)
    project_title = models.CharField(max_length=200)
    project_link = models.URLField(max_length=500, null=True, blank=True)
    project_description = models.TextField(null=True, blank=True)
    # storage path inside the project-files bucket, null when nothing was attached
    file_url = models.CharField(max_length=500, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'project_submissions'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.project_title} ({self.enrollment_number})"

    @property
    def file_location(self):
        return self.file_url

    def save(self, *args, **kwargs):
        """Submissions are written once and never updated."""
        if self.pk is not None and not self._state.adding:
            raise ValueError('Project submissions are immutable once recorded.')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError('Project submissions cannot be deleted.')
