from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='ProjectSubmission',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('full_name', models.CharField(max_length=150)),
                ('enrollment_number', models.CharField(max_length=50)),
                ('branch', models.CharField(choices=[('AI&DS', 'AI & Data Science'), ('AI&ML', 'AI & Machine Learning'), ('IIOT', 'Industrial IoT'), ('AR', 'Augmented Reality')], max_length=10)),
                ('year', models.CharField(choices=[('2021–2025', '2021–2025'), ('2022–2026', '2022–2026'), ('2023–2027', '2023–2027'), ('2024–2028', '2024–2028'), ('2025–2029', '2025–2029'), ('2026–2030', '2026–2030'), ('2027–2031', '2027–2031'), ('2028–2032', '2028–2032'), ('2029–2033', '2029–2033'), ('2030–2034', '2030–2034')], max_length=20)),
                ('project_title', models.CharField(max_length=200)),
                ('project_link', models.URLField(blank=True, max_length=500, null=True)),
                ('project_description', models.TextField(blank=True, null=True)),
                ('file_url', models.CharField(blank=True, max_length=500, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'project_submissions',
                'ordering': ['-created_at'],
            },
        ),
    ]
