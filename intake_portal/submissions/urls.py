from django.urls import path
from . import views

app_name = 'submissions'

urlpatterns = [
    path('', views.submit_project, name='submit_project'),
    path('submitted/', views.submission_done, name='submission_done'),
]
