from django.urls import path
from .views import (
    CatalogView,
    HealthView,
    JobDetailView,
    JobListView,
    JobPublishView,
    JobReplayView,
    UploadUrlView,
    ViewUrlView,
)

urlpatterns = [
    path("health", HealthView.as_view(), name="health"),
    path("upload-url", UploadUrlView.as_view(), name="upload_url"),
    path("view-url", ViewUrlView.as_view(), name="view_url"),
    path("jobs", JobListView.as_view(), name="jobs"),
    path("jobs/<str:job_id>", JobDetailView.as_view(), name="job_detail"),
    path("jobs/<str:job_id>/replay", JobReplayView.as_view(), name="job_replay"),
    path("jobs/<str:job_id>/publish", JobPublishView.as_view(), name="job_publish"),
    path("catalog", CatalogView.as_view(), name="catalog"),
]
