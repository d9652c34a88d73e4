from django.db import models


class JobRecord(models.Model):
    """The whole job document, guarded by a version counter."""

    id = models.CharField(primary_key=True, max_length=64, editable=False)
    body = models.JSONField()
    version = models.PositiveIntegerField(default=1)

    created_at = models.DateTimeField()
    updated_at = models.DateTimeField(auto_now=True)


class JobIndexEntry(models.Model):
    """All-jobs index. Written once at creation, never removed."""

    job_id = models.CharField(primary_key=True, max_length=64)
    created_at = models.DateTimeField()


class CatalogRecord(models.Model):
    job_id = models.CharField(primary_key=True, max_length=64)
    title = models.CharField(max_length=512)
    playable = models.JSONField(null=True, blank=True)   # {bucket, key} or URL
    qc_markers = models.JSONField(default=list, blank=True)
    published_at = models.DateTimeField()
