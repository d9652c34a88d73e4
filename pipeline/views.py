from rest_framework import status, views
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .errors import JobNotFound, PublishRejected, StaleJobError
from .s3 import create_presigned_get, create_presigned_put
from .serializers import (
    CatalogEntrySerializer,
    JobCreateSerializer,
    JobSerializer,
    PresignResponseSerializer,
    UploadUrlRequestSerializer,
    ViewUrlRequestSerializer,
)
from .services import get_control

NOT_FOUND = {"detail": "Not found"}


class PublicAPIView(views.APIView):
    permission_classes = [AllowAny]
    authentication_classes = []


class HealthView(PublicAPIView):
    def get(self, request):
        return Response({"ok": True})


class UploadUrlView(PublicAPIView):
    """
    Returns a presigned PUT URL so the browser can upload straight to
    S3/MinIO without streaming through Django.
    """

    def post(self, request):
        ser = UploadUrlRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        signed = create_presigned_put(
            ser.validated_data["key"],
            content_type=ser.validated_data.get("content_type") or None,
        )
        return Response(PresignResponseSerializer(signed).data)


class ViewUrlView(PublicAPIView):
    def get(self, request):
        ser = ViewUrlRequestSerializer(data=request.query_params)
        ser.is_valid(raise_exception=True)
        url = create_presigned_get(
            ser.validated_data["key"],
            bucket=ser.validated_data.get("bucket") or None,
        )
        return Response({"url": url})


class JobListView(PublicAPIView):
    def get(self, request):
        jobs = get_control().list_jobs()
        return Response(JobSerializer(jobs, many=True).data)

    def post(self, request):
        ser = JobCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        job = get_control().create_job(
            title=ser.validated_data["title"],
            s3_key=ser.validated_data["s3_key"] or None,
            source_meta=ser.validated_data["source_meta"],
        )
        return Response(JobSerializer(job).data, status=status.HTTP_201_CREATED)


class JobDetailView(PublicAPIView):
    def get(self, request, job_id):
        try:
            job = get_control().get_job(job_id)
        except JobNotFound:
            return Response(NOT_FOUND, status=404)
        return Response(JobSerializer(job).data)


class JobReplayView(PublicAPIView):
    def post(self, request, job_id):
        try:
            job = get_control().replay(job_id)
        except JobNotFound:
            return Response(NOT_FOUND, status=404)
        except StaleJobError:
            return Response({"detail": "Job changed; retry."}, status=409)
        return Response(JobSerializer(job).data)


class JobPublishView(PublicAPIView):
    def post(self, request, job_id):
        try:
            get_control().publish(job_id)
        except JobNotFound:
            return Response(NOT_FOUND, status=404)
        except PublishRejected:
            return Response({"detail": "Job not ready."}, status=400)
        except StaleJobError:
            return Response({"detail": "Job changed; retry."}, status=409)
        return Response({"ok": True})


class CatalogView(PublicAPIView):
    def get(self, request):
        entries = get_control().list_catalog()
        return Response(CatalogEntrySerializer(entries, many=True).data)
