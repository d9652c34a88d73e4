from rest_framework import serializers


class StageSerializer(serializers.Serializer):
    name = serializers.CharField()
    status = serializers.CharField()
    started_at = serializers.DateTimeField(allow_null=True)
    ended_at = serializers.DateTimeField(allow_null=True)


class QCMarkerSerializer(serializers.Serializer):
    time = serializers.FloatField()
    type = serializers.CharField()
    note = serializers.CharField()


class JobSerializer(serializers.Serializer):
    id = serializers.CharField()
    title = serializers.CharField()
    status = serializers.CharField()
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()
    stages = StageSerializer(many=True)
    logs = serializers.ListField(child=serializers.CharField())
    artifacts = serializers.JSONField()     # name -> {bucket, key} or URL
    qc_markers = QCMarkerSerializer(many=True)
    source = serializers.JSONField(allow_null=True)
    version = serializers.IntegerField()


class CatalogEntrySerializer(serializers.Serializer):
    job_id = serializers.CharField()
    title = serializers.CharField()
    playable = serializers.JSONField(allow_null=True)
    qc_markers = QCMarkerSerializer(many=True)
    published_at = serializers.DateTimeField()


class JobCreateSerializer(serializers.Serializer):
    title = serializers.CharField(default="Upload", max_length=512)
    s3_key = serializers.CharField(allow_null=True, allow_blank=True, default=None)
    source_meta = serializers.DictField(default=dict)


class UploadUrlRequestSerializer(serializers.Serializer):
    key = serializers.CharField()
    content_type = serializers.CharField(required=False, allow_blank=True)


class ViewUrlRequestSerializer(serializers.Serializer):
    key = serializers.CharField()
    bucket = serializers.CharField(required=False, allow_blank=True)


class PresignResponseSerializer(serializers.Serializer):
    url = serializers.URLField()
    headers = serializers.DictField(child=serializers.CharField(), required=False)
