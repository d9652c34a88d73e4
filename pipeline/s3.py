from pathlib import Path
import boto3
from botocore.config import Config as BotoConfig
from django.conf import settings


def _client(endpoint_url: str | None):
    session = boto3.session.Session(
        aws_access_key_id=settings.S3_ACCESS_KEY,
        aws_secret_access_key=settings.S3_SECRET_KEY,
        region_name=settings.S3_REGION,
    )
    return session.client(
        "s3",
        endpoint_url=endpoint_url,
        config=BotoConfig(s3={"addressing_style": "path"}, signature_version="s3v4"),
    )


def get_s3_client():
    """Client the workers use to read sources and write stage outputs."""
    return _client(settings.S3_ENDPOINT_URL)


def get_presign_client():
    """Signs URLs against S3_PUBLIC_ENDPOINT, the host browsers can reach."""
    return _client(settings.S3_PUBLIC_ENDPOINT)


def locator(key: str, bucket: str | None = None) -> dict:
    return {"bucket": bucket or settings.S3_BUCKET, "key": key}


def create_presigned_put(key: str, content_type: str | None = None, expires: int | None = None) -> dict:
    """
    Create a presigned PUT URL to upload a single object directly to S3/MinIO.

    ContentType is not signed, so clients that omit or alter the header still
    match the signature. It is suggested back to the client instead.
    """
    s3 = get_presign_client()
    url = s3.generate_presigned_url(
        ClientMethod="put_object",
        Params={"Bucket": settings.S3_BUCKET, "Key": key},
        ExpiresIn=expires or settings.S3_PRESIGN_EXPIRE_SECONDS,
        HttpMethod="PUT",
    )
    headers = {"Content-Type": content_type} if content_type else {}
    return {"url": url, "headers": headers}


def create_presigned_get(key: str, bucket: str | None = None, expires: int | None = None) -> str:
    s3 = get_presign_client()
    return s3.generate_presigned_url(
        ClientMethod="get_object",
        Params={"Bucket": bucket or settings.S3_BUCKET, "Key": key},
        ExpiresIn=expires or settings.S3_PRESIGN_EXPIRE_SECONDS,
        HttpMethod="GET",
    )


def put_object(key: str, body: bytes | str, content_type: str = "application/octet-stream") -> dict:
    """Write a small object from memory and return its locator."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    get_s3_client().put_object(
        Bucket=settings.S3_BUCKET, Key=key, Body=body, ContentType=content_type
    )
    return locator(key)


def download_file(key: str, dest: Path, bucket: str | None = None) -> Path:
    dest.parent.mkdir(parents=True, exist_ok=True)
    get_s3_client().download_file(bucket or settings.S3_BUCKET, key, str(dest))
    return dest


def upload_file(local_path: str, key: str, content_type: str | None = None) -> dict:
    """
    Upload a single file to S3/MinIO with an optional Content-Type.
    """
    s3 = get_s3_client()
    extra = {}
    if content_type:
        extra["ContentType"] = content_type
    s3.upload_file(str(local_path), settings.S3_BUCKET, key, ExtraArgs=extra or None)
    return locator(key)


HLS_CONTENT_TYPES = {
    ".m3u8": "application/vnd.apple.mpegurl",
    ".ts": "video/MP2T",
    ".m2ts": "video/MP2T",
}


def upload_dir(local_dir: str, key_prefix: str, client=None) -> list[str]:
    """Upload an HLS output folder under key_prefix and return the keys written."""
    s3 = client or get_s3_client()
    base = Path(local_dir)
    keys = []
    for p in sorted(base.rglob("*")):
        if not p.is_file():
            continue
        key = f"{key_prefix}/{p.relative_to(base).as_posix()}"
        content_type = HLS_CONTENT_TYPES.get(p.suffix.lower())
        extra = {"ContentType": content_type} if content_type else None
        s3.upload_file(str(p), settings.S3_BUCKET, key, ExtraArgs=extra)
        keys.append(key)
    return keys
