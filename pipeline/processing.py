"""
Stage work. The engine only cares whether a stage succeeded and what it
produced; how the media gets transcoded, thumbnailed, checked and packaged
lives here.
"""
import io
import logging
import re
import subprocess
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont
from django.conf import settings

from . import s3
from .errors import MissingSource, StageFailed, UnknownStage
from .jobs import Job, QCMarker

logger = logging.getLogger(__name__)

SAMPLE_QC = (
    QCMarker(time=12, type="loudness", note="Loudness spike detected"),
    QCMarker(time=47, type="black_frame", note="Possible black frame"),
    QCMarker(time=83, type="caption", note="Caption missing period"),
)

_BLACKDETECT_RE = re.compile(
    r"black_start:\s*(?P<start>[\d.]+)\s+black_end:\s*(?P<end>[\d.]+)\s+black_duration:\s*(?P<dur>[\d.]+)"
)


@dataclass
class StageResult:
    artifacts: dict = field(default_factory=dict)
    qc_markers: list[QCMarker] | None = None
    # False when an `hls` artifact is only a placeholder that must not
    # replace a stream a real packager already produced.
    produced_playable: bool = False


def output_key(job: Job, name: str) -> str:
    """Deterministic per job, so re-running a stage overwrites its own output."""
    return f"outputs/{job.id}/{name}"


class StageProcessor:
    def run(self, stage: str, job: Job) -> StageResult:
        handlers = {
            "Transcode": self.transcode,
            "Thumbnail": self.thumbnail,
            "QC": self.qc,
            "Package": self.package,
        }
        if stage not in handlers:
            raise UnknownStage(stage)
        return handlers[stage](job)

    def transcode(self, job: Job) -> StageResult:
        raise NotImplementedError

    def thumbnail(self, job: Job) -> StageResult:
        raise NotImplementedError

    def qc(self, job: Job) -> StageResult:
        raise NotImplementedError

    def package(self, job: Job) -> StageResult:
        raise NotImplementedError


def render_placeholder_thumbnail(title: str, size=(320, 180)) -> bytes:
    img = Image.new("RGB", size, (24, 24, 27))
    draw = ImageDraw.Draw(img)
    font = ImageFont.load_default()
    draw.text((12, size[1] // 2 - 6), title[:40], font=font, fill=(235, 235, 235))

    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=85)
    return buf.getvalue()


class StubProcessor(StageProcessor):
    """Writes placeholder outputs so the pipeline can run without ffmpeg."""

    def __init__(self, put=None, *, use_stub_hls: bool = False, sample_hls_url: str = ""):
        self.put = put or s3.put_object
        self.use_stub_hls = use_stub_hls
        self.sample_hls_url = sample_hls_url

    def _source_name(self, job: Job) -> str:
        return (job.source or {}).get("key") or "sample"

    def transcode(self, job):
        key = output_key(job, "transcoded.txt")
        now = datetime.now(timezone.utc).isoformat()
        loc = self.put(key, f"transcoded at {now} from {self._source_name(job)}", "text/plain")
        return StageResult(artifacts={"transcoded": loc})

    def thumbnail(self, job):
        key = output_key(job, "thumb.jpg")
        loc = self.put(key, render_placeholder_thumbnail(job.title), "image/jpeg")
        return StageResult(artifacts={"thumbnail": loc})

    def qc(self, job):
        return StageResult(qc_markers=[QCMarker(m.time, m.type, m.note) for m in SAMPLE_QC])

    def package(self, job):
        if not self.use_stub_hls:
            return StageResult()
        return StageResult(artifacts={"hls": self.sample_hls_url}, produced_playable=False)


def parse_blackdetect(stderr: str) -> list[QCMarker]:
    """Turn ffmpeg blackdetect log lines into black_frame markers."""
    markers = []
    for m in _BLACKDETECT_RE.finditer(stderr):
        start = float(m.group("start"))
        duration = float(m.group("dur"))
        markers.append(
            QCMarker(
                time=round(start, 2),
                type="black_frame",
                note=f"Black frames for {duration:.2f}s",
            )
        )
    return markers


class FfmpegProcessor(StageProcessor):
    """Runs the real media steps against the uploaded source."""

    def __init__(self, work_root: Path | None = None):
        self.work_root = Path(work_root or Path(settings.MEDIA_ROOT) / "work")

    def _workdir(self, job: Job) -> Path:
        path = self.work_root / job.id
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _source(self, job: Job) -> Path:
        if not job.source or not job.source.get("key"):
            raise MissingSource(job.id)
        key = job.source["key"]
        local = self._workdir(job) / f"source{Path(key).suffix}"
        if not local.exists():
            s3.download_file(key, local, bucket=job.source.get("bucket"))
        return local

    def _ffmpeg(self, stage: str, job: Job, args: list[str]) -> subprocess.CompletedProcess:
        cmd = ["ffmpeg", "-y", *args]
        logger.debug("%s %s: %s", stage, job.id, " ".join(cmd))
        try:
            return subprocess.run(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except subprocess.CalledProcessError as e:
            err = e.stderr.decode("utf-8", errors="ignore") if e.stderr else str(e)
            raise StageFailed(stage, job.id, err[-4000:]) from e

    def transcode(self, job):
        src = self._source(job)
        out = self._workdir(job) / "720p.mp4"
        self._ffmpeg("Transcode", job, [
            "-i", str(src),
            "-vf", "scale=-2:720",
            "-c:v", "libx264",
            "-preset", "veryfast",
            "-crf", "23",
            "-c:a", "aac",
            "-b:a", "128k",
            str(out),
        ])
        loc = s3.upload_file(str(out), output_key(job, "720p.mp4"), content_type="video/mp4")
        return StageResult(artifacts={"transcoded": loc})

    def thumbnail(self, job):
        src = self._source(job)
        frame = self._workdir(job) / "frame.jpg"
        self._ffmpeg("Thumbnail", job, ["-ss", "1", "-i", str(src), "-frames:v", "1", str(frame)])

        img = Image.open(frame).convert("RGB")
        img.thumbnail((512, 512))
        out = self._workdir(job) / "thumb.jpg"
        img.save(out, format="JPEG", quality=90)

        loc = s3.upload_file(str(out), output_key(job, "thumb.jpg"), content_type="image/jpeg")
        return StageResult(artifacts={"thumbnail": loc})

    def qc(self, job):
        src = self._source(job)
        proc = self._ffmpeg("QC", job, [
            "-i", str(src),
            "-vf", "blackdetect=d=0.5:pix_th=0.10",
            "-an",
            "-f", "null",
            "-",
        ])
        return StageResult(qc_markers=parse_blackdetect(proc.stderr.decode("utf-8", errors="ignore")))

    def package(self, job):
        src = self._source(job)
        out_dir = self._workdir(job) / "hls"
        out_dir.mkdir(parents=True, exist_ok=True)
        self._ffmpeg("Package", job, [
            "-i", str(src),
            "-vf", "scale=-2:720",
            "-c:v", "libx264",
            "-preset", "veryfast",
            "-crf", "23",
            "-c:a", "aac",
            "-b:a", "128k",
            "-hls_time", "4",
            "-hls_list_size", "0",
            "-hls_segment_filename", str(out_dir / "seg_%04d.ts"),
            str(out_dir / "index.m3u8"),
        ])
        prefix = output_key(job, "hls")
        s3.upload_dir(str(out_dir), prefix)
        return StageResult(artifacts={"hls": s3.locator(f"{prefix}/index.m3u8")}, produced_playable=True)
