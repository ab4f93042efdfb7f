"""Client for the remote upload / damage-analysis service."""

from __future__ import annotations

import json
import logging
import queue
import threading
import urllib.error
import urllib.request
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from domain.models import InspectionResult

logger = logging.getLogger(__name__)

_ENDPOINT = "/api/process-video"
_FIELD_NAME = "video"
_UPLOAD_FILENAME = "inspection.mp4"


class UploadError(RuntimeError):
    """The analysis service rejected the upload or could not be reached."""


@dataclass
class UploadOutcome:
    session_id: str
    result: Optional[InspectionResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.result is not None


def encode_multipart(field_name: str, filename: str, payload: bytes, content_type: str) -> tuple[bytes, str]:
    """Return ``(body, content_type_header)`` for a single-file form."""
    boundary = uuid.uuid4().hex
    head = (
        f"--{boundary}\r\n"
        f'Content-Disposition: form-data; name="{field_name}"; filename="{filename}"\r\n'
        f"Content-Type: {content_type}\r\n\r\n"
    ).encode("utf-8")
    tail = f"\r\n--{boundary}--\r\n".encode("utf-8")
    return head + payload + tail, f"multipart/form-data; boundary={boundary}"


def post_video(base_url: str, video_path: Path, timeout_s: float = 120.0) -> InspectionResult:
    """Upload *video_path* and parse the inspection result.

    Raises :class:`UploadError` on any transport, HTTP or decoding failure.
    No retries are attempted.
    """
    try:
        payload = video_path.read_bytes()
    except OSError as exc:
        raise UploadError(f"Cannot read recording {video_path}: {exc}") from exc

    body, content_type = encode_multipart(_FIELD_NAME, _UPLOAD_FILENAME, payload, "video/mp4")
    req = urllib.request.Request(
        base_url.rstrip("/") + _ENDPOINT,
        data=body,
        headers={"Content-Type": content_type, "Accept": "application/json"},
        method="POST",
    )
    logger.info("Uploading %s (%.1f MB) to %s", video_path.name, len(payload) / 1e6, req.full_url)

    try:
        with urllib.request.urlopen(req, timeout=timeout_s) as resp:
            raw = resp.read()
    except urllib.error.HTTPError as exc:
        raise UploadError(f"Video processing failed (HTTP {exc.code}): {_error_message(exc)}") from exc
    except (urllib.error.URLError, TimeoutError, OSError) as exc:
        raise UploadError(f"Video processing failed: {exc}") from exc

    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise UploadError(f"Invalid response from analysis service: {exc}") from exc
    if not isinstance(data, dict):
        raise UploadError("Invalid response from analysis service: expected a JSON object.")

    try:
        return InspectionResult.from_dict(data)
    except (TypeError, ValueError, AttributeError) as exc:
        raise UploadError(f"Malformed inspection result: {exc}") from exc


def _error_message(exc: urllib.error.HTTPError) -> str:
    try:
        data = json.loads(exc.read().decode("utf-8"))
        return str(data.get("message") or data.get("error") or exc.reason)
    except (OSError, ValueError, AttributeError):
        return str(exc.reason)


class InspectionUploader:
    """Runs one upload at a time on a daemon thread; the controller polls
    :meth:`poll` from the tick loop."""

    def __init__(
        self,
        base_url: str,
        timeout_s: float = 120.0,
        post: Callable[[str, Path, float], InspectionResult] = post_video,
    ) -> None:
        self.base_url = base_url
        self.timeout_s = timeout_s
        self._post = post
        self._outcomes: queue.Queue[UploadOutcome] = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    def upload(self, session_id: str, video_path: Union[Path, str]) -> None:
        path = Path(video_path)
        self._thread = threading.Thread(
            target=self._run, args=(session_id, path), daemon=True, name="InspectionUpload"
        )
        self._thread.start()

    def poll(self) -> Optional[UploadOutcome]:
        try:
            return self._outcomes.get_nowait()
        except queue.Empty:
            return None

    def _run(self, session_id: str, path: Path) -> None:
        try:
            result = self._post(self.base_url, path, self.timeout_s)
        except UploadError as exc:
            logger.error("Upload failed: %s", exc)
            self._outcomes.put(UploadOutcome(session_id=session_id, error=str(exc)))
            return
        except Exception as exc:
            # The session waits on an outcome; never let the thread die silently
            logger.exception("Unexpected upload error")
            self._outcomes.put(
                UploadOutcome(session_id=session_id, error=f"Video processing failed: {exc}")
            )
            return
        logger.info(
            "Analysis received: %s, %d damages",
            result.vehicle_info.display_name,
            len(result.damages),
        )
        self._outcomes.put(UploadOutcome(session_id=session_id, result=result))
