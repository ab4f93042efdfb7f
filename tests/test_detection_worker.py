"""Tests for the background detection worker."""

import time

import numpy as np

from domain.models import DetectionRequest, DetectorStatus
from vision.detection_worker import DetectionWorker


class _StubDetector:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.closed = False

    def detect(self, frame):
        if self.fail:
            raise ValueError("bad frame")
        return [{"class": "car", "box": (0, 0, 100, 50), "score": 0.8}]

    def close(self) -> None:
        self.closed = True


def _wait(predicate, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return
        time.sleep(0.01)
    raise AssertionError("condition not reached")


def _poll(worker: DetectionWorker):
    result = None

    def got():
        nonlocal result
        result = worker.poll_result()
        return result is not None

    _wait(got)
    return result


def _request(epoch: int = 3) -> DetectionRequest:
    return DetectionRequest(epoch=epoch, frame=np.zeros((4, 4, 3), np.uint8), observed_at=1.5)


def test_rejects_requests_while_loading():
    worker = DetectionWorker(_StubDetector)
    assert worker.status == DetectorStatus.LOADING
    assert worker.submit(_request()) is False


def test_result_echoes_epoch_and_time():
    stub = _StubDetector()
    worker = DetectionWorker(lambda: stub)
    worker.start()
    try:
        _wait(lambda: worker.status == DetectorStatus.READY)
        assert worker.submit(_request())
        result = _poll(worker)
        assert result.epoch == 3
        assert result.observed_at == 1.5
        assert result.candidates[0]["class"] == "car"
        assert result.error is None
    finally:
        worker.stop()
    assert stub.closed


def test_detector_error_reported_as_empty_result():
    worker = DetectionWorker(lambda: _StubDetector(fail=True))
    worker.start()
    try:
        _wait(lambda: worker.status == DetectorStatus.READY)
        worker.submit(_request())
        result = _poll(worker)
        assert result.candidates == []
        assert result.error == "bad frame"
    finally:
        worker.stop()


def test_load_failure_sets_failed_status():
    def factory():
        raise RuntimeError("model download failed")

    worker = DetectionWorker(factory)
    worker.start()
    try:
        _wait(lambda: worker.status == DetectorStatus.FAILED)
        assert worker.error == "model download failed"
        assert worker.submit(_request()) is False
    finally:
        worker.stop()
