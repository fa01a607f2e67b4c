"""Unit tests for concurrency-bounded artifact uploads."""

import asyncio
from pathlib import Path

import httpx
import pytest

from spekra_reporter.client.upload_client import BatchUploadOrchestrator
from spekra_reporter.core.types import BatchOutcome, UploadTask
from spekra_reporter.exceptions import ConfigurationError


def _task(path: Path, task_id: str | None = None, **kwargs) -> UploadTask:
    kwargs.setdefault("content_type", "application/zip")
    return UploadTask(
        id=task_id or path.stem,
        source_path=path,
        destination=f"https://storage.example.test/{path.name}?sig=abc",
        **kwargs,
    )


def _write(tmp_path: Path, name: str, size: int) -> Path:
    path = tmp_path / name
    path.write_bytes(b"a" * size)
    return path


class _Recorder:
    def __init__(self, status: int = 200):
        self.status = status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, text="" if self.status < 400 else "denied")


class InMemoryFileSystem:
    def __init__(self, files: dict[str, bytes]):
        self.files = files
        self.reads: list[Path] = []

    def exists(self, path: Path) -> bool:
        return str(path) in self.files

    async def read_bytes(self, path: Path) -> bytes:
        self.reads.append(path)
        return self.files[str(path)]

    def size(self, path: Path) -> int:
        if str(path) not in self.files:
            raise FileNotFoundError(path)
        return len(self.files[str(path)])


@pytest.mark.unit
class TestUploadBatch:
    @pytest.mark.asyncio
    async def test_empty_batch(self, make_executor):
        recorder = _Recorder()
        orchestrator = BatchUploadOrchestrator(make_executor(recorder))
        progress = []

        outcome = await orchestrator.upload_batch([], progress.append)

        assert outcome == BatchOutcome()
        assert outcome.total_count == 0
        assert recorder.requests == []
        assert progress == []

    @pytest.mark.asyncio
    async def test_successful_uploads(self, make_executor, tmp_path):
        recorder = _Recorder()
        orchestrator = BatchUploadOrchestrator(make_executor(recorder))
        tasks = [
            _task(_write(tmp_path, "trace.zip", 300)),
            _task(_write(tmp_path, "shot.png", 200), content_type="image/png"),
        ]

        outcome = await orchestrator.upload_batch(tasks)

        assert {r.id for r in outcome.succeeded} == {"trace", "shot"}
        assert outcome.failed == ()
        assert outcome.total_bytes_uploaded == 500
        by_url = {str(r.url): r for r in recorder.requests}
        png = by_url["https://storage.example.test/shot.png?sig=abc"]
        assert png.method == "PUT"
        assert png.headers["Content-Type"] == "image/png"
        assert png.headers["Content-Length"] == "200"
        assert png.content == b"a" * 200

    @pytest.mark.asyncio
    async def test_compress_hint_is_ignored(self, make_executor, tmp_path):
        recorder = _Recorder()
        orchestrator = BatchUploadOrchestrator(make_executor(recorder))
        path = _write(tmp_path, "console.txt", 4096)

        await orchestrator.upload_batch(
            [_task(path, content_type="text/plain", compress_hint=True)]
        )

        sent = recorder.requests[0]
        assert "Content-Encoding" not in sent.headers
        assert sent.content == path.read_bytes()

    @pytest.mark.asyncio
    async def test_missing_file_fails_without_transport_call(
        self, make_executor, tmp_path, mock_logger
    ):
        recorder = _Recorder()
        orchestrator = BatchUploadOrchestrator(
            make_executor(recorder), logger=mock_logger
        )

        outcome = await orchestrator.upload_batch(
            [_task(tmp_path / "gone.zip", task_id="gone")]
        )

        assert outcome.succeeded == ()
        (failed,) = outcome.failed
        assert failed.id == "gone"
        assert failed.bytes_transferred == 0
        assert "not found" in failed.error
        assert failed.error == "File not found: gone.zip"
        assert recorder.requests == []
        mock_logger.warn.assert_called_once_with(
            "Artifact file not found", {"id": "gone", "file": "gone.zip"}
        )

    @pytest.mark.asyncio
    async def test_upload_failure_is_captured(self, make_executor, tmp_path, mock_logger):
        orchestrator = BatchUploadOrchestrator(
            make_executor(_Recorder(status=403)), logger=mock_logger
        )

        outcome = await orchestrator.upload_batch(
            [_task(_write(tmp_path, "trace.zip", 10))]
        )

        (failed,) = outcome.failed
        assert failed.error == "denied"
        assert failed.bytes_transferred == 0
        assert outcome.total_bytes_uploaded == 0
        message, context = mock_logger.warn.call_args.args
        assert message == "Failed to upload artifact"
        assert context["statusCode"] == 403
        assert context["retries"] == 0

    @pytest.mark.asyncio
    async def test_partition_covers_every_task(self, make_executor, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            if "bad" in request.url.path:
                return httpx.Response(400, text="rejected")
            return httpx.Response(200)

        orchestrator = BatchUploadOrchestrator(make_executor(handler), concurrency=2)
        tasks = [
            _task(_write(tmp_path, "ok1.zip", 5)),
            _task(_write(tmp_path, "bad1.zip", 7)),
            _task(tmp_path / "missing.zip"),
            _task(_write(tmp_path, "ok2.zip", 11)),
        ]

        outcome = await orchestrator.upload_batch(tasks)

        assert outcome.total_count == len(tasks)
        assert {r.id for r in outcome.succeeded} == {"ok1", "ok2"}
        assert {r.id for r in outcome.failed} == {"bad1", "missing"}
        assert outcome.total_bytes_uploaded == 16

    @pytest.mark.asyncio
    async def test_transport_failure_on_every_task_still_partitions(
        self, make_executor, tmp_path
    ):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable")

        orchestrator = BatchUploadOrchestrator(make_executor(handler, max_retries=1))
        tasks = [_task(_write(tmp_path, f"t{i}.zip", 3)) for i in range(3)]

        outcome = await orchestrator.upload_batch(tasks)

        assert outcome.succeeded == ()
        assert len(outcome.failed) == 3
        assert all(r.error == "unreachable" for r in outcome.failed)


@pytest.mark.unit
class TestConcurrency:
    @pytest.mark.asyncio
    async def test_in_flight_uploads_never_exceed_limit(self, make_executor, tmp_path):
        in_flight = 0
        peak = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.05)
            in_flight -= 1
            return httpx.Response(200)

        orchestrator = BatchUploadOrchestrator(make_executor(handler), concurrency=2)
        tasks = [_task(_write(tmp_path, f"t{i}.zip", 1)) for i in range(7)]

        outcome = await orchestrator.upload_batch(tasks)

        assert len(outcome.succeeded) == 7
        assert peak == 2

    @pytest.mark.asyncio
    async def test_concurrency_of_one_serialises(self, make_executor, tmp_path):
        in_flight = 0
        peak = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0)
            in_flight -= 1
            return httpx.Response(200)

        orchestrator = BatchUploadOrchestrator(make_executor(handler), concurrency=1)
        tasks = [_task(_write(tmp_path, f"t{i}.zip", 1)) for i in range(4)]

        await orchestrator.upload_batch(tasks)

        assert peak == 1

    @pytest.mark.parametrize("concurrency", [0, -1])
    def test_invalid_concurrency(self, make_executor, concurrency):
        with pytest.raises(ConfigurationError):
            BatchUploadOrchestrator(make_executor(_Recorder()), concurrency=concurrency)


@pytest.mark.unit
class TestProgress:
    @pytest.mark.asyncio
    async def test_called_once_per_task(self, make_executor, tmp_path):
        orchestrator = BatchUploadOrchestrator(make_executor(_Recorder()), concurrency=3)
        tasks = [
            _task(_write(tmp_path, "a.zip", 100)),
            _task(_write(tmp_path, "b.zip", 50)),
            _task(tmp_path / "missing.zip"),
        ]
        progress = []

        await orchestrator.upload_batch(tasks, progress.append)

        assert [p.completed_count for p in progress] == [1, 2, 3]
        assert all(p.total_count == 3 for p in progress)
        # Missing files contribute nothing to the precomputed total
        assert all(p.total_bytes == 150 for p in progress)
        assert progress[-1].bytes_uploaded == 150
        uploaded = [p.bytes_uploaded for p in progress]
        assert uploaded == sorted(uploaded)

    @pytest.mark.asyncio
    async def test_raising_callback_does_not_break_batch(
        self, make_executor, tmp_path, mock_logger
    ):
        orchestrator = BatchUploadOrchestrator(
            make_executor(_Recorder()), logger=mock_logger
        )
        calls = []

        def on_progress(progress):
            calls.append(progress)
            raise ValueError("listener bug")

        outcome = await orchestrator.upload_batch(
            [_task(_write(tmp_path, f"t{i}.zip", 1)) for i in range(2)], on_progress
        )

        assert len(outcome.succeeded) == 2
        assert len(calls) == 2
        mock_logger.warn.assert_called_with(
            "Upload progress callback threw", {"error": "listener bug"}
        )


@pytest.mark.unit
class TestFileSystemBoundary:
    @pytest.mark.asyncio
    async def test_custom_filesystem_is_used(self, make_executor):
        recorder = _Recorder()
        fs = InMemoryFileSystem({"/virtual/trace.zip": b"zipdata"})
        orchestrator = BatchUploadOrchestrator(make_executor(recorder), filesystem=fs)
        progress = []

        outcome = await orchestrator.upload_batch(
            [
                _task(Path("/virtual/trace.zip")),
                _task(Path("/virtual/absent.zip")),
            ],
            progress.append,
        )

        assert [r.id for r in outcome.succeeded] == ["trace"]
        assert [r.id for r in outcome.failed] == ["absent"]
        assert fs.reads == [Path("/virtual/trace.zip")]
        assert recorder.requests[0].content == b"zipdata"
        assert progress[-1].total_bytes == 7

    @pytest.mark.asyncio
    async def test_exists_error_fails_only_that_task(self, make_executor, mock_logger):
        class _BrokenExists(InMemoryFileSystem):
            def exists(self, path: Path) -> bool:
                if path.name == "locked.zip":
                    raise PermissionError("Permission denied")
                return super().exists(path)

        fs = _BrokenExists({"/virtual/trace.zip": b"zipdata"})
        orchestrator = BatchUploadOrchestrator(
            make_executor(_Recorder()), logger=mock_logger, filesystem=fs
        )

        outcome = await orchestrator.upload_batch(
            [_task(Path("/virtual/trace.zip")), _task(Path("/virtual/locked.zip"))]
        )

        assert [r.id for r in outcome.succeeded] == ["trace"]
        assert [(r.id, r.error) for r in outcome.failed] == [
            ("locked", "Permission denied")
        ]
        mock_logger.warn.assert_any_call(
            "Failed to upload artifact",
            {"id": "locked", "file": "locked.zip", "error": "Permission denied"},
        )

    @pytest.mark.asyncio
    async def test_unexpected_read_error_is_captured(self, make_executor):
        class _BadRead(InMemoryFileSystem):
            async def read_bytes(self, path: Path) -> bytes:
                if path.name == "bad.zip":
                    raise ValueError("unreadable artifact")
                return await super().read_bytes(path)

        fs = _BadRead({"/virtual/trace.zip": b"zip", "/virtual/bad.zip": b"zip"})
        orchestrator = BatchUploadOrchestrator(
            make_executor(_Recorder()), filesystem=fs
        )

        outcome = await orchestrator.upload_batch(
            [_task(Path("/virtual/trace.zip")), _task(Path("/virtual/bad.zip"))]
        )

        assert outcome.total_count == 2
        assert [r.id for r in outcome.succeeded] == ["trace"]
        assert [(r.id, r.error) for r in outcome.failed] == [
            ("bad", "unreadable artifact")
        ]

    @pytest.mark.asyncio
    async def test_overlong_local_path_fails_only_that_task(
        self, make_executor, tmp_path
    ):
        good = _write(tmp_path, "trace.zip", 10)
        overlong = tmp_path / ("n" * 300)
        orchestrator = BatchUploadOrchestrator(make_executor(_Recorder()))

        outcome = await orchestrator.upload_batch(
            [_task(good), _task(overlong, task_id="overlong")]
        )

        assert [r.id for r in outcome.succeeded] == ["trace"]
        assert [r.id for r in outcome.failed] == ["overlong"]
        assert outcome.total_bytes_uploaded == 10
