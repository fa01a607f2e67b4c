"""Unit tests for the telemetry context and its use by the delivery clients."""

import httpx
import pytest

from spekra_reporter import telemetry
from spekra_reporter.client.executor import ClientSettings, RetryingRequestExecutor
from spekra_reporter.client.upload_client import BatchUploadOrchestrator
from spekra_reporter.core.types import RequestSpec, UploadTask
from spekra_reporter.telemetry import InMemoryReporter, TelemetryContext


@pytest.fixture
def telemetry_enabled(monkeypatch):
    monkeypatch.setattr(telemetry, "_TELEMETRY_ENABLED", True)


class _BrokenReporter:
    def record_timing(self, scope, duration, **metadata):
        raise RuntimeError("sink down")

    def record_metric(self, scope, value, **metadata):
        raise RuntimeError("sink down")


@pytest.mark.unit
class TestTelemetryContext:
    def test_disabled_returns_shared_noop(self, monkeypatch):
        monkeypatch.setattr(telemetry, "_TELEMETRY_ENABLED", False)
        ctx = TelemetryContext(InMemoryReporter())
        assert ctx is TelemetryContext()
        with ctx("anything") as inner:
            inner.count("noop")

    def test_no_reporters_stays_noop(self, telemetry_enabled):
        assert TelemetryContext() is TelemetryContext()

    def test_nested_scopes_record_paths(self, telemetry_enabled):
        reporter = InMemoryReporter()
        ctx = TelemetryContext(reporter)

        with ctx("outer"), ctx("inner", kind="test"):
            ctx.metric("bytes", 10)

        assert set(reporter.timings) == {"outer", "outer.inner"}
        ((value, metadata),) = reporter.metrics["outer.inner.bytes"]
        assert value == 10
        assert metadata["depth"] == 2
        assert metadata["parent_scope"] == "outer.inner"
        _, inner_meta = reporter.timings["outer.inner"][0]
        assert inner_meta["kind"] == "test"

    def test_reporter_failures_are_contained(self, telemetry_enabled, caplog):
        ctx = TelemetryContext(_BrokenReporter())

        with ctx("scope"):
            ctx.count("hits")

        assert "Telemetry reporter '_BrokenReporter' failed" in caplog.text

    def test_empty_scope_name_is_rejected(self, telemetry_enabled):
        ctx = TelemetryContext(InMemoryReporter())
        with pytest.raises(ValueError), ctx(""):
            pass

    def test_report_lists_scopes(self, telemetry_enabled):
        reporter = InMemoryReporter()
        ctx = TelemetryContext(reporter)
        with ctx("client.execute"):
            ctx.count("client.retry")

        report = reporter.get_report()

        assert "client.execute" in report
        assert "client.execute.client.retry" in report


@pytest.mark.unit
class TestClientTelemetry:
    @pytest.mark.asyncio
    async def test_executor_records_scope_and_retries(
        self, telemetry_enabled, sleep_recorder
    ):
        reporter = InMemoryReporter()
        responses = iter([httpx.Response(503), httpx.Response(200, json={})])
        executor = RetryingRequestExecutor(
            ClientSettings(max_retries=2),
            transport=httpx.MockTransport(lambda r: next(responses)),
            sleep=sleep_recorder,
            telemetry=TelemetryContext(reporter),
        )

        await executor.execute(
            "https://api.example.test/x", RequestSpec(method="GET"), lambda r: None
        )

        assert len(reporter.timings["client.execute"]) == 1
        ((value, metadata),) = reporter.metrics["client.execute.client.retry"]
        assert value == 1
        assert metadata["attempt"] == 1

    @pytest.mark.asyncio
    async def test_upload_batch_scope(self, telemetry_enabled, make_executor, tmp_path):
        reporter = InMemoryReporter()
        path = tmp_path / "trace.zip"
        path.write_bytes(b"zip")
        orchestrator = BatchUploadOrchestrator(
            make_executor(lambda r: httpx.Response(200)),
            telemetry=TelemetryContext(reporter),
        )

        await orchestrator.upload_batch(
            [
                UploadTask(
                    id="t1",
                    source_path=path,
                    content_type="application/zip",
                    destination="https://storage.example.test/t1",
                )
            ]
        )

        ((_, metadata),) = reporter.timings["uploads.batch"]
        assert metadata["count"] == 1
