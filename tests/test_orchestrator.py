"""Tests for the upload orchestrator: strategies, pool dispatch and aggregation."""
import asyncio
from typing import Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, Mock

import pytest

from sku_uploader.errors import TransportError
from sku_uploader.models import (
    AltTextByPosition,
    MediaMove,
    ProcessingStatus,
    ProductRecord,
    RawFile,
    StagedUploadTarget,
    UploadSettings,
    UploadStrategy,
)
from sku_uploader.orchestrator import UploadOrchestrator, WorkerPool
from sku_uploader.orchestrator.upload_task import FileUploadAttempt, UploadPhase
from sku_uploader.file_parser import parse_and_validate


class RecordingTransport:
    """In-memory IMediaTransport that records every call in order."""

    def __init__(
        self,
        fail: Optional[Dict[Tuple[str, str], str]] = None,
        delays: Optional[Dict[str, float]] = None,
        delete_error: Optional[Exception] = None,
        reorder_error: Optional[Exception] = None,
        delete_delay: float = 0,
    ):
        self.calls: List[tuple] = []
        self.fail = fail or {}
        self.delays = delays or {}
        self.delete_error = delete_error
        self.reorder_error = reorder_error
        self.delete_delay = delete_delay

    def _check(self, step: str, filename: str) -> None:
        if (step, filename) in self.fail:
            raise TransportError(self.fail[(step, filename)])

    def methods(self) -> List[str]:
        return [call[0] for call in self.calls]

    def calls_to(self, method: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == method]

    async def create_target(self, filename, mime_type, size):
        self.calls.append(("create_target", filename))
        await asyncio.sleep(self.delays.get(filename, 0))
        self._check("create_target", filename)
        return StagedUploadTarget(
            url=f"https://upload.test/{filename}",
            resource_url=f"https://resource.test/{filename}",
            parameters=(("key", filename),),
        )

    async def upload(self, target, data, filename, mime_type):
        self.calls.append(("upload", filename))
        await asyncio.sleep(0)
        self._check("upload", filename)

    async def register_media(self, product_id, resource_url, alt_text=None):
        filename = resource_url.rsplit("/", 1)[-1]
        self.calls.append(("register_media", filename, product_id, alt_text))
        await asyncio.sleep(0)
        self._check("register_media", filename)
        return f"media-{filename}"

    async def delete_media(self, product_id, media_ids):
        self.calls.append(("delete_media", product_id, tuple(media_ids)))
        await asyncio.sleep(self.delete_delay)
        if self.delete_error:
            raise self.delete_error

    async def reorder_media(self, product_id, moves):
        self.calls.append(("reorder_media", product_id, tuple(moves)))
        if self.reorder_error:
            raise self.reorder_error


def _raw(filename, mime_type="image/jpeg"):
    return RawFile(filename=filename, data=b"img", mime_type=mime_type, size=3)


def _resolver(products: Dict[str, ProductRecord]):
    resolver = Mock()
    resolver.lookup = AsyncMock(return_value=products)
    return resolver


DRESS = ProductRecord(id="gid://Product/1", title="Summer Dress", media_ids=("old-1", "old-2"))
SHIRT = ProductRecord(id="gid://Product/2", title="Linen Shirt", media_ids=())


def _orchestrator(transport, products, width=5):
    return UploadOrchestrator(resolver=_resolver(products), transport=transport, pool=WorkerPool(width))


class TestResolutionAndDryRun:
    @pytest.mark.asyncio
    async def test_missing_product_skips_without_transport_calls(self):
        transport = RecordingTransport()
        orchestrator = _orchestrator(transport, {})

        result = await orchestrator.run(UploadSettings(), [_raw("GHOST-1.jpg"), _raw("GHOST-2.jpg")])

        assert [r.status for r in result.results] == [ProcessingStatus.SKIPPED] * 2
        assert all(r.product_found is False for r in result.results)
        assert result.results[0].error_details == "No product found with SKU: GHOST"
        assert transport.calls == []
        assert result.success is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("strategy", list(UploadStrategy))
    async def test_dry_run_never_touches_transport(self, strategy):
        transport = RecordingTransport()
        orchestrator = _orchestrator(transport, {"DRESS": DRESS})
        settings = UploadSettings(dry_run=True, upload_strategy=strategy, seo_optimization=True)

        result = await orchestrator.run(settings, [_raw("dress-1.jpg"), _raw("dress-2.jpg")])

        assert [r.status for r in result.results] == [ProcessingStatus.DRY_RUN] * 2
        first = result.results[0]
        assert first.product_found is True
        assert first.product_title == "Summer Dress"
        assert first.product_id == "gid://Product/1"
        assert transport.calls == []
        assert result.summary.dry_run == 2

    @pytest.mark.asyncio
    async def test_lookup_receives_unique_skus_once(self):
        transport = RecordingTransport()
        resolver = _resolver({})
        orchestrator = UploadOrchestrator(resolver=resolver, transport=transport)

        await orchestrator.run(UploadSettings(), [_raw("B-1.jpg"), _raw("A-1.jpg"), _raw("B-2.jpg")])

        resolver.lookup.assert_awaited_once_with(["B", "A"])

    @pytest.mark.asyncio
    async def test_no_valid_files_skips_lookup(self):
        resolver = _resolver({})
        orchestrator = UploadOrchestrator(resolver=resolver, transport=RecordingTransport())

        result = await orchestrator.run(UploadSettings(), [_raw("nope.jpg")])

        resolver.lookup.assert_not_awaited()
        assert result.summary.failed == 1
        assert result.success is False


class TestStrategies:
    @pytest.mark.asyncio
    async def test_replace_deletes_once_before_any_upload(self):
        transport = RecordingTransport()
        orchestrator = _orchestrator(transport, {"DRESS": DRESS})
        settings = UploadSettings(upload_strategy=UploadStrategy.REPLACE)

        result = await orchestrator.run(settings, [_raw("DRESS-2.jpg"), _raw("DRESS-1.jpg")])

        assert transport.calls_to("delete_media") == [("delete_media", "gid://Product/1", ("old-1", "old-2"))]
        assert transport.methods()[0] == "delete_media"
        assert result.summary.successful == 2
        assert transport.calls_to("reorder_media") == []

    @pytest.mark.asyncio
    async def test_replace_delete_failure_does_not_block_uploads(self):
        transport = RecordingTransport(delete_error=TransportError("Media deletion error: locked"))
        orchestrator = _orchestrator(transport, {"DRESS": DRESS})
        settings = UploadSettings(upload_strategy=UploadStrategy.REPLACE)

        result = await orchestrator.run(settings, [_raw("DRESS-1.jpg"), _raw("DRESS-2.jpg")])

        assert transport.methods()[0] == "delete_media"
        assert len(transport.calls_to("delete_media")) == 1
        assert [r.status for r in result.results] == [ProcessingStatus.SUCCESS] * 2
        assert all(r.error_details is None for r in result.results)

    @pytest.mark.asyncio
    async def test_replace_without_existing_media_skips_delete(self):
        transport = RecordingTransport()
        orchestrator = _orchestrator(transport, {"SHIRT": SHIRT})

        await orchestrator.run(UploadSettings(upload_strategy=UploadStrategy.REPLACE), [_raw("SHIRT-1.jpg")])

        assert transport.calls_to("delete_media") == []

    @pytest.mark.asyncio
    async def test_append_has_no_group_side_effects(self):
        transport = RecordingTransport()
        orchestrator = _orchestrator(transport, {"DRESS": DRESS})

        await orchestrator.run(UploadSettings(upload_strategy=UploadStrategy.APPEND), [_raw("DRESS-1.jpg")])

        assert transport.calls_to("delete_media") == []
        assert transport.calls_to("reorder_media") == []

    @pytest.mark.asyncio
    async def test_prepend_reorders_after_all_uploads_settle(self):
        transport = RecordingTransport(delays={"DRESS-1.jpg": 0.02})
        orchestrator = _orchestrator(transport, {"DRESS": DRESS})
        settings = UploadSettings(upload_strategy=UploadStrategy.PREPEND)

        await orchestrator.run(settings, [_raw("DRESS-2.jpg"), _raw("DRESS-1.jpg"), _raw("DRESS-3.jpg")])

        methods = transport.methods()
        assert methods[-1] == "reorder_media"
        assert methods.count("reorder_media") == 1
        assert transport.calls_to("reorder_media")[0] == (
            "reorder_media",
            "gid://Product/1",
            (
                MediaMove("media-DRESS-1.jpg", 0),
                MediaMove("media-DRESS-2.jpg", 1),
                MediaMove("media-DRESS-3.jpg", 2),
            ),
        )

    @pytest.mark.asyncio
    async def test_prepend_moves_only_successful_uploads(self):
        transport = RecordingTransport(fail={("upload", "DRESS-2.jpg"): "Failed to upload file: 403 Forbidden"})
        orchestrator = _orchestrator(transport, {"DRESS": DRESS})
        settings = UploadSettings(upload_strategy=UploadStrategy.PREPEND)

        await orchestrator.run(settings, [_raw("DRESS-1.jpg"), _raw("DRESS-2.jpg"), _raw("DRESS-3.jpg")])

        _, _, moves = transport.calls_to("reorder_media")[0]
        assert moves == (MediaMove("media-DRESS-1.jpg", 0), MediaMove("media-DRESS-3.jpg", 1))

    @pytest.mark.asyncio
    async def test_prepend_without_successes_or_existing_media_skips_reorder(self):
        failing = RecordingTransport(fail={("create_target", "DRESS-1.jpg"): "quota"})
        await _orchestrator(failing, {"DRESS": DRESS}).run(
            UploadSettings(upload_strategy=UploadStrategy.PREPEND), [_raw("DRESS-1.jpg")]
        )
        assert failing.calls_to("reorder_media") == []

        fresh = RecordingTransport()
        await _orchestrator(fresh, {"SHIRT": SHIRT}).run(
            UploadSettings(upload_strategy=UploadStrategy.PREPEND), [_raw("SHIRT-1.jpg")]
        )
        assert fresh.calls_to("reorder_media") == []

    @pytest.mark.asyncio
    async def test_reorder_failure_leaves_results_untouched(self):
        transport = RecordingTransport(reorder_error=TransportError("Media reorder error: busy"))
        orchestrator = _orchestrator(transport, {"DRESS": DRESS})

        result = await orchestrator.run(
            UploadSettings(upload_strategy=UploadStrategy.PREPEND), [_raw("DRESS-1.jpg")]
        )

        assert result.results[0].status is ProcessingStatus.SUCCESS
        assert result.success is True


class TestPerFileUploads:
    @pytest.mark.asyncio
    async def test_one_failure_does_not_affect_siblings(self):
        transport = RecordingTransport(fail={("register_media", "DRESS-2.jpg"): "Media creation error: bad image"})
        orchestrator = _orchestrator(transport, {"DRESS": DRESS})

        result = await orchestrator.run(
            UploadSettings(), [_raw("DRESS-1.jpg"), _raw("DRESS-2.jpg"), _raw("DRESS-3.jpg")]
        )

        statuses = [r.status for r in result.results]
        assert statuses == [ProcessingStatus.SUCCESS, ProcessingStatus.ERROR, ProcessingStatus.SUCCESS]
        failed = result.results[1]
        assert failed.error_details == "Media creation error: bad image"
        assert failed.product_found is True
        assert failed.product_title == "Summer Dress"
        assert result.success is False

    @pytest.mark.asyncio
    async def test_seo_alt_text(self):
        transport = RecordingTransport()
        orchestrator = _orchestrator(transport, {"DRESS": DRESS})
        settings = UploadSettings(
            seo_optimization=True,
            alt_text_by_position=AltTextByPosition({1: "Front"}),
        )

        await orchestrator.run(settings, [_raw("DRESS-1.jpg"), _raw("DRESS-2.jpg")])

        alt_texts = {call[1]: call[3] for call in transport.calls_to("register_media")}
        assert alt_texts == {
            "DRESS-1.jpg": "Summer Dress - Front",
            "DRESS-2.jpg": "Summer Dress - View 02",
        }

    @pytest.mark.asyncio
    async def test_no_alt_text_without_seo(self):
        transport = RecordingTransport()
        orchestrator = _orchestrator(transport, {"DRESS": DRESS})

        await orchestrator.run(UploadSettings(), [_raw("DRESS-1.jpg")])

        assert transport.calls_to("register_media")[0][3] is None

    @pytest.mark.asyncio
    async def test_pool_bounds_in_flight_uploads(self):
        transport = RecordingTransport(delays={f"A-{n}.jpg": 0.01 for n in range(1, 13)})
        orchestrator = _orchestrator(transport, {"A": SHIRT}, width=5)

        result = await orchestrator.run(UploadSettings(), [_raw(f"A-{n}.jpg") for n in range(1, 13)])

        assert result.summary.successful == 12
        assert orchestrator.pool.peak_in_flight == 5
        assert orchestrator.pool.in_flight == 0

    @pytest.mark.asyncio
    async def test_width_one_dispatches_in_sku_then_sort_order(self):
        transport = RecordingTransport()
        orchestrator = _orchestrator(transport, {"B": SHIRT, "A": SHIRT}, width=1)

        await orchestrator.run(UploadSettings(), [_raw("B-2.jpg"), _raw("A-1.jpg"), _raw("B-1.jpg")])

        assert [c[1] for c in transport.calls_to("create_target")] == ["B-1.jpg", "B-2.jpg", "A-1.jpg"]
        assert orchestrator.pool.peak_in_flight == 1

    @pytest.mark.asyncio
    async def test_slow_replace_delete_does_not_let_later_skus_jump_ahead(self):
        transport = RecordingTransport(delete_delay=0.05)
        orchestrator = _orchestrator(transport, {"A": DRESS, "B": SHIRT}, width=1)
        settings = UploadSettings(upload_strategy=UploadStrategy.REPLACE)

        await orchestrator.run(settings, [_raw("A-1.jpg"), _raw("A-2.jpg"), _raw("B-1.jpg")])

        assert [c[1] for c in transport.calls_to("create_target")] == ["A-1.jpg", "A-2.jpg", "B-1.jpg"]
        assert transport.methods()[0] == "delete_media"
        assert len(transport.calls_to("delete_media")) == 1


class TestAggregation:
    @pytest.mark.asyncio
    async def test_results_follow_submission_order_not_completion(self):
        transport = RecordingTransport(delays={"DRESS-1.jpg": 0.03, "SHIRT-1.jpg": 0.01})
        orchestrator = _orchestrator(transport, {"DRESS": DRESS, "SHIRT": SHIRT})

        result = await orchestrator.run(UploadSettings(), [
            _raw("SHIRT-1.jpg"),
            _raw("DRESS-2.jpg"),
            _raw("broken.jpg"),
            _raw("DRESS-1.jpg"),
            _raw("GHOST-1.jpg"),
            _raw("notes.txt", mime_type="text/plain"),
        ])

        assert [r.filename for r in result.results] == [
            "broken.jpg",
            "notes.txt",
            "SHIRT-1.jpg",
            "DRESS-1.jpg",
            "DRESS-2.jpg",
            "GHOST-1.jpg",
        ]
        assert result.results[0].status is ProcessingStatus.ERROR
        assert result.results[0].product_found is False
        assert result.results[0].detected_sku == ""

    @pytest.mark.asyncio
    async def test_summary_invariant_and_success_flag(self):
        transport = RecordingTransport(fail={("upload", "DRESS-2.jpg"): "boom"})
        orchestrator = _orchestrator(transport, {"DRESS": DRESS})

        result = await orchestrator.run(UploadSettings(), [
            _raw("DRESS-1.jpg"),
            _raw("DRESS-2.jpg"),
            _raw("GHOST-1.jpg"),
            _raw("bad.jpg"),
        ])

        summary = result.summary
        assert (summary.successful, summary.failed, summary.skipped, summary.dry_run) == (1, 2, 1, 0)
        assert summary.total == 4 == len(result.results)
        assert result.success is False
        assert result.to_dict()["summary"] == {
            "total": 4, "successful": 1, "failed": 2, "skipped": 1, "dryRun": 0,
        }

    @pytest.mark.asyncio
    async def test_progress_callback_sees_every_file(self):
        seen = []
        transport = RecordingTransport()
        orchestrator = _orchestrator(transport, {"DRESS": DRESS})

        def explode(result):
            seen.append(result.filename)
            raise RuntimeError("display broke")

        result = await orchestrator.run(
            UploadSettings(), [_raw("DRESS-1.jpg"), _raw("GHOST-1.jpg"), _raw("bad.jpg")],
            progress_callback=explode,
        )

        assert sorted(seen) == ["DRESS-1.jpg", "GHOST-1.jpg", "bad.jpg"]
        assert result.summary.successful == 1

    @pytest.mark.asyncio
    async def test_pattern_analysis_is_attached(self):
        orchestrator = _orchestrator(RecordingTransport(), {})

        result = await orchestrator.run(UploadSettings(dry_run=True), [
            _raw("A-1.jpg"), _raw("A-2.jpg"),
            _raw("B-1.jpg"), _raw("B-2.jpg"),
            _raw("C-1.jpg"),
        ])

        assert [w.sku for w in result.pattern_analysis.warnings] == ["C"]
        assert "patternAnalysis" in result.to_dict()


class TestFileUploadAttempt:
    @pytest.mark.asyncio
    async def test_happy_path_walks_every_phase(self):
        parsed = parse_and_validate(_raw("DRESS-1.jpg"))
        attempt = FileUploadAttempt(parsed, DRESS, UploadSettings(), RecordingTransport())

        media_id = await attempt.run()

        assert media_id == "media-DRESS-1.jpg"
        assert attempt.history == [
            UploadPhase.REQUESTED,
            UploadPhase.STAGED_TARGET_READY,
            UploadPhase.BYTES_UPLOADED,
            UploadPhase.MEDIA_REGISTERED,
        ]
        assert attempt.finished is True

    @pytest.mark.asyncio
    async def test_failure_records_failing_phase(self):
        parsed = parse_and_validate(_raw("DRESS-1.jpg"))
        transport = RecordingTransport(fail={("upload", "DRESS-1.jpg"): "Failed to upload file: 500"})
        attempt = FileUploadAttempt(parsed, DRESS, UploadSettings(), transport)

        with pytest.raises(TransportError):
            await attempt.run()

        assert attempt.phase is UploadPhase.ERROR
        assert attempt.failed_in is UploadPhase.STAGED_TARGET_READY
        assert transport.calls_to("register_media") == []

    @pytest.mark.asyncio
    async def test_attempt_runs_once(self):
        parsed = parse_and_validate(_raw("DRESS-1.jpg"))
        attempt = FileUploadAttempt(parsed, DRESS, UploadSettings(), RecordingTransport())
        await attempt.run()

        with pytest.raises(RuntimeError, match="already ran"):
            await attempt.run()
