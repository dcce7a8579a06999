"""Per-product upload handling: strategy, pool dispatch, group side effects."""
import asyncio
import logging
from typing import Callable, List, Optional, Sequence

from ..errors import describe_exception
from ..models import (
    MediaMove,
    ParsedFile,
    ProcessingResult,
    ProductRecord,
    UploadSettings,
    UploadStrategy,
)
from ..protocols import IMediaTransport
from .pool import TaskOutcome, WorkerPool
from .upload_task import FileUploadAttempt, split_attempts

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProcessingResult], None]


def notify(progress_callback: Optional[ProgressCallback], result: ProcessingResult) -> None:
    """Invoke a progress hook; its failures are logged and otherwise ignored."""
    if progress_callback is None:
        return
    try:
        progress_callback(result)
    except Exception as e:
        logger.error(f"Error in progress callback for {result.filename}: {e}")


def _resolved(results: List[ProcessingResult]) -> "asyncio.Future[List[ProcessingResult]]":
    future = asyncio.get_running_loop().create_future()
    future.set_result(results)
    return future


class ProductUploadHandler:
    """
    Applies the configured strategy to one SKU group at a time.

    Upload tasks from every group share the same WorkerPool; delete and
    reorder calls run outside it. A group's uploads are queued on the pool
    before `dispatch_group` returns, so dispatching groups one after another
    keeps pool submissions in SKU-then-sort order.
    """

    def __init__(
        self,
        transport: IMediaTransport,
        pool: WorkerPool,
        settings: UploadSettings,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self._transport = transport
        self._pool = pool
        self._settings = settings
        self._progress_callback = progress_callback

    async def process_group(
        self,
        sku: str,
        files: Sequence[ParsedFile],
        product: Optional[ProductRecord],
    ) -> List[ProcessingResult]:
        """Results for one SKU group, in the group's file order."""
        settled = await self.dispatch_group(sku, files, product)
        return await settled

    async def dispatch_group(
        self,
        sku: str,
        files: Sequence[ParsedFile],
        product: Optional[ProductRecord],
    ) -> "asyncio.Future[List[ProcessingResult]]":
        """
        Start one SKU group and return a future for its results.

        Skipped and dry-run groups resolve immediately. Upload groups run the
        replace pre-delete first, then queue every file on the pool.
        """
        if product is None:
            logger.info(f"Skipping {len(files)} file(s): no product found with SKU {sku}")
            return _resolved(self._emit_all([ProcessingResult.skipped(f) for f in files]))

        if self._settings.dry_run:
            logger.info(f"Dry run: {len(files)} file(s) would go to {product.title} ({product.id})")
            return _resolved(self._emit_all([ProcessingResult.dry_run(f, product) for f in files]))

        strategy = self._settings.upload_strategy
        if strategy is UploadStrategy.REPLACE and product.has_media:
            await self._delete_existing(product)

        attempts = [
            FileUploadAttempt(parsed, product, self._settings, self._transport)
            for parsed in sorted(files, key=lambda f: f.sort_order)
        ]
        logger.info(f"[{sku}] Dispatching {len(attempts)} upload(s) ({strategy.value})")

        # Tasks start in creation order, so pool slots are requested in this order
        pending = [asyncio.ensure_future(self._run_attempt(a)) for a in attempts]
        return asyncio.ensure_future(self._settle_group(product, attempts, pending))

    def _emit_all(self, results: List[ProcessingResult]) -> List[ProcessingResult]:
        for result in results:
            notify(self._progress_callback, result)
        return results

    async def _settle_group(
        self,
        product: ProductRecord,
        attempts: List[FileUploadAttempt],
        pending: List["asyncio.Future[ProcessingResult]"],
    ) -> List[ProcessingResult]:
        # Barrier: every upload in this group settles before any reorder
        results = list(await asyncio.gather(*pending))

        if self._settings.upload_strategy is UploadStrategy.PREPEND and product.has_media:
            await self._move_new_media_first(product, attempts)

        return results

    async def _run_attempt(self, attempt: FileUploadAttempt) -> ProcessingResult:
        parsed = attempt.parsed
        outcome: TaskOutcome[str] = await self._pool.submit(attempt.run, label=parsed.original_filename)

        if outcome.ok:
            result = ProcessingResult.success(parsed, attempt.product)
        else:
            logger.error(f"Error uploading {parsed.original_filename}: {outcome.error}")
            result = ProcessingResult.error(parsed, attempt.product, outcome.error)

        notify(self._progress_callback, result)
        return result

    async def _delete_existing(self, product: ProductRecord) -> None:
        try:
            await self._transport.delete_media(product.id, list(product.media_ids))
        except Exception as e:
            logger.error(f"Failed to delete existing media for {product.id}: {describe_exception(e)}")

    async def _move_new_media_first(self, product: ProductRecord, attempts: List[FileUploadAttempt]) -> None:
        registered, _ = split_attempts(attempts)
        if not registered:
            return

        moves = [
            MediaMove(media_id=attempt.media_id, new_position=position)
            for position, attempt in enumerate(registered)
        ]
        try:
            await self._transport.reorder_media(product.id, moves)
        except Exception as e:
            logger.error(f"Failed to reorder media for {product.id}: {describe_exception(e)}")
