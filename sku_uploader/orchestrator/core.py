"""Core orchestrator - coordinates a whole bulk image run."""
import asyncio
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import httpx

from ..file_parser import get_unique_skus, group_files_by_sku, parse_files
from ..models import ParsedFile, ProcessingResult, ProductRecord, RawFile, RunResult, ShopifyConfig, UploadSettings
from ..protocols import IMediaTransport, IProductResolver
from ..services.api_client import GraphQLClient
from ..services.media_transport import ShopifyMediaTransport
from ..services.pattern_analyzer import analyze_image_pattern
from ..services.product_resolver import ProductResolver
from .pool import WorkerPool
from .product_upload import ProductUploadHandler, ProgressCallback, notify
from .results import build_run_result

logger = logging.getLogger(__name__)


class UploadOrchestrator:
    """
    Matches image files to products by SKU and uploads them.

    Services can be injected directly, or built from a ShopifyConfig
    inside the async context.

    Usage:
        async with UploadOrchestrator(ShopifyConfig.from_env()) as orchestrator:
            result = await orchestrator.run(settings, raw_files)

        # With injected collaborators (no context needed)
        orchestrator = UploadOrchestrator(resolver=resolver, transport=transport, pool=WorkerPool(1))
        result = await orchestrator.run(settings, raw_files)
    """

    def __init__(
        self,
        config: Optional[ShopifyConfig] = None,
        resolver: Optional[IProductResolver] = None,
        transport: Optional[IMediaTransport] = None,
        pool: Optional[WorkerPool] = None,
    ):
        self._config = config
        self._resolver = resolver
        self._transport = transport
        self._pool = pool or WorkerPool()

        # Owned clients (created in __aenter__ when not injected)
        self._graphql: Optional[GraphQLClient] = None
        self._http: Optional[httpx.AsyncClient] = None

    @property
    def pool(self) -> WorkerPool:
        return self._pool

    async def __aenter__(self):
        if self._resolver is None or self._transport is None:
            if self._config is None:
                raise ValueError("Either a ShopifyConfig or both resolver and transport must be provided")
            self._graphql = GraphQLClient(self._config)
            await self._graphql.__aenter__()

        if self._resolver is None:
            self._resolver = ProductResolver(self._graphql)
        if self._transport is None:
            self._http = httpx.AsyncClient(timeout=self._config.timeout)
            self._transport = ShopifyMediaTransport(self._graphql, self._http)
        return self

    async def __aexit__(self, *args):
        if self._http:
            await self._http.aclose()
        if self._graphql:
            await self._graphql.__aexit__(*args)

    async def run(
        self,
        settings: UploadSettings,
        raw_files: Iterable[RawFile],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> RunResult:
        """Parse, analyze, resolve and upload; one ProcessingResult per input file."""
        assert self._resolver is not None and self._transport is not None

        parsed = parse_files(raw_files)
        valid = [p for p in parsed if p.is_valid]
        invalid_results = [ProcessingResult.invalid(p) for p in parsed if not p.is_valid]
        for result in invalid_results:
            notify(progress_callback, result)

        logger.info(f"Parsed {len(parsed)} file(s): {len(valid)} valid, {len(invalid_results)} invalid")

        analysis = analyze_image_pattern(valid)
        grouped = group_files_by_sku(valid)

        products: Dict[str, ProductRecord] = {}
        if grouped:
            products = await self._resolver.lookup(get_unique_skus(valid))
            logger.info(f"Resolved {len(products)}/{len(grouped)} SKU(s)")

        group_results = await self.process_queue(grouped, products, settings, progress_callback)
        run_result = build_run_result(invalid_results, group_results, analysis)

        summary = run_result.summary
        logger.info(
            f"Run complete: {summary.total} file(s), {summary.successful} successful, "
            f"{summary.failed} failed, {summary.skipped} skipped, {summary.dry_run} dry-run"
        )
        return run_result

    async def process_queue(
        self,
        grouped: Mapping[str, Sequence[ParsedFile]],
        products: Mapping[str, ProductRecord],
        settings: UploadSettings,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[List[ProcessingResult]]:
        """
        Process every SKU group; returns one result list per group, in SKU order.

        Groups are dispatched one at a time in SKU order (a replace group's
        delete finishes before its uploads, and before any later group's
        uploads, are queued). Queued uploads from all groups then share the
        pool; completion order does not affect the returned order.
        """
        assert self._transport is not None

        handler = ProductUploadHandler(self._transport, self._pool, settings, progress_callback)
        dispatched = []
        for sku, files in grouped.items():
            dispatched.append(await handler.dispatch_group(sku, files, products.get(sku)))
        return list(await asyncio.gather(*dispatched))
