"""PriceOracle: Orchestrates the per-asset publish pipeline.

Every cycle fetches all sources once, then runs one independent pipeline
per asset:

    AGGREGATING -> RESOLVING -> BUILDING -> SIGNING -> SUBMITTING
        -> PUBLISHED | SKIPPED | FAILED

Architecture:
    - Pipelines of different assets run as concurrent tasks
    - Stages of one pipeline run strictly in order
    - An asset without any sample is SKIPPED, which is not an error
    - Any failure ends that asset's pipeline as FAILED with the failing stage
      recorded; other assets and later cycles are unaffected
    - There is no retry inside a cycle; the next cycle is the retry
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .AssetRegistry import AssetRegistry
from .errors import OracleError
from .FetchCoordinator import FetchCoordinator
from .fetchers import BaseFetcher
from .PriceAggregator import AggregatedPrice, PriceAggregator, PriceSample
from .Signer import Signer
from .SubmissionGateway import SubmissionGateway
from .TransactionBuilder import NUM_DECIMALS, TransactionBuilder, scale_price

logger = logging.getLogger(__name__)


class PublishStage(str, Enum):
    """Pipeline stage of one asset."""

    AGGREGATING = "aggregating"
    RESOLVING = "resolving"
    BUILDING = "building"
    SIGNING = "signing"
    SUBMITTING = "submitting"


class PublishStatus(str, Enum):
    """Terminal state of one asset's pipeline."""

    PUBLISHED = "published"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class PublishResult:
    """Outcome of one asset's pipeline in one cycle.

    :ivar asset_symbol: Asset symbol.
    :ivar status: Terminal state.
    :ivar stage: Last stage entered (the failing stage for FAILED).
    :ivar aggregated: Aggregated price, if aggregation produced one.
    :ivar record_id: Record id, once resolved.
    :ivar scaled_price: Price as submitted on chain.
    :ivar digest: Transaction digest when PUBLISHED.
    :ivar error: The error when FAILED.
    """

    asset_symbol: str
    status: PublishStatus
    stage: PublishStage
    aggregated: AggregatedPrice | None = None
    record_id: str | None = None
    scaled_price: int | None = None
    digest: str | None = None
    error: Exception | None = None


class PriceOracle:
    """Main orchestrator for publishing aggregated prices on Sui.

    All collaborators are injected so tests can substitute fakes.

    :ivar coordinator: Fetches samples from all sources.
    :ivar registry: Symbol -> record id registry.
    :ivar builder: Transaction builder.
    :ivar signer: Transaction signer.
    :ivar gateway: Submission gateway.
    :ivar fetch_interval: Seconds between cycles.
    :ivar decimals: Decimals of the on-chain price.
    """

    def __init__(
        self,
        coordinator: FetchCoordinator,
        registry: AssetRegistry,
        builder: TransactionBuilder,
        signer: Signer,
        gateway: SubmissionGateway,
        fetch_interval: int = 10,
        aggregator: PriceAggregator | None = None,
        decimals: int = NUM_DECIMALS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the price oracle.

        :param coordinator: Fetch coordinator.
        :param registry: Asset registry.
        :param builder: Transaction builder.
        :param signer: Transaction signer.
        :param gateway: Submission gateway.
        :param fetch_interval: Seconds between cycles (minimum: 1, default: 10).
        :param aggregator: Sample aggregator (default: mean aggregator).
        :param decimals: Decimals of the on-chain price (default: 6).
        :param clock: Returns seconds since epoch; used for timestamps.
        """
        self.coordinator = coordinator
        self.registry = registry
        self.builder = builder
        self.signer = signer
        self.gateway = gateway
        self.fetch_interval = max(1, fetch_interval)
        self.aggregator = aggregator or PriceAggregator()
        self.decimals = decimals
        self.clock = clock

    async def publish_asset(
        self, asset_symbol: str, samples: list[PriceSample]
    ) -> PublishResult:
        """Run the publish pipeline for one asset.

        Never raises; failures are reported in the returned result.

        :param asset_symbol: Asset to publish.
        :param samples: All samples of the cycle.
        :returns: Terminal result of the pipeline.
        """
        result = PublishResult(
            asset_symbol=asset_symbol,
            status=PublishStatus.FAILED,
            stage=PublishStage.AGGREGATING,
        )
        try:
            aggregated = self.aggregator.aggregate(asset_symbol, samples)
            if aggregated is None:
                logger.info(f"{asset_symbol}: No price data, skipping publish")
                result.status = PublishStatus.SKIPPED
                return result
            result.aggregated = aggregated
            logger.info(
                f"{asset_symbol}: ${aggregated.value:.6f} "
                f"(mean of {aggregated.contributing_count} sources)"
            )

            result.stage = PublishStage.RESOLVING
            result.record_id = await self.registry.resolve_or_create(asset_symbol)

            async with self.builder.gas_lock:
                result.stage = PublishStage.BUILDING
                result.scaled_price = scale_price(aggregated.value, self.decimals)
                timestamp_ms = int(self.clock() * 1000)
                tx = await self.builder.build_update(
                    result.record_id, result.scaled_price, timestamp_ms
                )

                result.stage = PublishStage.SIGNING
                signature = self.signer.sign(tx.tx_bytes)

                result.stage = PublishStage.SUBMITTING
                outcome = await self.gateway.submit(tx.tx_bytes, signature)

        except OracleError as e:
            result.error = e
            logger.error(
                f"{asset_symbol}: Publish failed at {result.stage.value} "
                f"({type(e).__name__}): {e}"
            )
            return result
        except Exception as e:  # Defensive: keep other assets running
            result.error = e
            logger.exception(
                f"{asset_symbol}: Unexpected error at {result.stage.value}: {e}"
            )
            return result

        result.status = PublishStatus.PUBLISHED
        result.digest = outcome.digest
        logger.info(
            f"{asset_symbol}: Published price {result.scaled_price} to "
            f"{result.record_id}. Digest: {outcome.digest}"
        )
        return result

    async def run_cycle(self) -> list[PublishResult]:
        """Fetch all sources once and publish every asset.

        :returns: One result per configured asset.
        """
        samples = await self.coordinator.fetch_all()
        for sample in samples:
            if sample.price is None:
                logger.info(f"[{sample.source_id}] {sample.asset_symbol}: no price")
            else:
                logger.info(
                    f"[{sample.source_id}] {sample.asset_symbol}: ${sample.price:.6f}"
                )

        results = await asyncio.gather(
            *(
                self.publish_asset(asset, samples)
                for asset in self.coordinator.assets
            )
        )

        counts = {status: 0 for status in PublishStatus}
        for result in results:
            counts[result.status] += 1
        logger.info(
            f"Cycle finished: {counts[PublishStatus.PUBLISHED]} published, "
            f"{counts[PublishStatus.SKIPPED]} skipped, "
            f"{counts[PublishStatus.FAILED]} failed"
        )
        return list(results)

    async def run(self, max_cycles: int | None = None) -> None:
        """Run publish cycles every ``fetch_interval`` seconds.

        :param max_cycles: Stop after this many cycles (default: run forever).
        """
        logger.info(
            f"Starting publish loop for {self.coordinator.assets} "
            f"as {self.signer.address}, every {self.fetch_interval}s"
        )
        cycle = 0
        try:
            while max_cycles is None or cycle < max_cycles:
                cycle += 1
                try:
                    await self.run_cycle()
                except Exception as e:  # Defensive: the loop must survive
                    logger.exception(f"Cycle {cycle} failed: {e}")
                if max_cycles is None or cycle < max_cycles:
                    await asyncio.sleep(self.fetch_interval)
        finally:
            # Clean up shared HTTP client
            await BaseFetcher.close_shared_client()
