"""
Sui Price Oracle - Publish Pipeline Module

This module publishes averaged exchange prices to Sui price records:
- PriceAggregator: Mean of the present per-source samples
- AssetRegistry: Durable symbol -> record id map with on-demand creation
- TransactionBuilder: BCS encoded create and update transactions
- Signer: Ed25519 transaction signing under the Sui intent scope
- SubmissionGateway: Execution and outcome classification
- PriceOracle: Main orchestrator for the per-asset publish pipeline
- fetchers: Exchange price fetcher implementations
"""

from .AssetRegistry import AssetRegistry, InMemoryRegistryStore, JsonFileRegistryStore
from .errors import OracleError
from .PriceAggregator import AggregatedPrice, PriceAggregator, PriceSample
from .PriceOracle import PriceOracle, PublishResult, PublishStage, PublishStatus
from .Settings import Settings
from .Signer import Signer
from .SubmissionGateway import SubmissionGateway, TransactionOutcome
from .TransactionBuilder import NUM_DECIMALS, TransactionBuilder, scale_price

__all__ = [
    "AggregatedPrice",
    "AssetRegistry",
    "InMemoryRegistryStore",
    "JsonFileRegistryStore",
    "NUM_DECIMALS",
    "OracleError",
    "PriceAggregator",
    "PriceOracle",
    "PriceSample",
    "PublishResult",
    "PublishStage",
    "PublishStatus",
    "Settings",
    "Signer",
    "SubmissionGateway",
    "TransactionBuilder",
    "TransactionOutcome",
    "scale_price",
]
