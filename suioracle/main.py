#!/usr/bin/env python3
"""Sui Price Oracle.

Fetches spot prices from exchanges, averages them per asset and publishes
the result to PriceObject records of the price_oracle Move module on Sui.

Configuration comes from config/default.toml, config/local.toml and
environment variables. See config/default.toml for all settings.
"""

import argparse
import asyncio
import dataclasses
import logging
import sys

from .src.AssetRegistry import AssetRegistry, JsonFileRegistryStore
from .src.errors import ConfigError
from .src.FetchCoordinator import FetchCoordinator
from .src.fetchers import get_available_fetchers, get_fetcher
from .src.PriceOracle import PriceOracle
from .src.RecordCreator import RecordCreator
from .src.Settings import DEFAULT_CONFIG_DIR, Settings
from .src.Signer import Signer
from .src.SubmissionGateway import SubmissionGateway
from .src.SuiRpcClient import SuiRpcClient
from .src.TransactionBuilder import NUM_DECIMALS, TransactionBuilder

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def apply_cli_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Return ``settings`` with the command line values applied.

    :param settings: Settings loaded from files and environment.
    :param args: Parsed command line arguments.
    :returns: Settings with CLI values taking precedence.
    """
    chain_overrides = {
        "rpc_url": args.rpc_url,
        "package_id": args.package_id,
        "keystore_path": args.keystore,
        "registry_path": args.registry,
    }
    chain_overrides = {k: v for k, v in chain_overrides.items() if v is not None}
    if args.production:
        chain_overrides["production"] = True

    chain = dataclasses.replace(settings.chain, **chain_overrides)
    # Re-validate addresses and types through the same path as the files
    Settings._chain_from_dict(
        {k: v for k, v in dataclasses.asdict(chain).items() if v is not None}
    )

    interval = settings.fetch_interval_seconds
    if args.interval is not None:
        if args.interval < 1:
            raise ConfigError("--interval must be at least 1 second")
        interval = args.interval

    return dataclasses.replace(settings, chain=chain, fetch_interval_seconds=interval)


def build_oracle(settings: Settings, signer: Signer, rpc: SuiRpcClient) -> PriceOracle:
    """Wire all pipeline components together.

    :param settings: Validated settings.
    :param signer: Loaded signer.
    :param rpc: Chain RPC client.
    :returns: Ready to run oracle.
    """
    chain = settings.chain
    fetchers = {
        name: get_fetcher(
            name,
            base_url=api.base_url,
            symbols=list(api.symbols),
            timeout=settings.fetch_timeout_seconds,
        )
        for name, api in settings.apis.items()
    }
    coordinator = FetchCoordinator(fetchers, fetch_timeout=settings.fetch_timeout_seconds)

    builder = TransactionBuilder(
        rpc,
        sender=signer.address,
        package_id=chain.package_id,
        module_name=chain.module_name,
        gas_budget=chain.gas_budget,
    )
    gateway = SubmissionGateway(
        rpc,
        owner=signer.address,
        package_id=chain.package_id,
        module_name=chain.module_name,
        type_name=chain.record_type_name,
    )
    creator = RecordCreator(builder, signer, gateway, decimals=NUM_DECIMALS)
    registry = AssetRegistry(
        JsonFileRegistryStore(chain.registry_path),
        creator,
        reconcile=chain.reconcile_registry,
    )
    return PriceOracle(
        coordinator=coordinator,
        registry=registry,
        builder=builder,
        signer=signer,
        gateway=gateway,
        fetch_interval=settings.fetch_interval_seconds,
    )


async def run_oracle(settings: Settings, signer: Signer, max_cycles: int | None) -> None:
    rpc = SuiRpcClient(settings.chain.rpc_url)
    try:
        oracle = build_oracle(settings, signer, rpc)
        await oracle.run(max_cycles=max_cycles)
    finally:
        await rpc.close()


def log_banner(settings: Settings, signer: Signer) -> None:
    chain = settings.chain
    logger.info("=" * 60)
    logger.info("Sui Price Oracle")
    logger.info("=" * 60)
    logger.info(f"RPC URL:           {chain.rpc_url}")
    logger.info(f"Package:           {chain.package_id}")
    logger.info(f"Record Type:       {chain.module_name}::{chain.record_type_name}")
    logger.info(f"Signer:            {signer.address}")
    logger.info(f"Registry:          {chain.registry_path}")
    for name, api in settings.apis.items():
        logger.info(f"Source {name + ':':<12}{', '.join(api.symbols)}")
    logger.info(f"Fetch Interval:    {settings.fetch_interval_seconds}s")
    logger.info(f"Fetch Timeout:     {settings.fetch_timeout_seconds}s")
    logger.info(f"Mode:              {'production' if chain.production else 'development'}")
    logger.info("=" * 60)


def main() -> None:
    """Main entry point for the Sui Price Oracle CLI."""
    parser = argparse.ArgumentParser(
        description="Sui Price Oracle: Averaged exchange prices published on Sui",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available price sources:
  {', '.join(get_available_fetchers())}

Examples:
  # Run with config/default.toml (and config/local.toml if present)
  python -m suioracle.main

  # Publish once and exit
  python -m suioracle.main --once

  # Production mode with an explicit key file
  python -m suioracle.main --production --keystore /secrets/sui.keystore

Environment variables (CLI args take precedence):
  SUI_RPC_URL, SUI_PACKAGE_ID, SUI_KEYSTORE, SUI_EXPECTED_ADDRESS,
  REGISTRY_PATH, FETCH_INTERVAL, ORACLE_PRODUCTION
""",
    )

    parser.add_argument(
        "--config-dir",
        dest="config_dir",
        type=str,
        help="Directory with default.toml and local.toml (default: config)",
        default=DEFAULT_CONFIG_DIR,
    )

    parser.add_argument(
        "--rpc-url",
        dest="rpc_url",
        type=str,
        help="Sui full node JSON-RPC URL",
    )

    parser.add_argument(
        "--package-id",
        dest="package_id",
        type=str,
        help="Package id of the deployed price_oracle module",
    )

    parser.add_argument(
        "--keystore",
        type=str,
        help="Key file; the first line holds the private key",
    )

    parser.add_argument(
        "--registry",
        type=str,
        help="Registry JSON file mapping symbols to record ids",
    )

    parser.add_argument(
        "--interval",
        type=int,
        help="Seconds between publish cycles (minimum: 1)",
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single publish cycle and exit",
    )

    parser.add_argument(
        "--production",
        action="store_true",
        help="Refuse to start without a key file",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        settings = apply_cli_overrides(Settings.load(args.config_dir), args)
        signer = Signer.from_keyfile(
            settings.chain.keystore_path,
            production=settings.chain.production,
            expected_address=settings.chain.expected_address,
        )
    except ConfigError as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)

    log_banner(settings, signer)

    try:
        asyncio.run(run_oracle(settings, signer, max_cycles=1 if args.once else None))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
