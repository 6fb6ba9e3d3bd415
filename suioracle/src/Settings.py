"""Settings: Process configuration loaded once at startup.

Configuration lives in TOML files. ``config/default.toml`` is required and
``config/local.toml`` (optional) is merged over it, table by table::

    [apis.binance]
    base_url = "https://api.binance.com/api/v3"
    symbols = ["BTCUSDT", "ETHUSDT"]

    [apis.coinbase]
    base_url = "https://api.exchange.coinbase.com"
    symbols = ["BTC-USD", "ETH-USD"]

    [general]
    fetch_interval_seconds = 10

    [sui]
    rpc_url = "https://fullnode.testnet.sui.io:443"
    package_id = "0x..."

Environment variables override file values (see :data:`ENV_OVERRIDES`);
command line arguments override both. Every problem is a ConfigError.
"""

from __future__ import annotations

import dataclasses
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .AssetRegistry import DEFAULT_REGISTRY_PATH
from .bcs import normalize_address
from .errors import ConfigError, EncodingError
from .SuiRpcClient import SUI_TESTNET_RPC_URL
from .TransactionBuilder import GAS_BUDGET, MODULE_NAME, RECORD_TYPE_NAME

DEFAULT_CONFIG_DIR = "config"

DEFAULT_PACKAGE_ID = "0xe99f0a2f17480d0859a5eb3c565a9f6ea3cbe4a7dec819dbacdb37f5ee33f482"
DEFAULT_KEYSTORE_PATH = "sui_config/sui.keystore"

# Environment variable -> (section, key, parser)
ENV_OVERRIDES: dict[str, tuple[str, str, type]] = {
    "SUI_RPC_URL": ("sui", "rpc_url", str),
    "SUI_PACKAGE_ID": ("sui", "package_id", str),
    "SUI_KEYSTORE": ("sui", "keystore_path", str),
    "SUI_EXPECTED_ADDRESS": ("sui", "expected_address", str),
    "REGISTRY_PATH": ("sui", "registry_path", str),
    "ORACLE_PRODUCTION": ("sui", "production", bool),
    "FETCH_INTERVAL": ("general", "fetch_interval_seconds", int),
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``, recursing into tables."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _parse_env_value(name: str, raw: str, parser: type) -> Any:
    if parser is bool:
        lowered = raw.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ConfigError(f"{name} must be a boolean, got {raw!r}")
    if parser is int:
        try:
            return int(raw)
        except ValueError as e:
            raise ConfigError(f"{name} must be an integer, got {raw!r}") from e
    return raw


def _require(table: Mapping[str, Any], key: str, kind: type | tuple[type, ...], where: str) -> Any:
    if key not in table:
        raise ConfigError(f"Missing '{key}' in [{where}]")
    value = table[key]
    # bool is an int subclass; never accept it where a number is expected
    if isinstance(value, bool) and kind is not bool:
        raise ConfigError(f"'{key}' in [{where}] has invalid type bool")
    if not isinstance(value, kind):
        raise ConfigError(
            f"'{key}' in [{where}] has invalid type {type(value).__name__}"
        )
    return value


@dataclass(frozen=True)
class ExchangeSettings:
    """Connection settings of one exchange.

    :ivar base_url: API root URL.
    :ivar symbols: Exchange symbols to fetch.
    """

    base_url: str
    symbols: tuple[str, ...]


@dataclass(frozen=True)
class ChainSettings:
    """Sui network and contract settings.

    :ivar rpc_url: Full node JSON-RPC URL.
    :ivar package_id: Package id of the deployed price_oracle module.
    :ivar module_name: Module exposing the price functions.
    :ivar record_type_name: Struct name of the price record.
    :ivar keystore_path: Key file path.
    :ivar registry_path: Registry JSON file path.
    :ivar gas_budget: Gas budget per transaction in MIST.
    :ivar expected_address: Address the key must derive, if set.
    :ivar production: Refuse to run with an ephemeral key.
    :ivar reconcile_registry: Scan the chain before creating a record.
    """

    rpc_url: str = SUI_TESTNET_RPC_URL
    package_id: str = DEFAULT_PACKAGE_ID
    module_name: str = MODULE_NAME
    record_type_name: str = RECORD_TYPE_NAME
    keystore_path: str = DEFAULT_KEYSTORE_PATH
    registry_path: str = DEFAULT_REGISTRY_PATH
    gas_budget: int = GAS_BUDGET
    expected_address: str | None = None
    production: bool = False
    reconcile_registry: bool = True


@dataclass(frozen=True)
class Settings:
    """Complete process configuration.

    :ivar apis: Exchange settings keyed by fetcher name.
    :ivar fetch_interval_seconds: Seconds between publish cycles.
    :ivar fetch_timeout_seconds: Timeout for one source's fetch.
    :ivar chain: Sui settings.
    """

    apis: dict[str, ExchangeSettings]
    fetch_interval_seconds: int
    fetch_timeout_seconds: float = 10.0
    chain: ChainSettings = field(default_factory=ChainSettings)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Settings:
        """Build and validate settings from a parsed configuration mapping.

        :param data: Mapping with ``apis``, ``general`` and optional ``sui``.
        :returns: Validated settings.
        :raises ConfigError: On missing keys, wrong types or invalid values.
        """
        apis_table = _require(data, "apis", Mapping, "root")
        if not apis_table:
            raise ConfigError("At least one exchange must be configured in [apis]")

        apis: dict[str, ExchangeSettings] = {}
        for name, table in apis_table.items():
            where = f"apis.{name}"
            if not isinstance(table, Mapping):
                raise ConfigError(f"[{where}] must be a table")
            base_url = _require(table, "base_url", str, where)
            symbols = _require(table, "symbols", list, where)
            if not all(isinstance(s, str) and s for s in symbols):
                raise ConfigError(f"'symbols' in [{where}] must be non-empty strings")
            apis[name] = ExchangeSettings(base_url=base_url, symbols=tuple(symbols))

        general = _require(data, "general", Mapping, "root")
        interval = _require(general, "fetch_interval_seconds", int, "general")
        if interval < 1:
            raise ConfigError("fetch_interval_seconds must be at least 1")
        timeout = general.get("fetch_timeout_seconds", 10.0)
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigError("fetch_timeout_seconds must be a positive number")

        chain = cls._chain_from_dict(data.get("sui", {}))
        return cls(
            apis=apis,
            fetch_interval_seconds=interval,
            fetch_timeout_seconds=float(timeout),
            chain=chain,
        )

    @staticmethod
    def _chain_from_dict(table: Any) -> ChainSettings:
        if not isinstance(table, Mapping):
            raise ConfigError("[sui] must be a table")
        defaults = ChainSettings()
        known = {f.name: f for f in dataclasses.fields(ChainSettings)}
        unknown = set(table) - set(known)
        if unknown:
            raise ConfigError(f"Unknown keys in [sui]: {sorted(unknown)}")

        values: dict[str, Any] = {}
        for name in known:
            if name not in table:
                continue
            default = getattr(defaults, name)
            kind = type(default) if default is not None else str
            values[name] = _require(table, name, kind, "sui")

        chain = dataclasses.replace(defaults, **values)
        try:
            normalize_address(chain.package_id)
            if chain.expected_address is not None:
                normalize_address(chain.expected_address)
        except EncodingError as e:
            raise ConfigError(f"Invalid address in [sui]: {e}") from e
        if chain.gas_budget <= 0:
            raise ConfigError("gas_budget must be positive")
        return chain

    @classmethod
    def load(
        cls,
        config_dir: str | Path = DEFAULT_CONFIG_DIR,
        environ: Mapping[str, str] | None = None,
    ) -> Settings:
        """Load ``default.toml`` and ``local.toml`` from ``config_dir``.

        :param config_dir: Directory holding the TOML files.
        :param environ: Environment used for overrides (default: os.environ).
        :returns: Validated settings.
        :raises ConfigError: If the default file is missing or any file or
            value is invalid.
        """
        config_dir = Path(config_dir)
        default_path = config_dir / "default.toml"
        if not default_path.exists():
            raise ConfigError(f"Configuration file {default_path} not found")

        data = cls._read_toml(default_path)
        local_path = config_dir / "local.toml"
        if local_path.exists():
            data = deep_merge(data, cls._read_toml(local_path))

        data = cls._apply_env(data, os.environ if environ is None else environ)
        return cls.from_dict(data)

    @staticmethod
    def _read_toml(path: Path) -> dict[str, Any]:
        try:
            with open(path, "rb") as f:
                return tomllib.load(f)
        except OSError as e:
            raise ConfigError(f"Failed to read {path}: {e}") from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {path}: {e}") from e

    @staticmethod
    def _apply_env(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
        overrides: dict[str, dict[str, Any]] = {}
        for name, (section, key, parser) in ENV_OVERRIDES.items():
            raw = environ.get(name)
            if raw is None:
                continue
            overrides.setdefault(section, {})[key] = _parse_env_value(name, raw, parser)
        return deep_merge(data, overrides)
