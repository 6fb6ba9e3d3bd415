"""AssetRegistry: Durable mapping from asset symbol to on-chain record id.

Entries are created once per symbol, when the record is first created on
chain, and never change afterwards. The map is loaded on first use and
written back in full after every new entry.

Storage backends:
    - JsonFileRegistryStore: JSON file, replaced atomically on every save
    - InMemoryRegistryStore: process memory only (tests, dry runs)

Only one process may write a given registry file.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from .bcs import normalize_address
from .errors import EncodingError, MissingCreatedObjectError, RegistryError

if TYPE_CHECKING:
    from .RecordCreator import RecordCreator

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_PATH = "known_price_objects.json"


class RegistryStore(ABC):
    """Abstract base class for registry persistence."""

    @abstractmethod
    def load(self) -> dict[str, str]:
        """Load the full symbol -> record id map.

        :raises RegistryError: If the stored map cannot be read.
        """
        pass

    @abstractmethod
    def save(self, entries: dict[str, str]) -> None:
        """Replace the stored map with ``entries``.

        :raises RegistryError: If the map cannot be written.
        """
        pass


class InMemoryRegistryStore(RegistryStore):
    """Registry store kept in process memory."""

    def __init__(self, entries: dict[str, str] | None = None) -> None:
        self.entries = dict(entries or {})
        self.save_count = 0

    def load(self) -> dict[str, str]:
        return dict(self.entries)

    def save(self, entries: dict[str, str]) -> None:
        self.entries = dict(entries)
        self.save_count += 1


class JsonFileRegistryStore(RegistryStore):
    """Registry store backed by a JSON object file.

    A missing file reads as an empty map. Saves write a temporary file in the
    same directory and rename it over the target, so a crash never leaves a
    partially written registry.

    :ivar path: Registry file path.
    """

    def __init__(self, path: str | Path = DEFAULT_REGISTRY_PATH) -> None:
        self.path = Path(path)

    def load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r") as file:
                data = json.load(file)
        except OSError as e:
            raise RegistryError(f"Failed to open {self.path}: {e}") from e
        except json.JSONDecodeError as e:
            raise RegistryError(f"Failed to parse JSON from {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise RegistryError(f"{self.path} does not contain a JSON object")

        entries: dict[str, str] = {}
        for symbol, record_id in data.items():
            if not isinstance(record_id, str):
                raise RegistryError(f"Invalid record id for {symbol} in {self.path}")
            try:
                entries[symbol] = normalize_address(record_id)
            except EncodingError as e:
                raise RegistryError(f"Invalid record id for {symbol}: {e}") from e
        return entries

    def save(self, entries: dict[str, str]) -> None:
        directory = self.path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                dir=directory,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as file:
                tmp_name = file.name
                json.dump(entries, file, indent=2, sort_keys=True)
                file.write("\n")
                file.flush()
                os.fsync(file.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise RegistryError(f"Failed to write {self.path}: {e}") from e


class AssetRegistry:
    """Resolves asset symbols to record ids, creating records when needed.

    :ivar store: Persistence backend.
    :ivar creator: Creates records and finds existing ones on chain.
    :ivar reconcile: Scan the chain for an existing record before creating one.
    """

    def __init__(
        self,
        store: RegistryStore,
        creator: RecordCreator,
        reconcile: bool = True,
    ) -> None:
        """Initialize the registry.

        :param store: Persistence backend.
        :param creator: Record creator used for unknown symbols.
        :param reconcile: Adopt a record already owned by the signer instead
            of creating a second one (covers a crash between creation and
            save).
        """
        self.store = store
        self.creator = creator
        self.reconcile = reconcile
        self._entries: dict[str, str] | None = None
        self._lock = asyncio.Lock()

    def _load(self) -> dict[str, str]:
        if self._entries is None:
            self._entries = self.store.load()
            logger.info(f"Loaded {len(self._entries)} registry entries")
        return self._entries

    def get(self, symbol: str) -> str | None:
        """Return the stored record id for ``symbol``, if any."""
        return self._load().get(symbol)

    @property
    def entries(self) -> dict[str, str]:
        """Copy of the current symbol -> record id map."""
        return dict(self._load())

    async def resolve_or_create(self, symbol: str) -> str:
        """Return the record id for ``symbol``, creating the record if needed.

        Known symbols are answered without any network request.

        :param symbol: Asset symbol.
        :returns: Object id of the record.
        :raises RegistryError: If storage fails or the creation produced no
            matching record.
        :raises ChainError: If the creation transaction fails.
        """
        record_id = self._load().get(symbol)
        if record_id is not None:
            return record_id

        async with self._lock:
            entries = self._load()
            if symbol in entries:
                return entries[symbol]

            record_id = None
            if self.reconcile:
                record_id = await self.creator.find_existing(symbol)
                if record_id is not None:
                    logger.warning(
                        f"Adopting existing record {record_id} for {symbol} "
                        "missing from the registry"
                    )

            if record_id is None:
                logger.info(f"No record for {symbol}, creating one")
                try:
                    record_id = await self.creator.create(symbol)
                except MissingCreatedObjectError as e:
                    raise RegistryError(
                        f"Record for {symbol} not found in effects: {e}"
                    ) from e

            updated = {**entries, symbol: record_id}
            self.store.save(updated)
            self._entries = updated
            logger.info(f"Saved record {record_id} for {symbol}")
            return record_id
