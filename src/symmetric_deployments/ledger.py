"""Durable per-network deployment ledger."""

import fcntl
import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from eth_utils import encode_hex

from .exceptions import ContractNotFoundError, LedgerCorruptError, LedgerLockedError
from .paths import get_ledger_path, get_lock_path
from .timestamps import format_timestamp, parse_timestamp, utc_now
from .types import DeploymentRecord

logger = logging.getLogger(__name__)


def to_jsonable(value: Any) -> Any:
    """
    Convert constructor arguments to values a JSON document can hold.

    Bytes become 0x-prefixed hex, tuples become lists. Integers are kept
    as-is, JSON has no size limit for them.
    """
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    return value


class LedgerLock:
    """Advisory single-writer lock for a ledger file.

    Non-blocking: a second deploy process for the same network fails fast
    instead of interleaving writes.
    """

    def __init__(self, ledger_path: Path):
        self.path = get_lock_path(ledger_path)
        self._file = None

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        lock_file = open(self.path, "a+")
        try:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            lock_file.close()
            raise LedgerLockedError(
                f"Ledger {self.path.with_suffix('')} is locked by another process"
            ) from e
        self._file = lock_file
        logger.debug("Acquired ledger lock %s", self.path)

    def release(self) -> None:
        if self._file is None:
            return
        fcntl.flock(self._file.fileno(), fcntl.LOCK_UN)
        self._file.close()
        self._file = None
        logger.debug("Released ledger lock %s", self.path)

    @property
    def locked(self) -> bool:
        return self._file is not None

    def __enter__(self) -> "LedgerLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class DeploymentLedger:
    """Records what has been deployed where on one network.

    Every :py:meth:`append` rewrites the whole document on disk before
    returning, so a crash after step N never loses steps 1..N.
    """

    def __init__(
        self,
        network: str,
        path: Optional[Union[Path, str]] = None,
        records: Optional[Dict[str, DeploymentRecord]] = None,
        last_modified: Optional[datetime] = None,
    ):
        """
        Create an in-memory ledger.

        Use :py:meth:`load` to read an existing ledger from disk.

        Args:
            network: Network name the ledger belongs to
            path: Ledger file (defaults to ./deployments/<network>.json)
            records: Initial records keyed by name
            last_modified: Time of the last write
        """
        self.network = network
        self.path = Path(path) if path is not None else get_ledger_path(network)
        self._records: Dict[str, DeploymentRecord] = {
            name: _normalize_record(r) for name, r in (records or {}).items()
        }
        self.last_modified = _normalize_time(last_modified) if last_modified else None

    @classmethod
    def load(
        cls,
        network: str,
        deployments_dir: Optional[Union[Path, str]] = None,
        path: Optional[Union[Path, str]] = None,
    ) -> "DeploymentLedger":
        """
        Load the ledger of a network.

        An absent file is the expected first-run state and gives an empty ledger.

        Args:
            network: Network name
            deployments_dir: Directory holding ledger files
            path: Explicit ledger file, overrides deployments_dir

        Returns:
            DeploymentLedger

        Raises:
            LedgerCorruptError: If the file exists but is not a valid ledger
        """
        ledger_path = Path(path) if path is not None else get_ledger_path(network, deployments_dir)

        try:
            with open(ledger_path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.info("No ledger at %s, starting empty", ledger_path)
            return cls(network, path=ledger_path)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise LedgerCorruptError(f"Ledger {ledger_path} is not valid JSON: {e}") from e

        return cls.from_dict(data, network=network, path=ledger_path)

    @classmethod
    def from_dict(
        cls,
        data: Any,
        network: Optional[str] = None,
        path: Optional[Union[Path, str]] = None,
    ) -> "DeploymentLedger":
        """
        Build a ledger from its document form.

        Raises:
            LedgerCorruptError: If the structure is not the expected one
        """
        if not isinstance(data, dict):
            raise LedgerCorruptError(f"Ledger {path} must be a JSON object")

        doc_network = data.get("network", network)
        if network is not None and doc_network != network:
            raise LedgerCorruptError(
                f"Ledger {path} belongs to network '{doc_network}', expected '{network}'"
            )
        if not isinstance(doc_network, str):
            raise LedgerCorruptError(f"Ledger {path} has no network name")

        contracts = data.get("contracts", {})
        if not isinstance(contracts, dict):
            raise LedgerCorruptError(f"Ledger {path}: 'contracts' must be an object")

        try:
            last_modified = parse_timestamp(data.get("timestamp"))
            records = {
                name: _parse_record(name, entry) for name, entry in contracts.items()
            }
        except (TypeError, ValueError, KeyError) as e:
            raise LedgerCorruptError(f"Ledger {path} is malformed: {e}") from e

        return cls(doc_network, path=path, records=records, last_modified=last_modified)

    def to_dict(self) -> Dict[str, Any]:
        """Document form, as written to disk."""
        return {
            "network": self.network,
            "timestamp": format_timestamp(self.last_modified) if self.last_modified else None,
            "contracts": {name: _format_record(r) for name, r in self._records.items()},
        }

    def has(self, name: str) -> bool:
        """
        Check if a contract is recorded.

        Args:
            name: Ledger name of the contract

        Returns:
            True if recorded, False otherwise
        """
        return name in self._records

    def get(self, name: str) -> Optional[DeploymentRecord]:
        """Get the record of a contract, or None."""
        return self._records.get(name)

    def require(self, name: str) -> DeploymentRecord:
        """
        Get the record of a contract.

        Raises:
            ContractNotFoundError: If the contract is not recorded
        """
        record = self._records.get(name)
        if record is None:
            raise ContractNotFoundError(
                f"Contract '{name}' not found in ledger of network '{self.network}'"
            )
        return record

    def append(self, record: DeploymentRecord) -> DeploymentRecord:
        """
        Insert or overwrite a record and persist the ledger.

        Args:
            record: Record to store. deployed_at defaults to now.

        Returns:
            The stored record, with JSON-native constructor arguments
        """
        stored = _normalize_record(record, default_time=utc_now())

        previous = self._records.get(record.name)
        if previous is not None:
            logger.warning("Overwriting ledger entry %s on %s", record.name, self.network)

        self._records[record.name] = stored
        try:
            self.save()
        except BaseException:
            # Memory must not hold a record the file does not
            if previous is None:
                del self._records[record.name]
            else:
                self._records[record.name] = previous
            raise
        logger.info("%s deployed to: %s", stored.name, stored.address)
        return stored

    def all(self) -> List[DeploymentRecord]:
        """All records, in insertion order."""
        return list(self._records.values())

    def names(self) -> List[str]:
        return list(self._records.keys())

    def addresses(self) -> Dict[str, str]:
        """Mapping of contract name to address."""
        return {name: r.address for name, r in self._records.items()}

    def save(self) -> None:
        """
        Write the whole ledger atomically.

        Creates parent directories if they don't exist.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)

        previous_modified = self.last_modified
        self.last_modified = utc_now()
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w") as f:
                json.dump(self.to_dict(), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            self.last_modified = previous_modified
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def lock(self) -> LedgerLock:
        """Advisory write lock for this ledger, use as a context manager."""
        return LedgerLock(self.path)

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def __len__(self) -> int:
        return len(self._records)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DeploymentLedger):
            return NotImplemented
        return (
            self.network == other.network
            and self._records == other._records
            and self.last_modified == other.last_modified
        )

    def __repr__(self) -> str:
        return f"<DeploymentLedger {self.network} contracts={len(self._records)}>"


def _normalize_time(value: datetime) -> datetime:
    """Drop sub-millisecond precision, the file format cannot hold it."""
    return parse_timestamp(format_timestamp(value))


def _normalize_record(
    record: DeploymentRecord, default_time: Optional[datetime] = None
) -> DeploymentRecord:
    """Copy of a record in the form the file stores it."""
    deployed_at = record.deployed_at or default_time
    return DeploymentRecord(
        name=record.name,
        address=record.address,
        constructor_args=to_jsonable(list(record.constructor_args)),
        transaction_hash=_hex_or_none(record.transaction_hash),
        deployed_at=_normalize_time(deployed_at) if deployed_at else None,
        contract=record.contract if record.contract != record.name else None,
    )


def _hex_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return encode_hex(bytes(value))
    return str(value)


def _parse_record(name: str, entry: Any) -> DeploymentRecord:
    if not isinstance(entry, dict):
        raise ValueError(f"entry for {name} must be an object")

    address = entry["address"]
    if not isinstance(address, str):
        raise ValueError(f"address of {name} must be a string")

    args = entry.get("constructorArgs", [])
    if not isinstance(args, list):
        raise ValueError(f"constructorArgs of {name} must be a list")

    return DeploymentRecord(
        name=name,
        address=address,
        constructor_args=args,
        transaction_hash=entry.get("txHash"),
        deployed_at=parse_timestamp(entry.get("timestamp")),
        contract=entry.get("contract"),
    )


def _format_record(record: DeploymentRecord) -> Dict[str, Any]:
    result: Dict[str, Any] = {
        "address": record.address,
        "constructorArgs": record.constructor_args,
        "txHash": record.transaction_hash,
        "timestamp": format_timestamp(record.deployed_at) if record.deployed_at else None,
    }
    if record.contract:
        result["contract"] = record.contract
    return result
