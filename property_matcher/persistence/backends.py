"""Key-value backends for the client store.

A backend holds persisted client records (plain dicts in the camelCase
layout) keyed by normalized phone number. It knows nothing about merging;
ClientStore does the read-merge-write and hands the backend the result.

Three implementations:
- JSONFileBackend: one JSON document shared by every bot process
- InMemoryBackend: dict-backed, for tests and single-process use
- SQLClientBackend: one row per client, written in a single transaction
"""

import copy
import json
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from property_matcher.logging import get_logger

from .exceptions import StorageReadError, StorageVerificationError, StorageWriteError
from .schema import ClientRecordModel, create_schema
from .sql import _redact_url, create_database_engine, create_session_factory, session_scope

logger = get_logger(__name__, component="store")

Record = Dict[str, Any]


class ClientBackend(ABC):
    """Storage medium behind ClientStore."""

    @property
    @abstractmethod
    def location(self) -> str:
        """Human-readable location for logs."""
        pass

    @abstractmethod
    def read_all(self) -> Dict[str, Record]:
        """Read every record.

        Raises:
            StorageReadError: If the medium is unreadable or corrupt
        """
        pass

    @abstractmethod
    def write_all(
        self,
        records: Dict[str, Record],
        touched: Optional[Iterable[str]] = None,
        deleted: Iterable[str] = (),
    ) -> None:
        """Persist a merged snapshot.

        Args:
            records: Full merged snapshot (deleted keys already removed)
            touched: Keys changed by this process; None means all of them.
                Backends that write row by row only write these.
            deleted: Keys this process removed

        Raises:
            StorageWriteError: If the write fails
        """
        pass

    def initialize(self) -> None:
        """Reset the medium to an empty store."""
        self.write_all({})

    def get(self, phone: str) -> Optional[Record]:
        return self.read_all().get(phone)

    def put(self, phone: str, record: Record) -> None:
        records = self.read_all()
        records[phone] = record
        self.write_all(records, touched=[phone])

    def delete(self, phone: str) -> bool:
        records = self.read_all()
        if phone not in records:
            return False
        del records[phone]
        self.write_all(records, touched=[], deleted=[phone])
        return True

    def list_all(self) -> List[Record]:
        return list(self.read_all().values())

    def close(self) -> None:
        pass


class JSONFileBackend(ClientBackend):
    """One JSON object mapping phone number to record.

    Writes go to a temporary file that replaces the document atomically, so a
    reader in another process sees either the old or the new document. The
    result is read back and compared before the write counts as done.
    """

    def __init__(self, path: Union[str, Path], keep_backup: bool = True):
        self.path = Path(path)
        self.keep_backup = keep_backup

    @property
    def location(self) -> str:
        return str(self.path)

    @property
    def backup_path(self) -> Path:
        return self.path.with_name(self.path.name + ".backup")

    def read_all(self) -> Dict[str, Record]:
        if not self.path.exists():
            return {}

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageReadError(f"Cannot read {self.path}: {e}", location=str(self.path)) from e

        if not raw.strip():
            return {}

        try:
            data = json.loads(raw)
        except ValueError as e:
            raise StorageReadError(f"Corrupt JSON in {self.path}: {e}", location=str(self.path)) from e

        if not isinstance(data, dict):
            raise StorageReadError(
                f"Expected a JSON object in {self.path}, got {type(data).__name__}",
                location=str(self.path),
            )

        return data

    def write_all(
        self,
        records: Dict[str, Record],
        touched: Optional[Iterable[str]] = None,
        deleted: Iterable[str] = (),
    ) -> None:
        payload = json.dumps(records, ensure_ascii=False, indent=2)

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)

            if self.keep_backup and self.path.exists():
                try:
                    shutil.copyfile(self.path, self.backup_path)
                except OSError as e:
                    logger.warning(
                        f"Could not create backup for {self.path}: {e}",
                        extra={"event": "store.backup.failed", "path": str(self.path)},
                    )

            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise

            written = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageWriteError(f"Failed to write {self.path}: {e}", location=str(self.path)) from e

        if written != payload:
            raise StorageVerificationError(
                f"Data verification failed after writing {self.path}", location=str(self.path)
            )


class InMemoryBackend(ClientBackend):
    """Dict-backed backend; records are copied in and out."""

    def __init__(self, records: Optional[Dict[str, Record]] = None):
        self._records: Dict[str, Record] = copy.deepcopy(records or {})
        self.write_count = 0

    @property
    def location(self) -> str:
        return "memory"

    def read_all(self) -> Dict[str, Record]:
        return copy.deepcopy(self._records)

    def write_all(
        self,
        records: Dict[str, Record],
        touched: Optional[Iterable[str]] = None,
        deleted: Iterable[str] = (),
    ) -> None:
        self._records = copy.deepcopy(records)
        self.write_count += 1


class SQLClientBackend(ClientBackend):
    """Key-value table backend.

    ``write_all`` upserts only the touched rows and deletes only the deleted
    ones inside one transaction, so rows another process wrote after our
    read are never dropped.
    """

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine = create_database_engine(database_url)
        self._session_factory = create_session_factory(self.engine)
        create_schema(self.engine)

    @property
    def location(self) -> str:
        return _redact_url(self.database_url)

    def read_all(self) -> Dict[str, Record]:
        try:
            with session_scope(self._session_factory) as session:
                rows = session.execute(select(ClientRecordModel)).scalars().all()
                return self._decode_rows(rows)
        except SQLAlchemyError as e:
            raise StorageReadError(f"Failed to read client records: {e}", location=self.location) from e

    def _decode_rows(self, rows) -> Dict[str, Record]:
        records: Dict[str, Record] = {}
        for row in rows:
            try:
                records[row.phone] = row.to_record()
            except ValueError as e:
                logger.warning(
                    f"Skipping unreadable client row {row.phone}: {e}",
                    extra={"event": "store.row.unreadable", "phone": row.phone},
                )
        return records

    def write_all(
        self,
        records: Dict[str, Record],
        touched: Optional[Iterable[str]] = None,
        deleted: Iterable[str] = (),
    ) -> None:
        keys = list(records) if touched is None else [k for k in touched if k in records]
        deleted = [k for k in deleted if k not in records]

        try:
            with session_scope(self._session_factory) as session:
                for phone in keys:
                    session.merge(ClientRecordModel.from_record(phone, records[phone]))
                if deleted:
                    session.execute(
                        delete(ClientRecordModel).where(ClientRecordModel.phone.in_(deleted))
                    )
        except SQLAlchemyError as e:
            raise StorageWriteError(f"Failed to write client records: {e}", location=self.location) from e

    def initialize(self) -> None:
        create_schema(self.engine)

    def get(self, phone: str) -> Optional[Record]:
        try:
            with session_scope(self._session_factory) as session:
                row = session.get(ClientRecordModel, phone)
                return self._decode_rows([row]).get(phone) if row is not None else None
        except SQLAlchemyError as e:
            raise StorageReadError(f"Failed to read client {phone}: {e}", location=self.location) from e

    def put(self, phone: str, record: Record) -> None:
        self.write_all({phone: record}, touched=[phone])

    def delete(self, phone: str) -> bool:
        try:
            with session_scope(self._session_factory) as session:
                result = session.execute(
                    delete(ClientRecordModel).where(ClientRecordModel.phone == phone)
                )
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise StorageWriteError(f"Failed to delete client {phone}: {e}", location=self.location) from e

    def close(self) -> None:
        self.engine.dispose()


def create_backend(storage_config) -> ClientBackend:
    """Build the backend selected by a StorageConfig."""
    backend = getattr(storage_config.backend, "value", storage_config.backend)
    if backend == "sql":
        return SQLClientBackend(storage_config.database_url)
    return JSONFileBackend(storage_config.clients_file, keep_backup=storage_config.keep_backup)
