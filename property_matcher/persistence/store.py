"""Process-shared client repository.

Several bot processes read and write the same backing medium without a
lock. ClientStore narrows the race with an optimistic read-merge-write on
every mutation:

1. re-read the medium immediately before writing,
2. drop keys this process deleted from that base,
3. overlay only the fields this process touched,
4. write the merged result and adopt it as the new in-memory state.

The deletion set lives in memory only, so it does not survive a restart.
"""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, NamedTuple, Optional, Set, Union

from pydantic import BaseModel, ValidationError

from property_matcher.domain.models import (
    Client,
    ConversationState,
    PropertyRequest,
    RequestStatus,
    Role,
)
from property_matcher.logging import get_logger
from property_matcher.normalization import normalize_property_type
from property_matcher.utils.phone import normalize_phone
from property_matcher.utils.timestamps import parse_timestamp, to_epoch_ms, utc_now

from .backends import ClientBackend, Record
from .exceptions import PersistenceError, StorageReadError

logger = get_logger(__name__, component="store")

# Marks a record whose every field is owned by this process (new or moved)
WHOLE_RECORD = "*"

_CLIENT_ALIASES = {name: (info.alias or name) for name, info in Client.model_fields.items()}
_REQUEST_ALIASES = {
    name: (info.alias or name) for name, info in PropertyRequest.model_fields.items()
}


class ActiveRequest(NamedTuple):
    """One (client, request) pair eligible for matching."""

    phone: str
    request: PropertyRequest
    client: Client


@dataclass
class RequestUpsertResult:
    """Outcome of ``ClientStore.add_or_update_request``."""

    is_update: bool
    request: PropertyRequest
    total_requests: int
    all_requests: List[PropertyRequest] = field(default_factory=list)
    message: str = ""


class ClientStore:
    """Repository of client records over an injected backend.

    Every mutation flushes immediately. A failed flush is logged and
    re-raised; the in-memory change is kept and stays pending for the next
    flush.

    Example:
        >>> store = ClientStore(JSONFileBackend("./data/private_clients.json"))
        >>> store.load()
        >>> client = store.get_or_create("966500000001")
    """

    def __init__(self, backend: ClientBackend, clock: Callable[[], datetime] = utc_now):
        self.backend = backend
        self.clock = clock
        self._clients: Dict[str, Client] = {}
        # Last persisted form seen for each record, used to spot sibling writes
        self._snapshots: Dict[str, Record] = {}
        self._dirty: Dict[str, Set[str]] = {}
        self._deleted: Set[str] = set()
        self._lock = threading.RLock()
        self._loaded = False

    # Lifecycle

    def load(self) -> None:
        """Load every record from the backend.

        An unreadable or corrupt medium is treated as empty and re-initialized.
        """
        with self._lock:
            try:
                records = self.backend.read_all()
            except StorageReadError as e:
                logger.error(
                    f"Client store unreadable, starting empty: {e}",
                    extra={"event": "store.load.recovered", "location": self.backend.location},
                )
                records = {}
                self.backend.initialize()

            self._clients = {}
            self._snapshots = {}
            self._dirty = {}
            self._adopt(records)
            self._loaded = True

            logger.info(
                "Client store loaded",
                extra={
                    "event": "store.loaded",
                    "location": self.backend.location,
                    "clients": len(self._clients),
                },
            )

    def flush(self) -> None:
        """Read-merge-write pending changes to the backend.

        Raises:
            PersistenceError: If the write fails; pending changes are kept
        """
        with self._lock:
            disk = self._read_disk()
            if disk is None:
                # Unreadable medium: in-memory state stays authoritative
                base_records = dict(self._snapshots)
                base_records.update({p: c.to_record() for p, c in self._clients.items()})
            else:
                base_records = disk

            merged: Dict[str, Record] = {
                phone: raw for phone, raw in base_records.items() if phone not in self._deleted
            }

            for phone, fields in self._dirty.items():
                client = self._clients.get(phone)
                if client is None:
                    continue
                mine = client.to_record()
                base = merged.get(phone)
                if WHOLE_RECORD in fields or not isinstance(base, dict):
                    merged[phone] = mine
                    continue
                base = dict(base)
                for key in fields:
                    if key in mine:
                        base[key] = mine[key]
                    else:
                        base.pop(key, None)
                merged[phone] = base

            touched = list(self._dirty)
            try:
                self.backend.write_all(merged, touched=touched, deleted=sorted(self._deleted))
            except PersistenceError as e:
                logger.error(
                    f"Failed to flush client store: {e}",
                    extra={
                        "event": "store.flush.failed",
                        "location": self.backend.location,
                        "pending": touched,
                        "error_type": type(e).__name__,
                    },
                )
                raise

            self._dirty = {}
            if disk is not None:
                self._clients = {p: c for p, c in self._clients.items() if p in merged}
                self._snapshots = {p: s for p, s in self._snapshots.items() if p in merged}
            self._adopt(merged, replace_changed=True)

            logger.debug(
                "Client store flushed",
                extra={
                    "event": "store.flush.completed",
                    "clients": len(merged),
                    "touched": touched,
                    "deleted": len(self._deleted),
                },
            )

    def close(self) -> None:
        self.backend.close()

    # Reads

    @property
    def deleted_keys(self) -> FrozenSet[str]:
        """Phone numbers this process deleted since it started."""
        return frozenset(self._deleted)

    def get(self, phone: str) -> Optional[Client]:
        """Look up a client without creating it."""
        phone = normalize_phone(phone)
        with self._lock:
            self._ensure_loaded()
            if phone not in self._clients:
                self._refresh()
            return self._clients.get(phone)

    def get_or_create(self, phone: str) -> Client:
        """Return the client for a phone number, creating it on first contact.

        Re-creating a phone number this process deleted removes it from the
        deletion set.
        """
        phone = normalize_phone(phone)
        with self._lock:
            self._ensure_loaded()
            if phone in self._clients:
                return self._clients[phone]

            self._refresh()
            if phone in self._clients:
                return self._clients[phone]

            self._deleted.discard(phone)
            now = self.clock()
            client = Client(
                phone_number=phone,
                created_at=now,
                updated_at=now,
                last_message_at=now,
            )
            self._clients[phone] = client
            self._dirty[phone] = {WHOLE_RECORD}

            logger.info(
                "Client created",
                extra={"event": "store.client.created", "phone": phone},
            )
            self.flush()
            return self._clients[phone]

    def list_all(self) -> List[Client]:
        with self._lock:
            self._ensure_loaded()
            self._refresh()
            return list(self._clients.values())

    def list_active_requests(self) -> List[ActiveRequest]:
        """Flatten eligible (client, request) pairs.

        Eligible: searcher role, completed conversation, client-level status
        not inactive, request status not inactive, request has a property type.
        """
        active: List[ActiveRequest] = []
        for client in self.list_all():
            if client.role != Role.SEARCHER or client.state != ConversationState.COMPLETED:
                continue
            if client.request_status == RequestStatus.INACTIVE:
                continue
            for request in client.requests:
                if not request.property_type or request.status == RequestStatus.INACTIVE:
                    continue
                active.append(ActiveRequest(client.phone_number, request, client))
        return active

    def get_requests(self, phone: str) -> List[PropertyRequest]:
        """All requests of a client; legacy single-request records read as one."""
        return list(self.get_or_create(phone).requests)

    # Writes

    def update(self, phone: str, fields: Mapping[str, Any]) -> Client:
        """Apply a partial update and flush.

        Keys may be field names (``request_status``) or persisted names
        (``requestStatus``). ``updatedAt`` and ``lastMessageAt`` are bumped.

        Raises:
            ValueError: If the update tries to change the phone number
            PersistenceError: If the flush fails
        """
        phone = normalize_phone(phone)
        with self._lock:
            client = self.get_or_create(phone)

            data = client.to_record()
            touched: Set[str] = set()
            for key, value in fields.items():
                persisted_key = _CLIENT_ALIASES.get(key, key)
                if persisted_key == "phoneNumber":
                    raise ValueError("Use change_phone() to move a client to another number")
                data[persisted_key] = value
                touched.add(persisted_key)

            now = self.clock()
            data["updatedAt"] = now
            data["lastMessageAt"] = now
            touched.update({"updatedAt", "lastMessageAt"})

            self._clients[phone] = Client.model_validate(data)
            self._dirty.setdefault(phone, set()).update(touched)
            self.flush()
            return self._clients[phone]

    def delete(self, phone: str) -> bool:
        """Delete a client; the key is remembered so sibling state cannot resurrect it."""
        phone = normalize_phone(phone)
        with self._lock:
            self._ensure_loaded()
            self._refresh()
            if phone not in self._clients:
                return False

            del self._clients[phone]
            self._snapshots.pop(phone, None)
            self._dirty.pop(phone, None)
            self._deleted.add(phone)

            logger.info("Client deleted", extra={"event": "store.client.deleted", "phone": phone})
            self.flush()
            return True

    def add_or_update_request(
        self, phone: str, requirements: Union[Mapping[str, Any], BaseModel]
    ) -> RequestUpsertResult:
        """Add a request, or update the existing one with the same canonical type.

        A client holds at most one request per canonical property type: a
        submission whose type normalizes to an existing request's type updates
        that request in place (and reactivates it), anything else is appended
        as a new active request.
        """
        phone = normalize_phone(phone)
        submitted = _request_fields(requirements)

        with self._lock:
            client = self.get_or_create(phone)
            requests = list(client.requests)
            property_type = submitted.get("propertyType")
            canonical = normalize_property_type(property_type)
            now = self.clock()

            index = next(
                (
                    i
                    for i, existing in enumerate(requests)
                    if normalize_property_type(existing.property_type) == canonical
                ),
                None,
            )

            if index is not None:
                current = requests[index].model_dump(by_alias=True)
                request = PropertyRequest.model_validate(
                    {
                        **current,
                        **submitted,
                        "id": current["id"],
                        "status": RequestStatus.ACTIVE.value,
                        "updatedAt": now,
                    }
                )
                requests[index] = request
                message = f"تم تحديث الطلب الحالي ({property_type})"
            else:
                request = PropertyRequest.model_validate(
                    {
                        **submitted,
                        "id": f"req_{to_epoch_ms(now)}_{uuid.uuid4().hex[:4]}",
                        "status": RequestStatus.ACTIVE.value,
                        "createdAt": now,
                        "updatedAt": now,
                    }
                )
                requests.append(request)
                if len(requests) > 1:
                    message = f"تم إضافة طلب جديد. العميل لديه الآن {len(requests)} طلبات"
                else:
                    message = "تم تسجيل الطلب بنجاح"

            self.update(
                phone,
                {
                    "requests": requests,
                    # First request mirrored for readers of the single-request layout
                    "requirements": requests[0].model_dump(by_alias=True, mode="json"),
                },
            )

            logger.info(
                message,
                extra={
                    "event": "store.request.updated" if index is not None else "store.request.added",
                    "phone": phone,
                    "request_id": request.id,
                    "property_type": canonical,
                    "total_requests": len(requests),
                },
            )

            return RequestUpsertResult(
                is_update=index is not None,
                request=request,
                total_requests=len(requests),
                all_requests=requests,
                message=message,
            )

    def change_phone(self, old_phone: str, new_phone: str) -> Optional[Client]:
        """Move a client record to another phone number.

        Returns:
            The moved client, or None if the old number is unknown or the new
            number is already taken
        """
        old_phone = normalize_phone(old_phone)
        new_phone = normalize_phone(new_phone)

        with self._lock:
            self._ensure_loaded()
            self._refresh()

            if old_phone not in self._clients:
                logger.warning(
                    "Cannot change phone, client not found",
                    extra={"event": "store.phone_change.rejected", "phone": old_phone},
                )
                return None
            if new_phone in self._clients:
                logger.warning(
                    "Cannot change phone, number already exists",
                    extra={"event": "store.phone_change.rejected", "phone": new_phone},
                )
                return None

            now = self.clock()
            data = self._clients[old_phone].to_record()
            data.update({"phoneNumber": new_phone, "updatedAt": now, "lastMessageAt": now})

            self._clients[new_phone] = Client.model_validate(data)
            self._dirty[new_phone] = {WHOLE_RECORD}
            self._deleted.discard(new_phone)

            del self._clients[old_phone]
            self._snapshots.pop(old_phone, None)
            self._dirty.pop(old_phone, None)
            self._deleted.add(old_phone)

            logger.info(
                "Client phone changed",
                extra={"event": "store.phone_change.completed", "old_phone": old_phone, "phone": new_phone},
            )
            self.flush()
            return self._clients[new_phone]

    def set_protected(self, phone: str, protected: bool = True) -> bool:
        """Exempt a client from (or expose it to) bulk cleanup."""
        with self._lock:
            if self.get(phone) is None:
                return False
            self.update(phone, {"is_protected": protected, "manually_added": protected})
            return True

    def clean_inactive(self, max_idle: timedelta = timedelta(days=7)) -> int:
        """Delete unprotected clients idle longer than ``max_idle``.

        Records flagged ``isProtected`` or ``manuallyAdded`` are never removed.
        The most recent ``lastMessageAt`` seen on disk is honoured so activity
        recorded by a sibling process keeps a client alive.

        Returns:
            Number of clients removed
        """
        with self._lock:
            self._ensure_loaded()
            disk = self._read_disk() or {}
            self._adopt(disk, replace_changed=True)

            # Pending local edits may hold an older lastMessageAt than a sibling wrote
            for phone in list(self._dirty):
                client = self._clients.get(phone)
                seen = _parse_last_message(disk.get(phone))
                if client is not None and seen and (
                    client.last_message_at is None or seen > client.last_message_at
                ):
                    self._clients[phone] = client.model_copy(update={"last_message_at": seen})

            cutoff = self.clock() - max_idle
            removed = []
            for phone, client in list(self._clients.items()):
                if client.is_protected or client.manually_added:
                    continue
                last_seen = client.last_message_at or client.created_at
                if last_seen is None or last_seen < cutoff:
                    del self._clients[phone]
                    self._snapshots.pop(phone, None)
                    self._dirty.pop(phone, None)
                    self._deleted.add(phone)
                    removed.append(phone)

            if removed:
                self.flush()

            logger.info(
                "Inactive client cleanup finished",
                extra={
                    "event": "store.cleanup.completed",
                    "removed": len(removed),
                    "max_idle_hours": max_idle.total_seconds() / 3600,
                },
            )
            return len(removed)

    # Internals

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def _read_disk(self) -> Optional[Dict[str, Record]]:
        """Re-read the medium, or None when it cannot be read."""
        try:
            return self.backend.read_all()
        except StorageReadError as e:
            logger.warning(
                f"Could not re-read client store: {e}",
                extra={"event": "store.refresh.failed", "location": self.backend.location},
            )
            return None

    def _refresh(self) -> None:
        """Absorb sibling writes: new records, and changes to records we have not touched."""
        disk = self._read_disk()
        if disk is not None:
            self._adopt(disk, replace_changed=True)

    def _adopt(self, records: Mapping[str, Record], replace_changed: bool = False) -> None:
        for phone, raw in records.items():
            if phone in self._deleted or phone in self._dirty:
                continue
            if phone in self._snapshots and self._snapshots[phone] == raw:
                continue
            if phone in self._clients and not replace_changed:
                continue
            # Remembered even when unreadable, so a bad record is reported once
            self._snapshots[phone] = raw
            client = _parse_record(phone, raw)
            if client is not None:
                self._clients[phone] = client


def _parse_record(phone: str, raw: Any) -> Optional[Client]:
    if not isinstance(raw, dict):
        logger.warning(
            "Skipping non-object client record",
            extra={"event": "store.record.malformed", "phone": phone},
        )
        return None
    try:
        return Client.model_validate({**raw, "phoneNumber": phone})
    except ValidationError as e:
        logger.warning(
            f"Skipping unreadable client record: {e.error_count()} errors",
            extra={"event": "store.record.malformed", "phone": phone},
        )
        return None


def _parse_last_message(raw: Any) -> Optional[datetime]:
    if not isinstance(raw, dict):
        return None
    return parse_timestamp(raw.get("lastMessageAt"))


def _request_fields(requirements: Union[Mapping[str, Any], BaseModel]) -> Dict[str, Any]:
    """Submitted requirements keyed by persisted request names, unset values dropped."""
    if isinstance(requirements, BaseModel):
        requirements = requirements.model_dump(exclude_none=True)
    fields: Dict[str, Any] = {}
    for key, value in requirements.items():
        if value is None:
            continue
        persisted_key = _REQUEST_ALIASES.get(key, key)
        if persisted_key in ("id", "createdAt"):
            continue
        fields[persisted_key] = value
    return fields
