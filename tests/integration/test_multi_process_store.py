"""Two ClientStore instances sharing one JSON document, as two bot processes do."""

import json
from datetime import timedelta

import pytest

from property_matcher.persistence import ClientStore, JSONFileBackend
from tests.helpers import PHONE, FakeClock, searcher_record

OTHER = "966500000002"


@pytest.fixture
def clients_file(tmp_path):
    path = tmp_path / "private_clients.json"
    path.write_text(
        json.dumps({PHONE: searcher_record(), OTHER: searcher_record(OTHER)}, ensure_ascii=False),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def stores(clients_file):
    clock = FakeClock()
    first = ClientStore(JSONFileBackend(clients_file), clock=clock)
    second = ClientStore(JSONFileBackend(clients_file), clock=clock)
    first.load()
    second.load()
    return first, second


def on_disk(path):
    return json.loads(path.read_text(encoding="utf-8"))


def test_concurrent_field_updates_merge(stores, clients_file):
    first, second = stores

    first.update(PHONE, {"name": "أبو خالد"})
    second.update(PHONE, {"requestStatus": "inactive"})

    record = on_disk(clients_file)[PHONE]
    assert record["name"] == "أبو خالد"
    assert record["requestStatus"] == "inactive"


def test_new_client_from_sibling_is_kept(stores, clients_file):
    first, second = stores

    first.get_or_create("966500000009")
    second.update(PHONE, {"name": "أبو خالد"})

    assert set(on_disk(clients_file)) == {PHONE, OTHER, "966500000009"}


def test_sibling_write_becomes_visible(stores):
    first, second = stores

    first.update(OTHER, {"name": "أم سارة"})

    names = {client.phone_number: client.name for client in second.list_all()}
    assert names[OTHER] == "أم سارة"


def test_deleted_client_is_not_resurrected(stores, clients_file):
    first, second = stores

    first.delete(OTHER)
    second.update(PHONE, {"name": "أبو خالد"})

    assert OTHER not in on_disk(clients_file)
    assert second.get(OTHER) is None


def test_cleanup_in_one_process_survives_the_other(clients_file):
    clock = FakeClock()
    idle = searcher_record(OTHER, isProtected=False, manuallyAdded=False, lastMessageAt="2025-10-01T00:00:00.000Z")
    clients_file.write_text(
        json.dumps({PHONE: searcher_record(), OTHER: idle}, ensure_ascii=False), encoding="utf-8"
    )
    first = ClientStore(JSONFileBackend(clients_file), clock=clock)
    second = ClientStore(JSONFileBackend(clients_file), clock=clock)
    first.load()
    second.load()

    assert first.clean_inactive(timedelta(days=7)) == 1
    second.update(PHONE, {"name": "أبو خالد"})

    assert set(on_disk(clients_file)) == {PHONE}
