import json
from datetime import date

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from database import Base, make_engine
from repository import AgencyRepository, MemoryBlobStore, SqlBlobStore
from schemas import Task


def test_empty_store_falls_back_to_seed():
    repo = AgencyRepository(MemoryBlobStore())

    assert [c.id for c in repo.get_customers()] == ["C001", "C002", "C003", "C004", "C005"]
    assert repo.get_user("admin").role.value == "Admin"


def test_malformed_json_falls_back_to_seed():
    repo = AgencyRepository(MemoryBlobStore("{not json"))

    assert len(repo.get_bookings()) == 7


def test_snapshot_without_users_falls_back_to_seed():
    payload = json.dumps({"customers": [{"id": "X"}], "users": []})

    repo = AgencyRepository(MemoryBlobStore(payload))

    assert repo.get_customer("X") is None
    assert repo.get_customer("C001") is not None


def test_invalid_records_fall_back_to_seed():
    payload = json.dumps({"customers": [{"id": "X"}], "users": [{"id": "u"}]})

    repo = AgencyRepository(MemoryBlobStore(payload))

    assert repo.get_customer("C001") is not None


def test_every_mutation_persists_whole_snapshot(repo, store):
    task = Task(id="T100", title="Call the embassy", due_date=date(2024, 2, 1))

    repo.upsert_task(task)

    assert store.saves == 1
    saved = json.loads(store.payload)
    assert saved["tasks"][0]["id"] == "T100"
    assert saved["tasks"][0]["dueDate"] == "2024-02-01"
    assert "customers" in saved and "activityLog" in saved


def test_upsert_replaces_existing_in_place(repo):
    customer = repo.get_customer("C003")

    repo.upsert_customer(customer.model_copy(update={"phone": "+20100"}))

    assert [c.id for c in repo.get_customers()].index("C003") == 2
    assert repo.get_customer("C003").phone == "+20100"


def test_snapshot_round_trips_through_store(repo, store):
    repo.delete_booking("B001")

    reloaded = AgencyRepository(MemoryBlobStore(store.payload))

    assert reloaded.snapshot == repo.snapshot


class BrokenStore(MemoryBlobStore):
    def save(self, payload):
        raise OSError("disk full")


def test_failed_persist_keeps_memory_state():
    repo = AgencyRepository(BrokenStore())

    repo.delete_payment("PAY001")

    assert repo.get_payment("PAY001") is None
    assert repo.dirty is True


class UnreadableStore(MemoryBlobStore):
    def load(self):
        raise OperationalError("SELECT", {}, Exception("no such table"))


def test_unreadable_store_falls_back_to_seed():
    repo = AgencyRepository(UnreadableStore())

    assert repo.get_package("P01") is not None


def test_sql_store_saves_and_loads():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    store = SqlBlobStore(sessionmaker(bind=engine))

    assert store.load() is None
    store.save('{"a": 1}')
    store.save('{"a": 2}')

    assert store.load() == '{"a": 2}'
