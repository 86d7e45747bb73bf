from datetime import date, datetime, timezone

import pytest

from repository import AgencyRepository, MemoryBlobStore
from seed import seed_snapshot
from services import AgencyService

TODAY = date(2024, 1, 15)
NOW = datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def store():
    return MemoryBlobStore()


@pytest.fixture
def repo(store):
    return AgencyRepository(store, seed=lambda: seed_snapshot(TODAY))


@pytest.fixture
def service(repo):
    return AgencyService(repo, today=lambda: TODAY, now=lambda: NOW)


@pytest.fixture
def admin(repo):
    return repo.get_user("admin")


@pytest.fixture
def staff(repo):
    return repo.get_user("ali.h")
