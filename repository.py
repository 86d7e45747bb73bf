"""
Repository over the application snapshot.

The whole snapshot is loaded once and written back in full after every
mutation. Where it is written is up to the BlobStore: a row in the database
by default, a plain attribute in tests.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Callable

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from models import AppData
from schemas import (
    ActivityLogEntry,
    AppSnapshot,
    Booking,
    Customer,
    Expense,
    ExpenseCategory,
    Package,
    Payment,
    Task,
    User,
)
from seed import seed_snapshot

logger = logging.getLogger(__name__)

APP_DATA_KEY = "nuba_flower_tours_data"


class BlobStore(ABC):
    @abstractmethod
    def load(self) -> str | None:
        """Return the stored payload, or None when nothing is stored"""

    @abstractmethod
    def save(self, payload: str) -> None:
        pass


class MemoryBlobStore(BlobStore):
    def __init__(self, payload: str | None = None):
        self.payload = payload
        self.saves = 0

    def load(self) -> str | None:
        return self.payload

    def save(self, payload: str) -> None:
        self.payload = payload
        self.saves += 1


class SqlBlobStore(BlobStore):
    """Stores the snapshot in the app_data table under one fixed key."""

    def __init__(self, session_factory, key: str = APP_DATA_KEY):
        self.session_factory = session_factory
        self.key = key

    def load(self) -> str | None:
        db = self.session_factory()
        try:
            row = db.get(AppData, self.key)
            return row.payload if row else None
        finally:
            db.close()

    def save(self, payload: str) -> None:
        db = self.session_factory()
        try:
            row = db.get(AppData, self.key)
            if row is None:
                db.add(AppData(key=self.key, payload=payload))
            else:
                row.payload = payload
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


class AgencyRepository:
    def __init__(self, store: BlobStore, seed: Callable[[], AppSnapshot] = seed_snapshot):
        self.store = store
        self._seed = seed
        self.snapshot = self._load()
        self.dirty = False

    # -------------------
    # SNAPSHOT I/O
    # -------------------
    def _load(self) -> AppSnapshot:
        try:
            raw = self.store.load()
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Failed to read stored data, using seed data: %s", exc)
            return self._seed()

        if not raw:
            logger.info("No stored data under %s, using seed data", APP_DATA_KEY)
            return self._seed()

        try:
            data = json.loads(raw)
        except ValueError as exc:
            logger.warning("Stored data is not valid JSON, using seed data: %s", exc)
            return self._seed()

        if not isinstance(data, dict) or not data.get("customers") or not data.get("users"):
            logger.warning("Stored data is missing customers or users, using seed data")
            return self._seed()

        try:
            return AppSnapshot.model_validate(data)
        except ValidationError as exc:
            logger.warning("Stored data failed validation, using seed data: %s", exc)
            return self._seed()

    def persist(self) -> bool:
        """
        Write the whole snapshot.

        Failures are logged and leave the in-memory state untouched; the next
        mutation writes the full snapshot again.
        """
        try:
            payload = self.snapshot.model_dump_json(by_alias=True)
            self.store.save(payload)
        except (SQLAlchemyError, OSError, TypeError, ValueError) as exc:
            logger.error("Failed to persist application data: %s", exc)
            self.dirty = True
            return False
        self.dirty = False
        return True

    # -------------------
    # GENERIC HELPERS
    # -------------------
    def _collection(self, name: str) -> list:
        return getattr(self.snapshot, name)

    def _get(self, name: str, item_id: str):
        return next((item for item in self._collection(name) if item.id == item_id), None)

    def _upsert(self, name: str, item):
        items = self._collection(name)
        for index, existing in enumerate(items):
            if existing.id == item.id:
                items[index] = item
                break
        else:
            items.insert(0, item)
        self.persist()
        return item

    def _delete(self, name: str, item_id: str):
        items = self._collection(name)
        item = self._get(name, item_id)
        if item is None:
            return None
        items.remove(item)
        self.persist()
        return item

    # -------------------
    # CUSTOMERS
    # -------------------
    def get_customers(self) -> list[Customer]:
        return list(self.snapshot.customers)

    def get_customer(self, customer_id: str) -> Customer | None:
        return self._get("customers", customer_id)

    def upsert_customer(self, customer: Customer) -> Customer:
        return self._upsert("customers", customer)

    def delete_customer(self, customer_id: str) -> Customer | None:
        return self._delete("customers", customer_id)

    # -------------------
    # PACKAGES
    # -------------------
    def get_packages(self) -> list[Package]:
        return list(self.snapshot.packages)

    def get_package(self, package_id: str) -> Package | None:
        return self._get("packages", package_id)

    def upsert_package(self, package: Package) -> Package:
        return self._upsert("packages", package)

    def delete_package(self, package_id: str) -> Package | None:
        return self._delete("packages", package_id)

    # -------------------
    # BOOKINGS
    # -------------------
    def get_bookings(self) -> list[Booking]:
        return list(self.snapshot.bookings)

    def get_booking(self, booking_id: str) -> Booking | None:
        return self._get("bookings", booking_id)

    def upsert_booking(self, booking: Booking) -> Booking:
        if not booking.id:
            raise ValueError("Booking must have an id before it is stored")
        return self._upsert("bookings", booking)

    def delete_booking(self, booking_id: str) -> Booking | None:
        return self._delete("bookings", booking_id)

    # -------------------
    # PAYMENTS
    # -------------------
    def get_payments(self) -> list[Payment]:
        return list(self.snapshot.payments)

    def get_payment(self, payment_id: str) -> Payment | None:
        return self._get("payments", payment_id)

    def get_payments_for_booking(self, booking_id: str) -> list[Payment]:
        return [p for p in self.snapshot.payments if p.booking_id == booking_id]

    def upsert_payment(self, payment: Payment) -> Payment:
        return self._upsert("payments", payment)

    def delete_payment(self, payment_id: str) -> Payment | None:
        return self._delete("payments", payment_id)

    # -------------------
    # EXPENSES
    # -------------------
    def get_expenses(self) -> list[Expense]:
        return list(self.snapshot.expenses)

    def get_expense(self, expense_id: str) -> Expense | None:
        return self._get("expenses", expense_id)

    def upsert_expense(self, expense: Expense) -> Expense:
        return self._upsert("expenses", expense)

    def delete_expense(self, expense_id: str) -> Expense | None:
        return self._delete("expenses", expense_id)

    def get_expense_categories(self) -> list[ExpenseCategory]:
        return list(self.snapshot.expense_categories)

    def get_expense_category(self, category_id: str) -> ExpenseCategory | None:
        return self._get("expense_categories", category_id)

    def upsert_expense_category(self, category: ExpenseCategory) -> ExpenseCategory:
        return self._upsert("expense_categories", category)

    def delete_expense_category(self, category_id: str) -> ExpenseCategory | None:
        return self._delete("expense_categories", category_id)

    # -------------------
    # TASKS
    # -------------------
    def get_tasks(self) -> list[Task]:
        return list(self.snapshot.tasks)

    def get_task(self, task_id: str) -> Task | None:
        return self._get("tasks", task_id)

    def upsert_task(self, task: Task) -> Task:
        return self._upsert("tasks", task)

    def delete_task(self, task_id: str) -> Task | None:
        return self._delete("tasks", task_id)

    # -------------------
    # USERS
    # -------------------
    def get_users(self) -> list[User]:
        return list(self.snapshot.users)

    def get_user(self, user_id: str) -> User | None:
        return self._get("users", user_id)

    def upsert_user(self, user: User) -> User:
        return self._upsert("users", user)

    def delete_user(self, user_id: str) -> User | None:
        return self._delete("users", user_id)

    # -------------------
    # ACTIVITY LOG
    # -------------------
    def get_activity_log(self) -> list[ActivityLogEntry]:
        return list(self.snapshot.activity_log)

    def append_activity(self, entry: ActivityLogEntry) -> ActivityLogEntry:
        self.snapshot.activity_log.insert(0, entry)
        self.persist()
        return entry
