"""
Application service for the back office.

Every mutation goes through here: booking and customer drafts are checked by
the rule engine, accepted records are written to the repository and an
activity log entry is recorded for the acting user.
"""

import logging
from datetime import date, datetime, timezone
from typing import Callable, Iterable

from auth import hash_password, verify_password
from booking_rules import RuleContext, RuleResult, validate_and_normalize, validate_customer
from finance import BookingFinancials, dashboard_stats, financial_summary, project_booking
from repository import AgencyRepository
from schemas import (
    ActivityAction,
    ActivityEntity,
    ActivityLogEntry,
    Booking,
    BookingDraft,
    BookingStatus,
    Customer,
    CustomerDraft,
    DocumentFile,
    DocumentIn,
    Expense,
    ExpenseCategory,
    ExpenseCategoryIn,
    ExpenseIn,
    Package,
    PackageIn,
    PackageType,
    Payment,
    PaymentIn,
    Task,
    TaskIn,
    User,
    UserIn,
)

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """A request the back office refuses for a business reason."""


class NotFoundError(ServiceError):
    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_id(prefix: str, existing_ids: Iterable[str], now: datetime) -> str:
    """PREFIX + YYYYMMDD + per-day sequence, e.g. B20250110-0003."""
    stem = f"{prefix}{now.strftime('%Y%m%d')}-"
    used = [
        int(item_id[len(stem):])
        for item_id in existing_ids
        if item_id and item_id.startswith(stem) and item_id[len(stem):].isdigit()
    ]
    seq = str(max(used, default=0) + 1).zfill(4)
    return f"{stem}{seq}"


class AgencyService:
    def __init__(
        self,
        repository: AgencyRepository,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.repo = repository
        self.today = today
        self.now = now

    # ===============================
    # HELPERS
    # ===============================
    def _new_id(self, prefix: str, items: Iterable) -> str:
        return generate_id(prefix, (item.id for item in items), self.now())

    def log_activity(
        self,
        actor: User,
        action: ActivityAction,
        entity: ActivityEntity,
        entity_id: str,
        details: str,
    ) -> ActivityLogEntry:
        entry = ActivityLogEntry(
            id=self._new_id("LOG", self.repo.get_activity_log()),
            timestamp=self.now(),
            user=actor.name,
            action=action,
            entity=entity,
            entity_id=entity_id,
            details=details,
        )
        logger.info("%s %s %s %s by %s", action.value, entity.value, entity_id, details, actor.id)
        return self.repo.append_activity(entry)

    def rule_context(self) -> RuleContext:
        return RuleContext(
            customers=tuple(self.repo.get_customers()),
            packages=tuple(self.repo.get_packages()),
            bookings=tuple(self.repo.get_bookings()),
        )

    def _require(self, entity: str, item_id: str, item):
        if item is None:
            raise NotFoundError(entity, item_id)
        return item

    def get_booking(self, booking_id: str) -> Booking:
        return self._require("Booking", booking_id, self.repo.get_booking(booking_id))

    def get_customer(self, customer_id: str) -> Customer:
        return self._require("Customer", customer_id, self.repo.get_customer(customer_id))

    def get_payment(self, payment_id: str) -> Payment:
        return self._require("Payment", payment_id, self.repo.get_payment(payment_id))

    def _customer_name(self, customer_id: str) -> str:
        customer = self.repo.get_customer(customer_id)
        return customer.name if customer else "N/A"

    # ===============================
    # CUSTOMERS
    # ===============================
    def save_customer(
        self,
        draft: CustomerDraft,
        actor: User,
        flight_departure_date: date | None = None,
    ) -> RuleResult:
        existing = None
        if draft.id:
            existing = self.get_customer(draft.id)

        result = validate_customer(
            draft,
            self.repo.get_bookings(),
            self.today(),
            flight_departure_date=flight_departure_date,
        )
        if not result.ok:
            logger.info("Customer %s rejected: %s", draft.id or draft.name, result.error.kind.value)
            return result

        fields = draft.model_dump(exclude={"id"})
        if existing:
            customer = existing.model_copy(update=fields)
            action = ActivityAction.UPDATED
        else:
            customer = Customer(
                id=self._new_id("C", self.repo.get_customers()),
                date_added=self.today(),
                documents=[],
                **fields,
            )
            action = ActivityAction.CREATED

        self.repo.upsert_customer(customer)
        self.log_activity(actor, action, ActivityEntity.CUSTOMER, customer.id, customer.name)
        return RuleResult.success(customer)

    def delete_customer(self, customer_id: str, actor: User) -> Customer:
        # bookings referencing the customer are left in place
        customer = self._require("Customer", customer_id, self.repo.delete_customer(customer_id))
        self.log_activity(actor, ActivityAction.DELETED, ActivityEntity.CUSTOMER, customer_id, customer.name)
        return customer

    def add_document(self, customer_id: str, data: DocumentIn, actor: User) -> DocumentFile:
        customer = self.get_customer(customer_id)
        document = DocumentFile(
            id=generate_id("DOC", (d.id for d in customer.documents), self.now()),
            **data.model_dump(),
        )
        updated = customer.model_copy(update={"documents": [*customer.documents, document]})
        self.repo.upsert_customer(updated)
        self.log_activity(
            actor, ActivityAction.CREATED, ActivityEntity.DOCUMENT, document.id,
            f"{document.name} for {customer.name}",
        )
        return document

    def delete_document(self, customer_id: str, document_id: str, actor: User) -> DocumentFile:
        customer = self.get_customer(customer_id)
        document = next((d for d in customer.documents if d.id == document_id), None)
        self._require("Document", document_id, document)
        remaining = [d for d in customer.documents if d.id != document_id]
        self.repo.upsert_customer(customer.model_copy(update={"documents": remaining}))
        self.log_activity(
            actor, ActivityAction.DELETED, ActivityEntity.DOCUMENT, document_id,
            f"{document.name} for {customer.name}",
        )
        return document

    # ===============================
    # PACKAGES
    # ===============================
    def save_package(self, data: PackageIn, actor: User) -> Package:
        fields = data.model_dump(exclude={"id"})
        if data.id:
            self._require("Package", data.id, self.repo.get_package(data.id))
            package = Package(id=data.id, **fields)
            action = ActivityAction.UPDATED
        else:
            package = Package(id=self._new_id("P", self.repo.get_packages()), **fields)
            action = ActivityAction.CREATED
        self.repo.upsert_package(package)
        self.log_activity(actor, action, ActivityEntity.PACKAGE, package.id, package.name)
        return package

    def delete_package(self, package_id: str, actor: User) -> Package:
        package = self._require("Package", package_id, self.repo.delete_package(package_id))
        self.log_activity(actor, ActivityAction.DELETED, ActivityEntity.PACKAGE, package_id, package.name)
        return package

    # ===============================
    # BOOKINGS
    # ===============================
    def filter_bookings(
        self,
        search: str = "",
        status: BookingStatus | None = None,
        package_type: PackageType | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[Booking]:
        customers = {c.id: c for c in self.repo.get_customers()}
        packages = {p.id: p for p in self.repo.get_packages()}
        term = search.strip().lower()

        def matches(booking: Booking) -> bool:
            if term:
                customer = customers.get(booking.customer_id)
                if term not in (booking.id or "").lower() and not (
                    customer and term in customer.name.lower()
                ):
                    return False
            if status and booking.status != status:
                return False
            if package_type and not booking.is_ticket_only:
                package = packages.get(booking.package_id)
                if not package or package.type != package_type:
                    return False
            if start_date and booking.booking_date < start_date:
                return False
            if end_date and booking.booking_date > end_date:
                return False
            return True

        return [b for b in self.repo.get_bookings() if matches(b)]

    def save_booking(self, draft: BookingDraft, actor: User) -> RuleResult:
        if draft.id:
            existing = self.get_booking(draft.id)
            if "booking_date" not in draft.model_fields_set:
                draft = draft.model_copy(update={"booking_date": existing.booking_date})

        result = validate_and_normalize(draft, self.rule_context())
        if not result.ok:
            logger.info(
                "Booking %s rejected: %s (%s)",
                draft.id or "<new>", result.error.kind.value, result.error.field,
            )
            return result

        booking = result.value
        if draft.id:
            action = ActivityAction.UPDATED
        else:
            booking = booking.model_copy(update={"id": self._new_id("B", self.repo.get_bookings())})
            action = ActivityAction.CREATED

        self.repo.upsert_booking(booking)
        self.log_activity(
            actor, action, ActivityEntity.BOOKING, booking.id,
            f"Booking {booking.id} for {self._customer_name(booking.customer_id)}",
        )
        return RuleResult.success(booking)

    def delete_booking(self, booking_id: str, actor: User) -> Booking:
        booking = self.get_booking(booking_id)
        details = f"Booking {booking_id} for {self._customer_name(booking.customer_id)}"
        self.repo.delete_booking(booking_id)
        self.log_activity(actor, ActivityAction.DELETED, ActivityEntity.BOOKING, booking_id, details)
        return booking

    def booking_financials(self, booking_id: str) -> BookingFinancials:
        booking = self.get_booking(booking_id)
        return project_booking(booking, self.repo.get_packages(), self.repo.get_payments())

    # ===============================
    # PAYMENTS & EXPENSES
    # ===============================
    def add_payment(self, data: PaymentIn, actor: User) -> Payment:
        self.get_booking(data.booking_id)
        payment = Payment(id=self._new_id("PAY", self.repo.get_payments()), **data.model_dump())
        self.repo.upsert_payment(payment)
        self.log_activity(
            actor, ActivityAction.CREATED, ActivityEntity.PAYMENT, payment.id,
            f"of {payment.amount:,} to Booking {payment.booking_id}",
        )
        return payment

    def delete_payment(self, payment_id: str, actor: User) -> Payment:
        payment = self._require("Payment", payment_id, self.repo.delete_payment(payment_id))
        self.log_activity(
            actor, ActivityAction.DELETED, ActivityEntity.PAYMENT, payment_id,
            f"of {payment.amount:,} to Booking {payment.booking_id}",
        )
        return payment

    def add_expense(self, data: ExpenseIn, actor: User) -> Expense:
        names = {c.name for c in self.repo.get_expense_categories()}
        if data.category not in names:
            raise ServiceError(f"Unknown expense category: {data.category}")
        expense = Expense(id=self._new_id("E", self.repo.get_expenses()), **data.model_dump())
        self.repo.upsert_expense(expense)
        self.log_activity(
            actor, ActivityAction.CREATED, ActivityEntity.EXPENSE, expense.id,
            f"of {expense.amount:,} for {expense.description}",
        )
        return expense

    def delete_expense(self, expense_id: str, actor: User) -> Expense:
        expense = self._require("Expense", expense_id, self.repo.delete_expense(expense_id))
        self.log_activity(
            actor, ActivityAction.DELETED, ActivityEntity.EXPENSE, expense_id,
            f"of {expense.amount:,} for {expense.description}",
        )
        return expense

    def save_expense_category(self, data: ExpenseCategoryIn, actor: User) -> ExpenseCategory:
        if data.id:
            self._require("ExpenseCategory", data.id, self.repo.get_expense_category(data.id))
            category = ExpenseCategory(id=data.id, name=data.name)
            action = ActivityAction.UPDATED
        else:
            category = ExpenseCategory(
                id=self._new_id("cat-", self.repo.get_expense_categories()), name=data.name
            )
            action = ActivityAction.CREATED
        self.repo.upsert_expense_category(category)
        self.log_activity(actor, action, ActivityEntity.EXPENSE_CATEGORY, category.id, category.name)
        return category

    def delete_expense_category(self, category_id: str, actor: User) -> ExpenseCategory:
        category = self._require(
            "ExpenseCategory", category_id, self.repo.delete_expense_category(category_id)
        )
        self.log_activity(
            actor, ActivityAction.DELETED, ActivityEntity.EXPENSE_CATEGORY, category_id, category.name
        )
        return category

    # ===============================
    # TASKS
    # ===============================
    def save_task(self, data: TaskIn, actor: User) -> Task:
        if data.booking_id:
            self.get_booking(data.booking_id)
        fields = data.model_dump(exclude={"id"})
        if data.id:
            self._require("Task", data.id, self.repo.get_task(data.id))
            task = Task(id=data.id, **fields)
            action = ActivityAction.UPDATED
        else:
            task = Task(id=self._new_id("T", self.repo.get_tasks()), **fields)
            action = ActivityAction.CREATED
        self.repo.upsert_task(task)
        self.log_activity(actor, action, ActivityEntity.TASK, task.id, task.title)
        return task

    def toggle_task(self, task_id: str, actor: User) -> Task:
        task = self._require("Task", task_id, self.repo.get_task(task_id))
        task = task.model_copy(update={"is_completed": not task.is_completed})
        self.repo.upsert_task(task)
        action = ActivityAction.COMPLETED if task.is_completed else ActivityAction.INCOMPLETE
        self.log_activity(actor, action, ActivityEntity.TASK, task_id, task.title)
        return task

    def delete_task(self, task_id: str, actor: User) -> Task:
        task = self._require("Task", task_id, self.repo.delete_task(task_id))
        self.log_activity(actor, ActivityAction.DELETED, ActivityEntity.TASK, task_id, task.title)
        return task

    # ===============================
    # USERS
    # ===============================
    def authenticate(self, username: str, password: str) -> User | None:
        user = self.repo.get_user(username)
        if user is None or not verify_password(password, user.password_hash):
            return None
        return user

    def save_user(self, data: UserIn, actor: User) -> User:
        existing = self.repo.get_user(data.id)
        if existing:
            password_hash = hash_password(data.password) if data.password else existing.password_hash
            action = ActivityAction.UPDATED
        else:
            if not data.password:
                raise ServiceError("Password is required for new users")
            password_hash = hash_password(data.password)
            action = ActivityAction.CREATED

        user = User(id=data.id, name=data.name, role=data.role, password_hash=password_hash)
        self.repo.upsert_user(user)
        self.log_activity(actor, action, ActivityEntity.USER, user.id, f"{user.name} ({user.role.value})")
        return user

    def change_password(self, actor: User, current_password: str, new_password: str) -> User:
        """Signed-in user's own password change; the current password must match."""
        user = self._require("User", actor.id, self.repo.get_user(actor.id))
        if not verify_password(current_password, user.password_hash):
            raise ServiceError("Current password is incorrect")

        user = user.model_copy(update={"password_hash": hash_password(new_password)})
        self.repo.upsert_user(user)
        self.log_activity(actor, ActivityAction.UPDATED, ActivityEntity.USER, user.id, "Password changed")
        return user

    def delete_user(self, user_id: str, actor: User) -> User:
        if user_id == actor.id:
            raise ServiceError("You cannot delete your own account")
        user = self._require("User", user_id, self.repo.delete_user(user_id))
        self.log_activity(
            actor, ActivityAction.DELETED, ActivityEntity.USER, user_id, f"{user.name} ({user.role.value})"
        )
        return user

    # ===============================
    # REPORTING
    # ===============================
    def financial_summary(self):
        return financial_summary(
            self.repo.get_bookings(), self.repo.get_payments(), self.repo.get_expenses()
        )

    def dashboard(self) -> dict:
        return dashboard_stats(
            self.repo.get_customers(),
            self.repo.get_bookings(),
            self.repo.get_payments(),
            self.repo.get_expenses(),
        )
