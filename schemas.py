from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _blank_to_none(value: Any) -> Any:
    # HTML forms send "" for untouched optional inputs
    if isinstance(value, str) and not value.strip():
        return None
    return value


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase JSON (the stored blob's key style)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -------------------
# ENUMS
# -------------------
class BookingStatus(str, Enum):
    PENDING = "Pending"
    DEPOSITED = "Deposited"
    CONFIRMED = "Confirmed"
    VISA_PROCESSED = "Visa Processed"
    TICKETED = "Ticketed"
    DEPARTED = "Departed"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class RoomType(str, Enum):
    DOUBLE = "Double"
    TRIPLE = "Triple"
    QUAD = "Quad"
    QUINTUPLE = "Quintuple"

    @property
    def capacity(self) -> int:
        return ROOM_CAPACITY[self]


ROOM_CAPACITY = {
    RoomType.DOUBLE: 2,
    RoomType.TRIPLE: 3,
    RoomType.QUAD: 4,
    RoomType.QUINTUPLE: 5,
}


class MealType(str, Enum):
    ONLY_BED = "Only Bed"
    BREAKFAST = "Breakfast"
    HALF_BOARD = "Half Board"
    FULL_BOARD = "Full Board"


class PackageType(str, Enum):
    HAJJ = "Hajj"
    UMRAH = "Umrah"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"


class PaymentMethod(str, Enum):
    CASH = "Cash"
    BANK_TRANSFER = "Bank Transfer"
    CREDIT_CARD = "Credit Card"


class DocumentType(str, Enum):
    PASSPORT = "passport"
    PHOTO = "photo"
    OTHER = "other"


class UserRole(str, Enum):
    ADMIN = "Admin"
    MANAGER = "Manager"
    STAFF = "Staff"


class TaskPriority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class ActivityAction(str, Enum):
    CREATED = "Created"
    UPDATED = "Updated"
    DELETED = "Deleted"
    COMPLETED = "Completed"
    INCOMPLETE = "Incomplete"


class ActivityEntity(str, Enum):
    CUSTOMER = "Customer"
    PACKAGE = "Package"
    BOOKING = "Booking"
    PAYMENT = "Payment"
    EXPENSE = "Expense"
    TASK = "Task"
    USER = "User"
    DOCUMENT = "Document"
    EXPENSE_CATEGORY = "ExpenseCategory"


OptionalDate = Annotated[date | None, BeforeValidator(_blank_to_none)]
OptionalRoomType = Annotated[RoomType | None, BeforeValidator(_blank_to_none)]
OptionalMealType = Annotated[MealType | None, BeforeValidator(_blank_to_none)]


# -------------------
# ENTITIES (STORED)
# -------------------
class DocumentFile(CamelModel):
    id: str
    name: str
    url: str
    type: DocumentType = DocumentType.OTHER


class Customer(CamelModel):
    id: str
    name: str
    phone: str = ""
    email: str = ""
    passport_number: str = ""
    passport_expiry: OptionalDate = None
    documents: list[DocumentFile] = Field(default_factory=list)
    date_added: date
    age: int = Field(default=0, ge=0)
    gender: Gender = Gender.MALE


class Package(CamelModel):
    id: str
    package_code: str
    name: str
    type: PackageType
    duration: int = Field(ge=0)
    price: int = Field(ge=0)
    description: str = ""
    hotel_makkah: str = ""
    hotel_madinah: str = ""
    includes: list[str] = Field(default_factory=list)
    is_featured: bool = False


class FlightDetails(CamelModel):
    airline: str
    flight_number: str
    departure_date: date
    return_date: date


class Booking(CamelModel):
    # id stays None until the caller assigns one on insert
    id: str | None = None
    customer_id: str
    package_id: str = ""
    booking_date: date
    status: BookingStatus = BookingStatus.PENDING
    flight_details: FlightDetails | None = None
    room_type: OptionalRoomType = None
    meals: OptionalMealType = None
    without_bed: bool = False
    is_ticket_only: bool = False
    ticket_cost_price: int | None = None
    ticket_total_paid: int | None = None
    total_paid: int = 0


class Payment(CamelModel):
    id: str
    booking_id: str
    amount: int = Field(gt=0)
    payment_date: date
    method: PaymentMethod


class ExpenseCategory(CamelModel):
    id: str
    name: str


class Expense(CamelModel):
    id: str
    category: str
    description: str = ""
    amount: int = Field(gt=0)
    expense_date: date
    vat_amount: int | None = None
    paid_to: str | None = None


class Task(CamelModel):
    id: str
    title: str
    booking_id: str | None = None
    due_date: date
    priority: TaskPriority = TaskPriority.MEDIUM
    is_completed: bool = False


class User(CamelModel):
    id: str
    name: str
    role: UserRole
    password_hash: str = ""


class ActivityLogEntry(CamelModel):
    id: str
    timestamp: datetime
    user: str
    action: ActivityAction
    entity: ActivityEntity
    entity_id: str
    details: str


class AppSnapshot(CamelModel):
    customers: list[Customer] = Field(default_factory=list)
    packages: list[Package] = Field(default_factory=list)
    bookings: list[Booking] = Field(default_factory=list)
    payments: list[Payment] = Field(default_factory=list)
    expenses: list[Expense] = Field(default_factory=list)
    tasks: list[Task] = Field(default_factory=list)
    expense_categories: list[ExpenseCategory] = Field(default_factory=list)
    users: list[User] = Field(default_factory=list)
    activity_log: list[ActivityLogEntry] = Field(default_factory=list)


# -------------------
# DRAFTS / INPUT
# -------------------
class FlightDetailsDraft(CamelModel):
    airline: str = ""
    flight_number: str = ""
    departure_date: OptionalDate = None
    return_date: OptionalDate = None

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.airline.strip():
            missing.append("airline")
        if not self.flight_number.strip():
            missing.append("flight_number")
        if self.departure_date is None:
            missing.append("departure_date")
        if self.return_date is None:
            missing.append("return_date")
        return missing

    def is_complete(self) -> bool:
        return not self.missing_fields()


class BookingDraft(CamelModel):
    id: str | None = None
    customer_id: str = ""
    package_id: str = ""
    booking_date: date = Field(default_factory=date.today)
    status: BookingStatus = BookingStatus.PENDING
    total_paid: int | None = 0
    room_type: OptionalRoomType = None
    meals: OptionalMealType = None
    without_bed: bool = False
    is_ticket_only: bool = False
    ticket_cost_price: int | None = None
    ticket_total_paid: int | None = None
    # presence means the operator opened the flight section
    flight_details: FlightDetailsDraft | None = None


class CustomerDraft(CamelModel):
    id: str | None = None
    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: str = ""
    passport_number: str = Field(min_length=1)
    passport_expiry: date
    age: int = Field(gt=0)
    gender: Gender = Gender.MALE


class PackageIn(CamelModel):
    id: str | None = None
    package_code: str = Field(min_length=1)
    name: str = Field(min_length=1)
    type: PackageType
    duration: int = Field(gt=0)
    price: int = Field(ge=0)
    description: str = ""
    hotel_makkah: str = ""
    hotel_madinah: str = ""
    includes: list[str] = Field(default_factory=list)
    is_featured: bool = False


class PaymentIn(CamelModel):
    booking_id: str = Field(min_length=1)
    amount: int = Field(gt=0)
    payment_date: date = Field(default_factory=date.today)
    method: PaymentMethod = PaymentMethod.CASH


class ExpenseIn(CamelModel):
    category: str = Field(min_length=1)
    description: str = ""
    amount: int = Field(gt=0)
    expense_date: date = Field(default_factory=date.today)
    vat_amount: int | None = None
    paid_to: str | None = None


class ExpenseCategoryIn(CamelModel):
    id: str | None = None
    name: str = Field(min_length=1)


class TaskIn(CamelModel):
    id: str | None = None
    title: str = Field(min_length=1)
    booking_id: Annotated[str | None, BeforeValidator(_blank_to_none)] = None
    due_date: date
    priority: TaskPriority = TaskPriority.MEDIUM
    is_completed: bool = False


class UserIn(CamelModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    role: UserRole = UserRole.STAFF
    password: Annotated[str | None, BeforeValidator(_blank_to_none)] = None


class PasswordChangeIn(CamelModel):
    current_password: str
    new_password: str = Field(min_length=1)


class UserOut(CamelModel):
    id: str
    name: str
    role: UserRole


class DocumentIn(CamelModel):
    name: str = Field(min_length=1)
    url: str = Field(min_length=1)
    type: DocumentType = DocumentType.OTHER


# -------------------
# ADMIN AUTH
# -------------------
class LoginIn(BaseModel):
    username: str
    password: str
