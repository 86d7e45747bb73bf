"""
Booking rule engine

Validates and normalizes booking drafts against the customer and package
collections:
- ticket-only sales vs. package bookings
- beds for children under ten
- room / meal completeness
- flight details completeness
- passport validity of six months beyond departure

Expected failures are returned as values (RuleResult with a RuleViolation),
never raised. Nothing in this module touches storage or formats messages.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Iterable, Sequence

from dateutil.relativedelta import relativedelta

from schemas import (
    Booking,
    BookingDraft,
    BookingStatus,
    Customer,
    CustomerDraft,
    FlightDetails,
    MealType,
    Package,
    RoomType,
)

CHILD_AGE_LIMIT = 10
PASSPORT_VALIDITY_MONTHS = 6

DEFAULT_ROOM_TYPE = RoomType.DOUBLE
DEFAULT_MEALS = MealType.BREAKFAST

# ticket sales move up to Ticketed from these, never back from later ones
PRE_TICKETED_STATUSES = (
    BookingStatus.PENDING,
    BookingStatus.DEPOSITED,
    BookingStatus.CONFIRMED,
    BookingStatus.VISA_PROCESSED,
)


class ViolationKind(str, Enum):
    MISSING_CUSTOMER = "MissingCustomer"
    MISSING_PACKAGE = "MissingPackage"
    INVALID_TICKET_FINANCIALS = "InvalidTicketFinancials"
    INCOMPLETE_ROOM_INFO = "IncompleteRoomInfo"
    INCOMPLETE_FLIGHT_DETAILS = "IncompleteFlightDetails"
    PASSPORT_EXPIRING_TOO_SOON = "PassportExpiringTooSoon"
    PASSPORT_SOON_TO_EXPIRE = "PassportSoonToExpire"


@dataclass(frozen=True)
class RuleViolation:
    kind: ViolationKind
    field: str | None = None
    missing_fields: tuple[str, ...] = ()
    min_expiry: date | None = None
    passport_expiry: date | None = None

    @property
    def is_referential(self) -> bool:
        return self.kind in (ViolationKind.MISSING_CUSTOMER, ViolationKind.MISSING_PACKAGE)

    @property
    def is_passport_rule(self) -> bool:
        return self.kind in (
            ViolationKind.PASSPORT_EXPIRING_TOO_SOON,
            ViolationKind.PASSPORT_SOON_TO_EXPIRE,
        )

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"kind": self.kind.value, "field": self.field}
        if self.missing_fields:
            data["missingFields"] = list(self.missing_fields)
        if self.min_expiry:
            data["minExpiry"] = self.min_expiry.isoformat()
        if self.passport_expiry:
            data["passportExpiry"] = self.passport_expiry.isoformat()
        return data


@dataclass(frozen=True)
class RuleResult:
    value: Any = None
    error: RuleViolation | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value) -> "RuleResult":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ViolationKind, **details) -> "RuleResult":
        return cls(error=RuleViolation(kind=kind, **details))


@dataclass(frozen=True)
class RuleContext:
    """Read-only view of the collections a booking is checked against."""

    customers: Sequence[Customer] = field(default_factory=tuple)
    packages: Sequence[Package] = field(default_factory=tuple)
    bookings: Sequence[Booking] = field(default_factory=tuple)

    def find_customer(self, customer_id: str) -> Customer | None:
        if not customer_id:
            return None
        return next((c for c in self.customers if c.id == customer_id), None)

    def find_package(self, package_id: str) -> Package | None:
        if not package_id:
            return None
        return next((p for p in self.packages if p.id == package_id), None)


# ===============================
# PASSPORT RULE
# ===============================
def add_months(day: date, months: int) -> date:
    """
    Calendar-month addition that rolls day overflow into the next month.

    Jan 31 + 1 month is Mar 3 (Mar 2 in leap years), not Feb 28: the month is
    advanced on the first of the month and the day offset is added
    back afterwards.
    """
    first = day.replace(day=1) + relativedelta(months=months)
    return first + timedelta(days=day.day - 1)


def minimum_passport_expiry(reference_date: date) -> date:
    return add_months(reference_date, PASSPORT_VALIDITY_MONTHS)


def check_passport_validity(expiry: date, reference_date: date) -> bool:
    return expiry >= minimum_passport_expiry(reference_date)


def _passport_violation(expiry: date, reference_date: date, kind: ViolationKind) -> RuleResult | None:
    if check_passport_validity(expiry, reference_date):
        return None
    return RuleResult.failure(
        kind,
        field="passport_expiry",
        min_expiry=minimum_passport_expiry(reference_date),
        passport_expiry=expiry,
    )


def earliest_upcoming_departure(customer_id: str, bookings: Iterable[Booking], today: date) -> date | None:
    upcoming = [
        b.flight_details.departure_date
        for b in bookings
        if b.customer_id == customer_id
        and b.flight_details is not None
        and b.flight_details.departure_date > today
    ]
    return min(upcoming, default=None)


def validate_customer(
    draft: CustomerDraft,
    bookings: Iterable[Booking],
    today: date,
    flight_departure_date: date | None = None,
) -> RuleResult:
    """
    Passport check for a customer record.

    The reference date is the flight the customer is being added for, then the
    customer's earliest upcoming departure, then today. Only the today case is
    reported as PASSPORT_SOON_TO_EXPIRE.
    """
    reference_date = flight_departure_date
    if reference_date is None and draft.id:
        reference_date = earliest_upcoming_departure(draft.id, bookings, today)

    if reference_date is None:
        failure = _passport_violation(draft.passport_expiry, today, ViolationKind.PASSPORT_SOON_TO_EXPIRE)
    else:
        failure = _passport_violation(draft.passport_expiry, reference_date, ViolationKind.PASSPORT_EXPIRING_TOO_SOON)

    return failure or RuleResult.success(draft)


# ===============================
# BOOKING RULES
# ===============================
def _is_positive(amount: int | None) -> bool:
    return amount is not None and amount > 0


def validate_and_normalize(draft: BookingDraft, context: RuleContext) -> RuleResult:
    customer = context.find_customer(draft.customer_id)
    if customer is None:
        return RuleResult.failure(ViolationKind.MISSING_CUSTOMER, field="customer_id")

    values = draft.model_dump(exclude={"flight_details"})

    if draft.is_ticket_only:
        bad = [
            name
            for name in ("ticket_cost_price", "ticket_total_paid")
            if not _is_positive(values[name])
        ]
        if bad:
            return RuleResult.failure(
                ViolationKind.INVALID_TICKET_FINANCIALS,
                field=bad[0],
                missing_fields=tuple(bad),
            )
        values.update(package_id="", room_type=None, meals=None, without_bed=False, total_paid=0)
    else:
        if context.find_package(draft.package_id) is None:
            return RuleResult.failure(ViolationKind.MISSING_PACKAGE, field="package_id")
        values.update(
            total_paid=draft.total_paid or 0,
            ticket_cost_price=None,
            ticket_total_paid=None,
        )
        if customer.age < CHILD_AGE_LIMIT:
            values["without_bed"] = True

        if values["without_bed"]:
            values.update(room_type=None, meals=None)
        elif draft.room_type is None and draft.meals is None:
            return RuleResult.failure(
                ViolationKind.INCOMPLETE_ROOM_INFO,
                field="room_type",
                missing_fields=("room_type", "meals"),
            )
        else:
            values.update(
                room_type=draft.room_type or DEFAULT_ROOM_TYPE,
                meals=draft.meals or DEFAULT_MEALS,
            )

    flight = draft.flight_details
    flight_required = draft.is_ticket_only or (
        draft.status == BookingStatus.TICKETED and flight is not None
    )
    missing = flight.missing_fields() if flight is not None else [
        "airline", "flight_number", "departure_date", "return_date",
    ]
    if flight_required and missing:
        return RuleResult.failure(
            ViolationKind.INCOMPLETE_FLIGHT_DETAILS,
            field=missing[0],
            missing_fields=tuple(missing),
        )

    flight_details = None
    if flight is not None and not missing:
        flight_details = FlightDetails(
            airline=flight.airline.strip(),
            flight_number=flight.flight_number.strip(),
            departure_date=flight.departure_date,
            return_date=flight.return_date,
        )

    if flight_details is not None and customer.passport_expiry is not None:
        failure = _passport_violation(
            customer.passport_expiry,
            flight_details.departure_date,
            ViolationKind.PASSPORT_EXPIRING_TOO_SOON,
        )
        if failure:
            return failure

    if draft.is_ticket_only and flight_details is not None and draft.status in PRE_TICKETED_STATUSES:
        values["status"] = BookingStatus.TICKETED

    return RuleResult.success(Booking(**values, flight_details=flight_details))
