"""
Derived financial figures for bookings.

Invoices, receipts and spreadsheet exports read these projections instead of
recomputing balances on their own.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from schemas import Booking, BookingStatus, Customer, Expense, Package, Payment

INACTIVE_STATUSES = (BookingStatus.COMPLETED, BookingStatus.CANCELLED)


def total_paid_for_booking(booking: Booking, payments: Iterable[Payment]) -> int:
    if booking.is_ticket_only:
        return booking.ticket_total_paid or 0
    return sum(p.amount for p in payments if p.booking_id == booking.id)


def total_price(booking: Booking, package: Package | None) -> int:
    if booking.is_ticket_only:
        return booking.ticket_total_paid or 0
    return package.price if package is not None else 0


def remaining_balance(booking: Booking, package: Package | None, payments: Iterable[Payment]) -> int:
    # not clamped: overpayment shows up as a negative balance
    return total_price(booking, package) - total_paid_for_booking(booking, payments)


def ticket_profit(booking: Booking) -> int | None:
    if not booking.is_ticket_only:
        return None
    return (booking.ticket_total_paid or 0) - (booking.ticket_cost_price or 0)


@dataclass(frozen=True)
class BookingFinancials:
    booking_id: str | None
    total_price: int
    total_paid: int
    remaining_balance: int
    ticket_profit: int | None = None

    def to_dict(self) -> dict:
        return {
            "bookingId": self.booking_id,
            "totalPrice": self.total_price,
            "totalPaid": self.total_paid,
            "remainingBalance": self.remaining_balance,
            "ticketProfit": self.ticket_profit,
        }


def find_package(booking: Booking, packages: Iterable[Package]) -> Package | None:
    if booking.is_ticket_only or not booking.package_id:
        return None
    return next((p for p in packages if p.id == booking.package_id), None)


def project_booking(booking: Booking, packages: Iterable[Package], payments: Sequence[Payment]) -> BookingFinancials:
    package = find_package(booking, packages)
    price = total_price(booking, package)
    paid = total_paid_for_booking(booking, payments)
    return BookingFinancials(
        booking_id=booking.id,
        total_price=price,
        total_paid=paid,
        remaining_balance=price - paid,
        ticket_profit=ticket_profit(booking),
    )


@dataclass(frozen=True)
class FinancialSummary:
    total_income: int
    total_expenses: int
    profit: int
    ticket_revenue: int
    ticket_cost: int
    ticket_profit: int
    expenses_by_category: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "totalIncome": self.total_income,
            "totalExpenses": self.total_expenses,
            "profit": self.profit,
            "ticketRevenue": self.ticket_revenue,
            "ticketCost": self.ticket_cost,
            "ticketProfit": self.ticket_profit,
            "expensesByCategory": dict(self.expenses_by_category),
        }


def financial_summary(
    bookings: Iterable[Booking],
    payments: Iterable[Payment],
    expenses: Iterable[Expense],
) -> FinancialSummary:
    """Agency-wide income, expenses and profit, ticket sales included."""
    ticket_sales = [
        b for b in bookings
        if b.is_ticket_only and b.ticket_cost_price and b.ticket_total_paid
    ]
    ticket_revenue = sum(b.ticket_total_paid for b in ticket_sales)
    ticket_cost = sum(b.ticket_cost_price for b in ticket_sales)

    by_category: dict[str, int] = defaultdict(int)
    expense_total = 0
    for expense in expenses:
        by_category[expense.category] += expense.amount
        expense_total += expense.amount

    income = sum(p.amount for p in payments) + ticket_revenue
    spent = expense_total + ticket_cost
    return FinancialSummary(
        total_income=income,
        total_expenses=spent,
        profit=income - spent,
        ticket_revenue=ticket_revenue,
        ticket_cost=ticket_cost,
        ticket_profit=ticket_revenue - ticket_cost,
        expenses_by_category=dict(by_category),
    )


def dashboard_stats(
    customers: Sequence[Customer],
    bookings: Sequence[Booking],
    payments: Iterable[Payment],
    expenses: Iterable[Expense],
) -> dict:
    status_counts = Counter(b.status.value for b in bookings)
    return {
        "totalCustomers": len(customers),
        "activeBookings": sum(1 for b in bookings if b.status not in INACTIVE_STATUSES),
        "totalRevenue": sum(p.amount for p in payments),
        "totalExpenses": sum(e.amount for e in expenses),
        "bookingsByStatus": {s.value: status_counts.get(s.value, 0) for s in BookingStatus},
    }
