from datetime import date, datetime

import pytest

from booking_rules import ViolationKind
from schemas import (
    ActivityAction,
    BookingDraft,
    BookingStatus,
    CustomerDraft,
    DocumentIn,
    ExpenseCategoryIn,
    ExpenseIn,
    FlightDetailsDraft,
    MealType,
    PackageIn,
    PackageType,
    PaymentIn,
    RoomType,
    TaskIn,
    UserIn,
    UserRole,
)
from services import NotFoundError, ServiceError, generate_id


def test_generate_id_continues_daily_sequence():
    now = datetime(2024, 1, 15, 10, 0)
    existing = ["B20240115-0001", "B20240115-0007", "B20240114-0009", "B001", None]

    assert generate_id("B", existing, now) == "B20240115-0008"
    assert generate_id("PAY", [], now) == "PAY20240115-0001"


def test_new_booking_gets_id_and_activity(service, admin):
    draft = BookingDraft(customer_id="C002", package_id="P01", booking_date=date(2024, 1, 15),
                         room_type=RoomType.TRIPLE, meals=MealType.HALF_BOARD)

    result = service.save_booking(draft, admin)

    assert result.ok
    booking = result.value
    assert booking.id == "B20240115-0001"
    assert service.repo.get_bookings()[0] == booking
    entry = service.repo.get_activity_log()[0]
    assert entry.action == ActivityAction.CREATED
    assert entry.user == "Admin User"
    assert entry.details == "Booking B20240115-0001 for Fatima Ali"


def test_rejected_booking_is_not_stored(service, admin):
    draft = BookingDraft(customer_id="C001", is_ticket_only=True, ticket_cost_price=0, ticket_total_paid=100)

    result = service.save_booking(draft, admin)

    assert result.error.kind == ViolationKind.INVALID_TICKET_FINANCIALS
    assert len(service.repo.get_bookings()) == 7
    assert service.repo.get_activity_log() == []


def test_update_unknown_booking_raises(service, admin):
    with pytest.raises(NotFoundError):
        service.save_booking(BookingDraft(id="B999", customer_id="C001", package_id="P01"), admin)


def test_updating_booking_keeps_its_id(service, admin):
    existing = service.get_booking("B005")
    draft = BookingDraft.model_validate({**existing.model_dump(), "status": BookingStatus.CONFIRMED})

    booking = service.save_booking(draft, admin).value

    assert booking.id == "B005"
    assert service.get_booking("B005").status == BookingStatus.CONFIRMED
    assert service.repo.get_activity_log()[0].action == ActivityAction.UPDATED


def test_ticket_sale_flow(service, staff):
    draft = BookingDraft(
        customer_id="C001", is_ticket_only=True, ticket_cost_price=9000, ticket_total_paid=10500,
        flight_details=FlightDetailsDraft(airline="EgyptAir", flight_number="MS123",
                                          departure_date=date(2024, 3, 1), return_date=date(2024, 3, 10)),
    )

    booking = service.save_booking(draft, staff).value
    financials = service.booking_financials(booking.id)

    assert booking.status == BookingStatus.TICKETED
    assert financials.remaining_balance == 0
    assert financials.ticket_profit == 1500


def test_payments_drive_remaining_balance(service, admin):
    before = service.booking_financials("B005").remaining_balance

    service.add_payment(PaymentIn(booking_id="B005", amount=10000, payment_date=date(2024, 1, 15)), admin)

    assert service.booking_financials("B005").remaining_balance == before - 10000


def test_payment_for_unknown_booking_raises(service, admin):
    with pytest.raises(NotFoundError):
        service.add_payment(PaymentIn(booking_id="B404", amount=100), admin)


def test_filter_bookings(service):
    assert [b.id for b in service.filter_bookings(search="fatima")] == ["B002", "B005"]
    assert [b.id for b in service.filter_bookings(package_type=PackageType.HAJJ)] == ["B004", "B007"]
    assert [b.id for b in service.filter_bookings(status=BookingStatus.TICKETED)] == ["B002", "B007"]
    assert [b.id for b in service.filter_bookings(start_date=date(2024, 2, 1), end_date=date(2024, 3, 31))] == [
        "B005", "B006",
    ]


def test_new_customer_with_short_passport_is_rejected(service, admin):
    draft = CustomerDraft(name="Khaled", phone="+2010", passport_number="X1",
                          passport_expiry=date(2024, 5, 1), age=30)

    result = service.save_customer(draft, admin)

    assert result.error.kind == ViolationKind.PASSPORT_SOON_TO_EXPIRE
    assert len(service.repo.get_customers()) == 5


def test_customer_update_keeps_documents_and_date_added(service, admin):
    service.add_document("C001", DocumentIn(name="passport.pdf", url="/files/p.pdf", type="passport"), admin)
    current = service.get_customer("C001")
    draft = CustomerDraft(id="C001", name="Ahmed M.", phone=current.phone, passport_number=current.passport_number,
                          passport_expiry=current.passport_expiry, age=36)

    customer = service.save_customer(draft, admin).value

    assert customer.name == "Ahmed M."
    assert customer.date_added == date(2023, 10, 15)
    assert [d.name for d in customer.documents] == ["passport.pdf"]


def test_new_customer_gets_today_as_date_added(service, admin):
    draft = CustomerDraft(name="Khaled", phone="+2010", passport_number="X1",
                          passport_expiry=date(2030, 5, 1), age=30)

    customer = service.save_customer(draft, admin).value

    assert customer.id == "C20240115-0001"
    assert customer.date_added == date(2024, 1, 15)
    assert customer.documents == []


def test_delete_document(service, admin):
    document = service.add_document("C002", DocumentIn(name="photo.jpg", url="/files/x.jpg"), admin)

    service.delete_document("C002", document.id, admin)

    assert service.get_customer("C002").documents == []
    with pytest.raises(NotFoundError):
        service.delete_document("C002", document.id, admin)


def test_package_crud(service, admin):
    data = PackageIn(package_code="UMR-RAM-7", name="Ramadan Umrah", type=PackageType.UMRAH,
                     duration=7, price=45000)

    package = service.save_package(data, admin)
    updated = service.save_package(data.model_copy(update={"id": package.id, "price": 47000}), admin)
    service.delete_package(package.id, admin)

    assert updated.price == 47000
    assert service.repo.get_package(package.id) is None
    with pytest.raises(NotFoundError):
        service.delete_package(package.id, admin)


def test_expense_needs_known_category(service, admin):
    with pytest.raises(ServiceError):
        service.add_expense(ExpenseIn(category="Snacks", amount=100), admin)

    expense = service.add_expense(ExpenseIn(category="Visa Fees", amount=1200, description="Visa batch"), admin)

    assert service.financial_summary().expenses_by_category["Visa Fees"] == 1200
    assert expense.id == "E20240115-0001"


def test_expense_category_ids(service, admin):
    category = service.save_expense_category(ExpenseCategoryIn(name="Hotels"), admin)

    assert category.id == "cat-20240115-0001"


def test_toggle_task_logs_completion(service, admin):
    task = service.toggle_task("T001", admin)
    assert task.is_completed is True
    assert service.repo.get_activity_log()[0].action == ActivityAction.COMPLETED

    task = service.toggle_task("T001", admin)
    assert task.is_completed is False
    assert service.repo.get_activity_log()[0].action == ActivityAction.INCOMPLETE


def test_task_linked_to_unknown_booking_raises(service, admin):
    with pytest.raises(NotFoundError):
        service.save_task(TaskIn(title="Visa", booking_id="B404", due_date=date(2024, 2, 1)), admin)


def test_users(service, admin):
    with pytest.raises(ServiceError):
        service.save_user(UserIn(id="sara.k", name="Sara K", role=UserRole.STAFF), admin)

    service.save_user(UserIn(id="sara.k", name="Sara K", password="secret"), admin)
    service.save_user(UserIn(id="sara.k", name="Sara Kamal", role=UserRole.MANAGER), admin)

    user = service.authenticate("sara.k", "secret")
    assert user.name == "Sara Kamal"
    assert user.role == UserRole.MANAGER
    assert service.authenticate("sara.k", "wrong") is None

    with pytest.raises(ServiceError):
        service.delete_user("admin", admin)


def test_seed_users_can_log_in(service):
    assert service.authenticate("admin", "admin_password").role == UserRole.ADMIN
    assert service.authenticate("mona.s", "staff_password").role == UserRole.STAFF
    assert service.authenticate("nobody", "x") is None


def test_change_own_password(service, staff):
    with pytest.raises(ServiceError):
        service.change_password(staff, "wrong", "new_secret")

    service.change_password(staff, "staff_password", "new_secret")

    assert service.authenticate("ali.h", "new_secret") is not None
    assert service.authenticate("ali.h", "staff_password") is None
    entry = service.repo.get_activity_log()[0]
    assert (entry.action, entry.entity, entry.entity_id) == (ActivityAction.UPDATED, "User", "ali.h")


def test_booking_update_without_date_keeps_stored_date(service, admin):
    draft = BookingDraft(id="B005", customer_id="C002", package_id="P01",
                         room_type=RoomType.QUINTUPLE, meals=MealType.BREAKFAST)

    booking = service.save_booking(draft, admin).value

    assert booking.booking_date == date(2024, 2, 1)
