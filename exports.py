"""Spreadsheet exports: bookings, hotel rooming lists and list reports."""

import logging
from enum import Enum
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font

from finance import project_booking
from schemas import BookingStatus, RoomType

logger = logging.getLogger(__name__)

WITHOUT_BED_LABEL = "Without bed"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
SHEET_NAME_LIMIT = 31

ROOMING_LAYOUTS = ("standard", "rooms")


def display_label(value) -> str:
    if value is None or value == "":
        return "N/A"
    if isinstance(value, Enum):
        return value.value
    return str(value)


def _date(value) -> str:
    return value.strftime("%d.%m.%Y") if value else "N/A"


def _append_rows(sheet, rows: list[dict]):
    if not rows:
        return
    headers = list(rows[0].keys())
    sheet.append(headers)
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    for row in rows:
        sheet.append([row.get(h) for h in headers] if row else [])


def _autosize(workbook, wide_columns=()):
    for sheet in workbook.worksheets:
        for column in sheet.columns:
            column_letter = column[0].column_letter
            header = column[0].value
            if header in wide_columns:
                sheet.column_dimensions[column_letter].width = 50
                for cell in column[1:]:
                    cell.alignment = Alignment(wrap_text=True, vertical="top")
                continue
            max_length = 0
            for cell in column:
                value = cell.value
                cell.number_format = "#,##0" if isinstance(value, (int, float)) else cell.number_format
                if value is not None:
                    max_length = max(max_length, len(str(value)))
            sheet.column_dimensions[column_letter].width = max(20, min(max_length + 2, 40))


def _to_bytes(workbook) -> BytesIO:
    buffer = BytesIO()
    workbook.save(buffer)
    buffer.seek(0)
    return buffer


# ===============================
# BOOKINGS
# ===============================
def booking_rows(bookings, customers, packages, payments) -> list[dict]:
    customers_by_id = {c.id: c for c in customers}
    packages_by_id = {p.id: p for p in packages}
    rows = []

    for booking in bookings:
        customer = customers_by_id.get(booking.customer_id)
        package = packages_by_id.get(booking.package_id)
        financials = project_booking(booking, packages, payments)
        flight = booking.flight_details

        row = {
            "Booking ID": booking.id,
            "Customer Name": customer.name if customer else "N/A",
            "Passport Number": customer.passport_number if customer else "N/A",
            "Booking Date": _date(booking.booking_date),
            "Status": display_label(booking.status),
            "Airline": flight.airline if flight else "N/A",
            "Flight Number": flight.flight_number if flight else "N/A",
            "Departure Date": _date(flight.departure_date) if flight else "N/A",
            "Return Date": _date(flight.return_date) if flight else "N/A",
        }

        if booking.is_ticket_only:
            row.update({
                "Package Name": "Ticket-only sale",
                "Package Code": "N/A",
                "Room Type": "N/A",
                "Meals": "N/A",
                "Ticket Cost": booking.ticket_cost_price,
            })
        else:
            row.update({
                "Package Name": package.name if package else "N/A",
                "Package Code": package.package_code if package else "N/A",
                "Room Type": WITHOUT_BED_LABEL if booking.without_bed else display_label(booking.room_type),
                "Meals": "N/A" if booking.without_bed else display_label(booking.meals),
                "Ticket Cost": None,
            })

        row.update({
            "Price": financials.total_price,
            "Total Paid": financials.total_paid,
            "Amount Due": financials.remaining_balance,
            "Ticket Profit": financials.ticket_profit,
        })
        rows.append(row)

    return rows


def export_bookings(bookings, customers, packages, payments) -> BytesIO:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Bookings"
    _append_rows(sheet, booking_rows(bookings, customers, packages, payments))
    _autosize(workbook)
    return _to_bytes(workbook)


# ===============================
# HOTEL ROOMING LIST
# ===============================
def rooming_guests(bookings, customers, packages) -> dict[str, list[dict]]:
    """Guests of confirmed bookings grouped by hotel (Makkah and Madinah)."""
    customers_by_id = {c.id: c for c in customers}
    packages_by_id = {p.id: p for p in packages}
    hotels: dict[str, list[dict]] = {}

    for booking in bookings:
        if booking.status != BookingStatus.CONFIRMED:
            continue
        customer = customers_by_id.get(booking.customer_id)
        package = packages_by_id.get(booking.package_id)
        if not customer or not package:
            continue

        guest = {
            "name": customer.name,
            "gender": customer.gender,
            "age": customer.age,
            "room_type": booking.room_type,
            "meals": booking.meals,
            "without_bed": booking.without_bed,
        }
        for hotel in (package.hotel_makkah, package.hotel_madinah):
            if hotel:
                hotels.setdefault(hotel, []).append(guest)

    return hotels


def _guest_line(guest) -> str:
    return f"{guest['name']} ({display_label(guest['gender'])}, {guest['age']})"


def room_assignments(guests: list[dict]) -> list[dict]:
    """Fill rooms of each type up to capacity, then list guests without a bed."""
    with_beds = [g for g in guests if not g["without_bed"]]
    without_beds = [g for g in guests if g["without_bed"]]

    by_room_type: dict[RoomType, list[dict]] = {}
    for guest in with_beds:
        by_room_type.setdefault(guest["room_type"] or RoomType.DOUBLE, []).append(guest)

    rows = []
    for room_type, members in by_room_type.items():
        capacity = room_type.capacity
        for number, start in enumerate(range(0, len(members), capacity), start=1):
            room = members[start:start + capacity]
            rows.append({
                "Room Type": display_label(room_type),
                "Room #": number,
                "Meals": display_label(room[0]["meals"]),
                "Guests": "\n".join(_guest_line(g) for g in room),
            })

    if without_beds:
        rows.append({})
        rows.append({
            "Room Type": WITHOUT_BED_LABEL.upper(),
            "Room #": "",
            "Meals": "",
            "Guests": "\n".join(_guest_line(g) for g in without_beds),
        })
    return rows


def _standard_rows(guests: list[dict]) -> list[dict]:
    return [
        {
            "Customer Name": g["name"],
            "Gender": display_label(g["gender"]),
            "Age": g["age"],
            "Room Type": WITHOUT_BED_LABEL if g["without_bed"] else display_label(g["room_type"]),
            "Meals": "N/A" if g["without_bed"] else display_label(g["meals"]),
        }
        for g in guests
    ]


def hotel_rooming_list(bookings, customers, packages, layout: str = "standard") -> BytesIO:
    if layout not in ROOMING_LAYOUTS:
        raise ValueError(f"Unknown rooming list layout: {layout}")

    hotels = rooming_guests(bookings, customers, packages)
    workbook = Workbook()
    workbook.remove(workbook.active)

    for hotel, guests in hotels.items():
        rows = room_assignments(guests) if layout == "rooms" else _standard_rows(guests)
        sheet = workbook.create_sheet(hotel[:SHEET_NAME_LIMIT])
        _append_rows(sheet, rows)

    if not workbook.worksheets:
        # openpyxl refuses to save a workbook without sheets
        workbook.create_sheet("Rooming List")

    _autosize(workbook, wide_columns=("Guests",))
    logger.info("Rooming list built for %d hotel(s), layout=%s", len(hotels), layout)
    return _to_bytes(workbook)


# ===============================
# LIST REPORTS
# ===============================
def export_report(report_type: str, snapshot) -> BytesIO:
    workbook = Workbook()
    sheet = workbook.active

    if report_type == "customerList":
        sheet.title = "Customer List"
        rows = [
            {"Customer Name": c.name, "Phone": c.phone, "Passport Number": c.passport_number}
            for c in snapshot.customers
        ]
    elif report_type == "bookingList":
        sheet.title = "Booking List"
        rows = [
            {
                "Booking ID": r["Booking ID"],
                "Customer": r["Customer Name"],
                "Package": r["Package Name"],
                "Status": r["Status"],
                "Total Paid": r["Total Paid"],
            }
            for r in booking_rows(snapshot.bookings, snapshot.customers, snapshot.packages, snapshot.payments)
        ]
    else:
        raise ValueError(f"Unknown report type: {report_type}")

    _append_rows(sheet, rows)
    _autosize(workbook)
    return _to_bytes(workbook)
