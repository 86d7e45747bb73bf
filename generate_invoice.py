from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
import os
from datetime import datetime

from exports import WITHOUT_BED_LABEL, display_label
from finance import BookingFinancials, FinancialSummary, project_booking

COMPANY_NAME = "Nuba Flower Tours"
COMPANY_ADDRESS = "6 Sultan St. behind Egypt Air office, Aswan"
COMPANY_CONTACT = "Mobile: +201098888525 - Email: nft7@gmail.com"
CURRENCY = "EGP"

REPORT_TITLES = {
    "customerList": "Customer List",
    "bookingList": "Booking List",
    "financialSummary": "Financial Summary",
}


class InvoiceError(Exception):
    """The booking cannot be invoiced as it stands."""


def money(amount) -> str:
    return f"{CURRENCY} {amount or 0:,}"


def _output_path(output_dir: str, name: str) -> str:
    os.makedirs(output_dir, exist_ok=True)
    return os.path.join(output_dir, f"{name}.pdf")


def _draw_company_header(c, width, y):
    c.setFont("Helvetica-Bold", 18)
    c.setFillColorRGB(0.13, 0.77, 0.37)
    c.drawString(50, y, COMPANY_NAME)
    c.setFillColorRGB(0, 0, 0)

    y -= 15
    c.setFont("Helvetica", 9)
    c.drawString(50, y, COMPANY_ADDRESS)
    y -= 12
    c.drawString(50, y, COMPANY_CONTACT)
    return y - 30


def _draw_title(c, width, y, title, number_label, number, issued):
    c.setFont("Helvetica-Bold", 22)
    c.drawString(50, y, title.upper())
    c.setLineWidth(0.5)
    c.line(50, y - 6, width - 50, y - 6)

    y -= 25
    c.setFont("Helvetica", 10)
    c.drawRightString(width - 50, y, f"{number_label}: {number}")
    y -= 15
    c.drawRightString(width - 50, y, f"Date: {issued.strftime('%d-%m-%Y')}")
    return y - 25


def _draw_rows(c, width, y, rows):
    c.setFont("Helvetica", 10)
    for label, value in rows:
        c.drawString(50, y, f"{label}:")
        c.drawString(180, y, str(value))
        y -= 15
    return y


def _section(c, y, heading):
    c.setFont("Helvetica-Bold", 11)
    c.drawString(50, y, heading)
    return y - 18


def _ensure_space(c, y, height, needed=60):
    if y < needed:
        c.showPage()
        return height - 50
    return y


def generate_invoice(booking, customer, package, payments, financials: BookingFinancials,
                     output_dir="documents", issued=None):
    """
    Booking invoice PDF

    Package bookings show hotels, room and payment history; ticket-only sales
    show the flight. Amounts come from the booking's financial projection.
    Returns file path.
    """
    if booking.is_ticket_only and booking.flight_details is None:
        raise InvoiceError(f"Booking {booking.id} is a ticket sale without flight details")

    issued = issued or datetime.now()
    file_path = _output_path(output_dir, f"INV-{booking.id}")

    c = canvas.Canvas(file_path, pagesize=A4)
    width, height = A4
    y = height - 50

    # -------------------
    # HEADER
    # -------------------
    y = _draw_company_header(c, width, y)
    title = "Flight Ticket Invoice" if booking.is_ticket_only else "Invoice"
    y = _draw_title(c, width, y, title, "Invoice No", booking.id, issued)

    # -------------------
    # CUSTOMER DETAILS
    # -------------------
    y = _section(c, y, "Billed To:")
    y = _draw_rows(c, width, y, [
        ("Customer Name", customer.name if customer else "N/A"),
        ("Phone", (customer.phone if customer else "") or "N/A"),
        ("Passport Number", (customer.passport_number if customer else "") or "N/A"),
    ])
    y -= 15

    # -------------------
    # BOOKING DETAILS
    # -------------------
    y = _section(c, y, "Booking Details")
    rows = [
        ("Booking Date", booking.booking_date.strftime("%d-%m-%Y")),
        ("Status", display_label(booking.status)),
    ]
    if booking.is_ticket_only:
        rows.append(("Service", "Flight ticket"))
    elif package is not None:
        rows += [
            ("Package", f"{package.name} ({package.package_code})"),
            ("Duration", f"{package.duration} days"),
            ("Hotel Makkah", package.hotel_makkah or "N/A"),
            ("Hotel Madinah", package.hotel_madinah or "N/A"),
        ]
        if booking.without_bed:
            rows.append(("Room Type", WITHOUT_BED_LABEL))
        else:
            rows.append(("Room Type", display_label(booking.room_type)))
            rows.append(("Meals", display_label(booking.meals)))
    y = _draw_rows(c, width, y, rows)
    y -= 15

    if booking.flight_details is not None:
        flight = booking.flight_details
        y = _section(c, y, "Flight Details")
        y = _draw_rows(c, width, y, [
            ("Airline", flight.airline),
            ("Flight Number", flight.flight_number),
            ("Departure", flight.departure_date.strftime("%d-%m-%Y")),
            ("Return", flight.return_date.strftime("%d-%m-%Y")),
        ])
        y -= 15

    # -------------------
    # PAYMENT HISTORY
    # -------------------
    booking_payments = [p for p in payments if p.booking_id == booking.id]
    if not booking.is_ticket_only and booking_payments:
        y = _section(c, y, "Payment History")
        c.setFont("Helvetica", 10)
        for payment in booking_payments:
            y = _ensure_space(c, y, height)
            c.drawString(50, y, payment.payment_date.strftime("%d-%m-%Y"))
            c.drawString(150, y, display_label(payment.method))
            c.drawRightString(width - 50, y, money(payment.amount))
            y -= 15
        y -= 15

    # -------------------
    # SUMMARY
    # -------------------
    y = _ensure_space(c, y, height, needed=100)
    c.setFont("Helvetica", 10)
    c.drawString(50, y, "Total Price:")
    c.drawRightString(width - 50, y, money(financials.total_price))
    y -= 15
    c.drawString(50, y, "Total Paid:")
    c.drawRightString(width - 50, y, money(financials.total_paid))
    y -= 15
    c.setFont("Helvetica-Bold", 11)
    c.drawString(50, y, "Amount Due:")
    c.drawRightString(width - 50, y, money(financials.remaining_balance))

    y -= 40

    # -------------------
    # FOOTER
    # -------------------
    c.setFont("Helvetica", 9)
    c.drawString(50, y, "Note: This is a computer-generated invoice. No signature required.")

    c.showPage()
    c.save()

    return file_path


def generate_receipt(payment, booking, customer, package, output_dir="documents", issued=None):
    """Payment receipt PDF. Returns file path."""
    issued = issued or datetime.now()
    file_path = _output_path(output_dir, f"RCPT-{payment.id}")

    c = canvas.Canvas(file_path, pagesize=A4)
    width, height = A4
    y = height - 50

    y = _draw_company_header(c, width, y)
    y = _draw_title(c, width, y, "Receipt", "Receipt ID", payment.id, issued)

    y = _section(c, y, "Received From:")
    y = _draw_rows(c, width, y, [
        ("Customer Name", customer.name if customer else "N/A"),
        ("Booking", booking.id),
        ("Package", package.name if package else "Flight ticket"),
    ])
    y -= 15

    y = _section(c, y, "Payment")
    y = _draw_rows(c, width, y, [
        ("Payment Date", payment.payment_date.strftime("%d-%m-%Y")),
        ("Method", display_label(payment.method)),
    ])
    c.setFont("Helvetica-Bold", 11)
    c.drawString(50, y, "Amount Received:")
    c.drawRightString(width - 50, y, money(payment.amount))

    y -= 40
    c.setFont("Helvetica", 9)
    c.drawString(50, y, "Note: This is a computer-generated receipt. No signature required.")

    c.showPage()
    c.save()

    return file_path


def _report_table(snapshot, report_type, summary: FinancialSummary | None):
    customers = {c.id: c for c in snapshot.customers}
    packages = {p.id: p for p in snapshot.packages}

    if report_type == "customerList":
        head = ["Customer Name", "Phone", "Passport Number", "Passport Expiry"]
        body = [
            [c.name, c.phone, c.passport_number,
             c.passport_expiry.isoformat() if c.passport_expiry else "N/A"]
            for c in snapshot.customers
        ]
    elif report_type == "bookingList":
        head = ["Booking ID", "Customer", "Package", "Status", "Total Paid"]
        body = []
        for b in snapshot.bookings:
            customer = customers.get(b.customer_id)
            package = packages.get(b.package_id)
            paid = project_booking(b, snapshot.packages, snapshot.payments).total_paid
            body.append([
                b.id,
                customer.name if customer else "N/A",
                "Ticket-only sale" if b.is_ticket_only else (package.name if package else "N/A"),
                display_label(b.status),
                money(paid),
            ])
    elif report_type == "financialSummary":
        head = ["Category", "Amount"]
        body = [
            ["Income", money(summary.total_income)],
            ["Expenses", money(summary.total_expenses)],
            ["Profit", money(summary.profit)],
        ]
    else:
        raise ValueError(f"Unknown report type: {report_type}")
    return head, body


def generate_report_pdf(report_type, snapshot, summary=None, output_dir="documents", issued=None):
    """Tabular list report (customers, bookings or financial summary). Returns file path."""
    head, body = _report_table(snapshot, report_type, summary)
    issued = issued or datetime.now()
    file_path = _output_path(output_dir, report_type)

    c = canvas.Canvas(file_path, pagesize=A4)
    width, height = A4
    y = height - 50

    c.setFont("Helvetica-Bold", 14)
    c.drawString(50, y, f"{COMPANY_NAME} - {REPORT_TITLES[report_type]}")
    c.setFont("Helvetica", 9)
    c.drawRightString(width - 50, y, issued.strftime("%d-%m-%Y"))
    y -= 30

    col_width = (width - 100) / len(head)

    def draw_head(y):
        c.setFont("Helvetica-Bold", 10)
        for i, title in enumerate(head):
            c.drawString(50 + i * col_width, y, title)
        c.line(50, y - 4, width - 50, y - 4)
        c.setFont("Helvetica", 9)
        return y - 18

    y = draw_head(y)
    for row in body:
        if y < 60:
            c.showPage()
            y = draw_head(height - 50)
        for i, value in enumerate(row):
            c.drawString(50 + i * col_width, y, str(value)[:40])
        y -= 14

    c.showPage()
    c.save()

    return file_path
