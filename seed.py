"""Bundled dataset used when no stored snapshot can be loaded."""

from datetime import date, timedelta
from functools import lru_cache

from auth import hash_password
from schemas import AppSnapshot

SEED_USERS = [
    ("admin", "Admin User", "Admin", "admin_password"),
    ("hassan.o", "Hassan Omar", "Manager", "manager_password"),
    ("ali.h", "Ali Hassan", "Staff", "staff_password"),
    ("mona.s", "Mona Said", "Staff", "staff_password"),
]

SEED_CUSTOMERS = [
    {"id": "C001", "name": "Ahmed Mohamed", "phone": "+201012345678", "email": "ahmed@email.com", "passportNumber": "A12345678", "passportExpiry": "2028-05-10", "documents": [], "dateAdded": "2023-10-15", "age": 35, "gender": "Male"},
    {"id": "C002", "name": "Fatima Ali", "phone": "+201187654321", "email": "fatima@email.com", "passportNumber": "B87654321", "passportExpiry": "2029-11-20", "documents": [], "dateAdded": "2023-10-18", "age": 28, "gender": "Female"},
    {"id": "C003", "name": "Youssef Ibrahim", "phone": "+201298765432", "email": "youssef@email.com", "passportNumber": "C54321678", "passportExpiry": "2027-01-30", "documents": [], "dateAdded": "2023-11-01", "age": 42, "gender": "Male"},
    {"id": "C004", "name": "Omar Ahmed", "phone": "+201012345678", "email": "ahmed@email.com", "passportNumber": "D11122233", "passportExpiry": "2030-01-01", "documents": [], "dateAdded": "2024-03-01", "age": 5, "gender": "Male"},
    {"id": "C005", "name": "Sara Ali (Infant)", "phone": "+201187654321", "email": "fatima@email.com", "passportNumber": "E44455566", "passportExpiry": "2031-01-01", "documents": [], "dateAdded": "2024-03-01", "age": 1, "gender": "Female"},
]

SEED_PACKAGES = [
    {"id": "P01", "packageCode": "UMR-ECO-15", "name": "15-Day Umrah Economy", "type": "Umrah", "duration": 15, "price": 35000, "description": "Economy package for a 15-day Umrah trip.", "hotelMakkah": "Al Kiswah Towers", "hotelMadinah": "Dar Al Eiman Al Manar", "includes": ["Visa", "Accommodation"], "isFeatured": False},
    {"id": "P02", "packageCode": "UMR-LUX-10", "name": "10-Day Umrah 5-Star", "type": "Umrah", "duration": 10, "price": 60000, "description": "Luxury 5-star package for Umrah.", "hotelMakkah": "Fairmont Makkah Clock Royal Tower", "hotelMadinah": "Anwar Al Madinah Mövenpick", "includes": ["Flights", "Visa", "5-Star Hotels", "Breakfast", "Private Transport"], "isFeatured": True},
    {"id": "P03", "packageCode": "HAJ-PREM-25", "name": "Hajj 2024 Premium", "type": "Hajj", "duration": 25, "price": 250000, "description": "Premium Hajj package with all services.", "hotelMakkah": "Raffles Makkah Palace", "hotelMadinah": "The Oberoi Madina", "includes": ["All Inclusive", "Flights"], "isFeatured": True},
]

SEED_BOOKINGS = [
    {"id": "B001", "customerId": "C001", "packageId": "P01", "bookingDate": "2023-11-05", "status": "Completed", "roomType": "Triple", "meals": "Full Board"},
    {"id": "B002", "customerId": "C002", "packageId": "P02", "bookingDate": "2023-11-10", "status": "Ticketed", "roomType": "Double", "meals": "Breakfast", "flightDetails": {"airline": "EgyptAir", "flightNumber": "MS644", "departureDate": "2023-12-10", "returnDate": "2023-12-20"}},
    {"id": "B003", "customerId": "C003", "packageId": "P01", "bookingDate": "2023-11-12", "status": "Visa Processed", "roomType": "Quad", "meals": "Half Board"},
    {"id": "B004", "customerId": "C001", "packageId": "P03", "bookingDate": "2024-01-20", "status": "Deposited", "roomType": "Double", "meals": "Only Bed", "flightDetails": {"airline": "Saudia", "flightNumber": "SV302", "departureDate": "2024-06-10", "returnDate": "2024-07-05"}},
    {"id": "B005", "customerId": "C002", "packageId": "P01", "bookingDate": "2024-02-01", "status": "Pending", "roomType": "Quintuple", "meals": "Breakfast"},
    {"id": "B006", "customerId": "C004", "packageId": "P02", "bookingDate": "2024-03-05", "status": "Confirmed", "withoutBed": True},
    {"id": "B007", "customerId": "C003", "packageId": "", "bookingDate": "2024-04-10", "status": "Ticketed", "isTicketOnly": True, "ticketCostPrice": 7500, "ticketTotalPaid": 8200, "flightDetails": {"airline": "Flynas", "flightNumber": "XY264", "departureDate": "2024-05-20", "returnDate": "2024-05-30"}},
]

SEED_PAYMENTS = [
    {"id": "PAY001", "bookingId": "B001", "amount": 35000, "paymentDate": "2023-11-05", "method": "Bank Transfer"},
    {"id": "PAY002", "bookingId": "B002", "amount": 60000, "paymentDate": "2023-11-10", "method": "Cash"},
    {"id": "PAY003", "bookingId": "B003", "amount": 35000, "paymentDate": "2023-11-12", "method": "Credit Card"},
    {"id": "PAY004", "bookingId": "B004", "amount": 100000, "paymentDate": "2024-01-20", "method": "Bank Transfer"},
    {"id": "PAY005", "bookingId": "B005", "amount": 5000, "paymentDate": "2024-02-01", "method": "Cash"},
    {"id": "PAY006", "bookingId": "B006", "amount": 15000, "paymentDate": "2024-03-05", "method": "Cash"},
]

SEED_EXPENSE_CATEGORIES = [
    {"id": f"cat-{i}", "name": name}
    for i, name in enumerate(
        ["Rent", "Bills", "Salaries", "Marketing", "Visa Fees", "Transportation", "Other"], start=1
    )
]

SEED_EXPENSES = [
    {"id": "E001", "category": "Rent", "description": "Office Rent - Nov 2023", "amount": 15000, "expenseDate": "2023-11-01", "paidTo": "Building Management"},
    {"id": "E002", "category": "Bills", "description": "Electricity and Internet", "amount": 2500, "expenseDate": "2023-11-25", "paidTo": "Utility Company", "vatAmount": 350},
    {"id": "E003", "category": "Salaries", "description": "Staff Salaries - Nov 2023", "amount": 50000, "expenseDate": "2023-11-30", "paidTo": "Employees"},
    {"id": "E004", "category": "Marketing", "description": "Social Media Campaign", "amount": 5000, "expenseDate": "2023-11-15", "paidTo": "Facebook Ads"},
]


def _seed_tasks(today: date) -> list[dict]:
    return [
        {"id": "T001", "title": "Confirm flight tickets for Fatima Ali", "bookingId": "B002", "dueDate": today, "priority": "High"},
        {"id": "T002", "title": "Follow up on visa status for Youssef Ibrahim", "bookingId": "B003", "dueDate": today + timedelta(days=2), "priority": "Medium"},
        {"id": "T003", "title": "Collect final payment from Ahmed Mohamed", "bookingId": "B004", "dueDate": today + timedelta(days=7), "priority": "Medium"},
        {"id": "T004", "title": "Prepare welcome kits for Hajj packages", "dueDate": today + timedelta(days=14), "priority": "Low"},
        {"id": "T005", "title": "Arrange hotel transport for B001", "bookingId": "B001", "dueDate": "2023-11-01", "priority": "High", "isCompleted": True},
    ]


@lru_cache(maxsize=None)
def _seed_password_hash(password: str) -> str:
    return hash_password(password)


def seed_snapshot(today: date | None = None) -> AppSnapshot:
    today = today or date.today()
    users = [
        {"id": uid, "name": name, "role": role, "passwordHash": _seed_password_hash(password)}
        for uid, name, role, password in SEED_USERS
    ]
    return AppSnapshot.model_validate({
        "customers": SEED_CUSTOMERS,
        "packages": SEED_PACKAGES,
        "bookings": SEED_BOOKINGS,
        "payments": SEED_PAYMENTS,
        "expenses": SEED_EXPENSES,
        "tasks": _seed_tasks(today),
        "expenseCategories": SEED_EXPENSE_CATEGORIES,
        "users": users,
        "activityLog": [],
    })
