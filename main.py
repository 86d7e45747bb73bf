import os
import logging
from datetime import date, datetime, timedelta, timezone

from fastapi import FastAPI, Depends, HTTPException, Request, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, StreamingResponse
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

from database import Base, engine, SessionLocal
from exports import XLSX_MEDIA_TYPE, export_bookings, export_report, hotel_rooming_list, ROOMING_LAYOUTS
from finance import find_package
from generate_invoice import InvoiceError, REPORT_TITLES, generate_invoice, generate_receipt, generate_report_pdf
from repository import AgencyRepository, SqlBlobStore
from schemas import (
    BookingDraft,
    BookingStatus,
    CustomerDraft,
    DocumentIn,
    ExpenseCategoryIn,
    ExpenseIn,
    LoginIn,
    PackageIn,
    PackageType,
    PasswordChangeIn,
    PaymentIn,
    TaskIn,
    User,
    UserIn,
    UserOut,
    UserRole,
)
from services import AgencyService, NotFoundError, ServiceError


logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ===============================
# JWT CONFIG
# ===============================
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_THIS_SECRET_IN_PRODUCTION")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "480"))

DOCUMENTS_DIR = os.getenv("DOCUMENTS_DIR", "documents")

security = HTTPBearer()


def create_access_token(data: dict):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


# ===============================
# SERVICE
# ===============================
_service: AgencyService | None = None


def build_service() -> AgencyService:
    Base.metadata.create_all(bind=engine)
    return AgencyService(AgencyRepository(SqlBlobStore(SessionLocal)))


def get_service() -> AgencyService:
    global _service
    if _service is None:
        _service = build_service()
    return _service


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(security),
    service: AgencyService = Depends(get_service),
) -> User:
    token = credentials.credentials
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user = service.repo.get_user(payload.get("sub", ""))
    if user is None:
        raise HTTPException(status_code=401, detail="User no longer exists")
    return user


def require_roles(*roles: UserRole):
    def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail="Not allowed for your role")
        return user
    return checker


admin_only = require_roles(UserRole.ADMIN)
admin_or_manager = require_roles(UserRole.ADMIN, UserRole.MANAGER)


def rejected(result):
    return HTTPException(status_code=422, detail=result.error.to_dict())


# ===============================
# APP INIT
# ===============================
app = FastAPI(title="Nuba Tours Back Office")


# ===============================
# CORS
# ===============================
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===============================
# ERROR BOUNDARY
# ===============================
@app.exception_handler(NotFoundError)
def handle_not_found(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ServiceError)
def handle_service_error(request: Request, exc: ServiceError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(InvoiceError)
def handle_invoice_error(request: Request, exc: InvoiceError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(Exception)
def handle_unexpected(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Unexpected error"})


# ===============================
# HEALTH CHECK
# ===============================
@app.get("/")
def home():
    return {"status": "Backend running"}


# =====================================================
# AUTH
# =====================================================
@app.post("/api/auth/login")
def login(data: LoginIn, service: AgencyService = Depends(get_service)):
    user = service.authenticate(data.username, data.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = create_access_token({"sub": user.id, "name": user.name, "role": user.role.value})

    return {
        "message": "Login successful",
        "access_token": token,
        "token_type": "bearer",
        "user": UserOut.model_validate(user.model_dump()),
    }


@app.get("/api/me")
def me(user: User = Depends(get_current_user)):
    return UserOut.model_validate(user.model_dump())


@app.post("/api/me/password")
def change_password(
    data: PasswordChangeIn,
    service: AgencyService = Depends(get_service),
    user: User = Depends(get_current_user),
):
    service.change_password(user, data.current_password, data.new_password)
    return {"message": "Password updated"}


# =====================================================
# CUSTOMERS
# =====================================================
@app.get("/api/customers")
def list_customers(service: AgencyService = Depends(get_service), user=Depends(get_current_user)):
    return service.repo.get_customers()


@app.get("/api/customers/{customer_id}")
def get_customer(customer_id: str, service: AgencyService = Depends(get_service), user=Depends(get_current_user)):
    return service.get_customer(customer_id)


@app.post("/api/customers", status_code=201)
def create_customer(
    data: CustomerDraft,
    flight_departure_date: date | None = None,
    service: AgencyService = Depends(get_service),
    user: User = Depends(get_current_user),
):
    result = service.save_customer(
        data.model_copy(update={"id": None}), user, flight_departure_date=flight_departure_date
    )
    if not result.ok:
        raise rejected(result)
    return result.value


@app.put("/api/customers/{customer_id}")
def update_customer(
    customer_id: str,
    data: CustomerDraft,
    flight_departure_date: date | None = None,
    service: AgencyService = Depends(get_service),
    user: User = Depends(get_current_user),
):
    result = service.save_customer(
        data.model_copy(update={"id": customer_id}), user, flight_departure_date=flight_departure_date
    )
    if not result.ok:
        raise rejected(result)
    return result.value


@app.delete("/api/customers/{customer_id}")
def delete_customer(customer_id: str, service: AgencyService = Depends(get_service), user: User = Depends(admin_only)):
    service.delete_customer(customer_id, user)
    return {"message": "Customer deleted"}


@app.post("/api/customers/{customer_id}/documents", status_code=201)
def add_document(
    customer_id: str,
    data: DocumentIn,
    service: AgencyService = Depends(get_service),
    user: User = Depends(get_current_user),
):
    return service.add_document(customer_id, data, user)


@app.delete("/api/customers/{customer_id}/documents/{document_id}")
def delete_document(
    customer_id: str,
    document_id: str,
    service: AgencyService = Depends(get_service),
    user: User = Depends(get_current_user),
):
    service.delete_document(customer_id, document_id, user)
    return {"message": "Document deleted"}


# =====================================================
# PACKAGES
# =====================================================
@app.get("/api/packages")
def list_packages(service: AgencyService = Depends(get_service), user=Depends(get_current_user)):
    return service.repo.get_packages()


@app.post("/api/packages", status_code=201)
def create_package(data: PackageIn, service: AgencyService = Depends(get_service), user: User = Depends(get_current_user)):
    return service.save_package(data.model_copy(update={"id": None}), user)


@app.put("/api/packages/{package_id}")
def update_package(
    package_id: str,
    data: PackageIn,
    service: AgencyService = Depends(get_service),
    user: User = Depends(get_current_user),
):
    return service.save_package(data.model_copy(update={"id": package_id}), user)


@app.delete("/api/packages/{package_id}")
def delete_package(package_id: str, service: AgencyService = Depends(get_service), user: User = Depends(admin_only)):
    service.delete_package(package_id, user)
    return {"message": "Package deleted"}


# =====================================================
# BOOKINGS
# =====================================================
@app.get("/api/bookings")
def list_bookings(
    search: str = "",
    status: BookingStatus | None = None,
    package_type: PackageType | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    service: AgencyService = Depends(get_service),
    user=Depends(get_current_user),
):
    return service.filter_bookings(search, status, package_type, start_date, end_date)


@app.get("/api/bookings/export")
def export_bookings_xlsx(
    search: str = "",
    status: BookingStatus | None = None,
    package_type: PackageType | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    service: AgencyService = Depends(get_service),
    user=Depends(get_current_user),
):
    bookings = service.filter_bookings(search, status, package_type, start_date, end_date)
    if not bookings:
        raise HTTPException(status_code=400, detail="No data to export")

    buffer = export_bookings(
        bookings, service.repo.get_customers(), service.repo.get_packages(), service.repo.get_payments()
    )
    return StreamingResponse(
        buffer,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="Bookings_Export.xlsx"'},
    )


@app.get("/api/bookings/{booking_id}")
def get_booking(booking_id: str, service: AgencyService = Depends(get_service), user=Depends(get_current_user)):
    return service.get_booking(booking_id)


@app.post("/api/bookings", status_code=201)
def create_booking(data: BookingDraft, service: AgencyService = Depends(get_service), user: User = Depends(get_current_user)):
    result = service.save_booking(data.model_copy(update={"id": None}), user)
    if not result.ok:
        raise rejected(result)

    return {
        "message": "Booking created successfully",
        "booking": result.value,
    }


@app.put("/api/bookings/{booking_id}")
def update_booking(
    booking_id: str,
    data: BookingDraft,
    service: AgencyService = Depends(get_service),
    user: User = Depends(get_current_user),
):
    result = service.save_booking(data.model_copy(update={"id": booking_id}), user)
    if not result.ok:
        raise rejected(result)

    return {
        "message": "Booking updated",
        "booking": result.value,
    }


@app.delete("/api/bookings/{booking_id}")
def delete_booking(booking_id: str, service: AgencyService = Depends(get_service), user: User = Depends(admin_only)):
    service.delete_booking(booking_id, user)
    return {"message": "Booking deleted"}


@app.get("/api/bookings/{booking_id}/financials")
def booking_financials(booking_id: str, service: AgencyService = Depends(get_service), user=Depends(get_current_user)):
    return service.booking_financials(booking_id).to_dict()


@app.get("/api/bookings/{booking_id}/invoice")
def booking_invoice(booking_id: str, service: AgencyService = Depends(get_service), user=Depends(get_current_user)):
    booking = service.get_booking(booking_id)
    customer = service.repo.get_customer(booking.customer_id)
    package = find_package(booking, service.repo.get_packages())

    pdf_path = generate_invoice(
        booking,
        customer,
        package,
        service.repo.get_payments_for_booking(booking_id),
        service.booking_financials(booking_id),
        output_dir=DOCUMENTS_DIR,
    )
    return FileResponse(pdf_path, media_type="application/pdf", filename=os.path.basename(pdf_path))


# =====================================================
# FINANCE (ADMIN)
# =====================================================
@app.get("/api/payments")
def list_payments(booking_id: str | None = None, service: AgencyService = Depends(get_service), user=Depends(admin_only)):
    if booking_id:
        return service.repo.get_payments_for_booking(booking_id)
    return service.repo.get_payments()


@app.post("/api/payments", status_code=201)
def create_payment(data: PaymentIn, service: AgencyService = Depends(get_service), user: User = Depends(admin_only)):
    return service.add_payment(data, user)


@app.delete("/api/payments/{payment_id}")
def delete_payment(payment_id: str, service: AgencyService = Depends(get_service), user: User = Depends(admin_only)):
    service.delete_payment(payment_id, user)
    return {"message": "Payment deleted"}


@app.get("/api/payments/{payment_id}/receipt")
def payment_receipt(payment_id: str, service: AgencyService = Depends(get_service), user=Depends(admin_only)):
    payment = service.get_payment(payment_id)
    booking = service.get_booking(payment.booking_id)
    customer = service.repo.get_customer(booking.customer_id)
    package = find_package(booking, service.repo.get_packages())

    pdf_path = generate_receipt(payment, booking, customer, package, output_dir=DOCUMENTS_DIR)
    return FileResponse(pdf_path, media_type="application/pdf", filename=os.path.basename(pdf_path))


@app.get("/api/expenses")
def list_expenses(service: AgencyService = Depends(get_service), user=Depends(admin_only)):
    return service.repo.get_expenses()


@app.post("/api/expenses", status_code=201)
def create_expense(data: ExpenseIn, service: AgencyService = Depends(get_service), user: User = Depends(admin_only)):
    return service.add_expense(data, user)


@app.delete("/api/expenses/{expense_id}")
def delete_expense(expense_id: str, service: AgencyService = Depends(get_service), user: User = Depends(admin_only)):
    service.delete_expense(expense_id, user)
    return {"message": "Expense deleted"}


@app.get("/api/finance/summary")
def finance_summary(service: AgencyService = Depends(get_service), user=Depends(admin_only)):
    return service.financial_summary().to_dict()


# =====================================================
# EXPENSE CATEGORIES (ADMIN / MANAGER)
# =====================================================
@app.get("/api/expense-categories")
def list_expense_categories(service: AgencyService = Depends(get_service), user=Depends(get_current_user)):
    return service.repo.get_expense_categories()


@app.post("/api/expense-categories", status_code=201)
def create_expense_category(
    data: ExpenseCategoryIn,
    service: AgencyService = Depends(get_service),
    user: User = Depends(admin_or_manager),
):
    return service.save_expense_category(data.model_copy(update={"id": None}), user)


@app.put("/api/expense-categories/{category_id}")
def update_expense_category(
    category_id: str,
    data: ExpenseCategoryIn,
    service: AgencyService = Depends(get_service),
    user: User = Depends(admin_or_manager),
):
    return service.save_expense_category(data.model_copy(update={"id": category_id}), user)


@app.delete("/api/expense-categories/{category_id}")
def delete_expense_category(
    category_id: str,
    service: AgencyService = Depends(get_service),
    user: User = Depends(admin_or_manager),
):
    service.delete_expense_category(category_id, user)
    return {"message": "Expense category deleted"}


# =====================================================
# TASKS
# =====================================================
@app.get("/api/tasks")
def list_tasks(service: AgencyService = Depends(get_service), user=Depends(get_current_user)):
    return service.repo.get_tasks()


@app.post("/api/tasks", status_code=201)
def create_task(data: TaskIn, service: AgencyService = Depends(get_service), user: User = Depends(get_current_user)):
    return service.save_task(data.model_copy(update={"id": None}), user)


@app.put("/api/tasks/{task_id}")
def update_task(
    task_id: str,
    data: TaskIn,
    service: AgencyService = Depends(get_service),
    user: User = Depends(get_current_user),
):
    return service.save_task(data.model_copy(update={"id": task_id}), user)


@app.post("/api/tasks/{task_id}/toggle")
def toggle_task(task_id: str, service: AgencyService = Depends(get_service), user: User = Depends(get_current_user)):
    return service.toggle_task(task_id, user)


@app.delete("/api/tasks/{task_id}")
def delete_task(task_id: str, service: AgencyService = Depends(get_service), user: User = Depends(admin_or_manager)):
    service.delete_task(task_id, user)
    return {"message": "Task deleted"}


# =====================================================
# USERS (ADMIN)
# =====================================================
@app.get("/api/users")
def list_users(service: AgencyService = Depends(get_service), user=Depends(admin_only)):
    return [UserOut.model_validate(u.model_dump()) for u in service.repo.get_users()]


@app.put("/api/users/{user_id}")
def save_user(
    user_id: str,
    data: UserIn,
    service: AgencyService = Depends(get_service),
    user: User = Depends(admin_only),
):
    saved = service.save_user(data.model_copy(update={"id": user_id}), user)
    return UserOut.model_validate(saved.model_dump())


@app.delete("/api/users/{user_id}")
def delete_user(user_id: str, service: AgencyService = Depends(get_service), user: User = Depends(admin_only)):
    service.delete_user(user_id, user)
    return {"message": "User deleted"}


# =====================================================
# DASHBOARD / ACTIVITY / REPORTS
# =====================================================
@app.get("/api/dashboard")
def dashboard(service: AgencyService = Depends(get_service), user=Depends(get_current_user)):
    return service.dashboard()


@app.get("/api/activity-log")
def activity_log(service: AgencyService = Depends(get_service), user=Depends(admin_only)):
    return service.repo.get_activity_log()


@app.get("/api/reports/rooming-list")
def rooming_list(layout: str = "standard", service: AgencyService = Depends(get_service), user=Depends(admin_only)):
    if layout not in ROOMING_LAYOUTS:
        raise HTTPException(status_code=400, detail=f"Unknown layout: {layout}")

    buffer = hotel_rooming_list(
        service.repo.get_bookings(), service.repo.get_customers(), service.repo.get_packages(), layout
    )
    return StreamingResponse(
        buffer,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="hotelRoomingList.xlsx"'},
    )


@app.get("/api/reports/{report_type}/pdf")
def report_pdf(report_type: str, service: AgencyService = Depends(get_service), user=Depends(admin_only)):
    if report_type not in REPORT_TITLES:
        raise HTTPException(status_code=404, detail="Unknown report")

    pdf_path = generate_report_pdf(
        report_type, service.repo.snapshot, service.financial_summary(), output_dir=DOCUMENTS_DIR
    )
    return FileResponse(pdf_path, media_type="application/pdf", filename=os.path.basename(pdf_path))


@app.get("/api/reports/{report_type}/xlsx")
def report_xlsx(report_type: str, service: AgencyService = Depends(get_service), user=Depends(admin_only)):
    if report_type not in ("customerList", "bookingList"):
        raise HTTPException(status_code=404, detail="Unknown report")

    buffer = export_report(report_type, service.repo.snapshot)
    return StreamingResponse(
        buffer,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{report_type}.xlsx"'},
    )
