import pytest
from fastapi.testclient import TestClient

import main
from exports import XLSX_MEDIA_TYPE


@pytest.fixture
def client(service, tmp_path, monkeypatch):
    monkeypatch.setattr(main, "DOCUMENTS_DIR", str(tmp_path))
    main.app.dependency_overrides[main.get_service] = lambda: service
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def login(client, username, password):
    response = client.post("/api/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def admin_headers(client):
    return login(client, "admin", "admin_password")


@pytest.fixture
def staff_headers(client):
    return login(client, "ali.h", "staff_password")


def test_login_and_me(client, admin_headers):
    response = client.get("/api/me", headers=admin_headers)

    assert response.json() == {"id": "admin", "name": "Admin User", "role": "Admin"}


def test_bad_login(client):
    response = client.post("/api/auth/login", json={"username": "admin", "password": "nope"})

    assert response.status_code == 401


def test_requests_need_a_token(client):
    assert client.get("/api/bookings").status_code in (401, 403)
    bad = {"Authorization": "Bearer not-a-token"}
    assert client.get("/api/bookings", headers=bad).status_code == 401


def test_staff_cannot_see_finance(client, staff_headers):
    assert client.get("/api/finance/summary", headers=staff_headers).status_code == 403
    assert client.delete("/api/bookings/B001", headers=staff_headers).status_code == 403


def test_finance_summary(client, admin_headers):
    summary = client.get("/api/finance/summary", headers=admin_headers).json()

    assert summary["ticketProfit"] == 700
    assert summary["totalIncome"] == 250000 + 8200


def test_create_booking(client, staff_headers):
    response = client.post("/api/bookings", headers=staff_headers, json={
        "customerId": "C004",
        "packageId": "P01",
        "bookingDate": "2024-01-15",
        "roomType": "Triple",
        "meals": "Full Board",
    })

    assert response.status_code == 201
    booking = response.json()["booking"]
    assert booking["id"] == "B20240115-0001"
    assert booking["withoutBed"] is True
    assert booking["roomType"] is None


def test_rejected_booking_returns_violation(client, staff_headers):
    response = client.post("/api/bookings", headers=staff_headers, json={
        "customerId": "C001",
        "isTicketOnly": True,
        "ticketCostPrice": 0,
        "ticketTotalPaid": 9000,
    })

    assert response.status_code == 422
    assert response.json()["detail"]["kind"] == "InvalidTicketFinancials"


def test_rejected_customer_returns_min_expiry(client, staff_headers):
    response = client.post(
        "/api/customers?flight_departure_date=2024-03-01",
        headers=staff_headers,
        json={"name": "Khaled", "phone": "+2010", "passportNumber": "X1", "passportExpiry": "2024-06-01", "age": 30},
    )

    assert response.status_code == 422
    assert response.json()["detail"] == {
        "kind": "PassportExpiringTooSoon",
        "field": "passport_expiry",
        "minExpiry": "2024-09-01",
        "passportExpiry": "2024-06-01",
    }


def test_booking_filters(client, staff_headers):
    response = client.get("/api/bookings", headers=staff_headers, params={"status": "Ticketed"})

    assert [b["id"] for b in response.json()] == ["B002", "B007"]


def test_unknown_booking_is_404(client, staff_headers):
    assert client.get("/api/bookings/B999", headers=staff_headers).status_code == 404
    assert client.get("/api/bookings/B999/financials", headers=staff_headers).status_code == 404


def test_booking_financials(client, staff_headers):
    response = client.get("/api/bookings/B005/financials", headers=staff_headers)

    assert response.json()["remainingBalance"] == 30000


def test_payment_updates_balance(client, admin_headers):
    response = client.post("/api/payments", headers=admin_headers,
                           json={"bookingId": "B005", "amount": 30000, "method": "Bank Transfer"})

    assert response.status_code == 201
    balance = client.get("/api/bookings/B005/financials", headers=admin_headers).json()["remainingBalance"]
    assert balance == 0


def test_invoice_download(client, staff_headers, tmp_path):
    response = client.get("/api/bookings/B001/invoice", headers=staff_headers)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert (tmp_path / "INV-B001.pdf").exists()


def test_bookings_export(client, staff_headers):
    response = client.get("/api/bookings/export", headers=staff_headers)

    assert response.status_code == 200
    assert response.headers["content-type"] == XLSX_MEDIA_TYPE


def test_empty_export_is_refused(client, staff_headers):
    response = client.get("/api/bookings/export", headers=staff_headers, params={"search": "nobody"})

    assert response.status_code == 400


def test_rooming_list_layouts(client, admin_headers):
    assert client.get("/api/reports/rooming-list?layout=rooms", headers=admin_headers).status_code == 200
    assert client.get("/api/reports/rooming-list?layout=floors", headers=admin_headers).status_code == 400


def test_report_downloads(client, admin_headers):
    assert client.get("/api/reports/financialSummary/pdf", headers=admin_headers).status_code == 200
    assert client.get("/api/reports/customerList/xlsx", headers=admin_headers).status_code == 200
    assert client.get("/api/reports/visaList/pdf", headers=admin_headers).status_code == 404


def test_task_toggle_and_delete_roles(client, staff_headers, admin_headers):
    toggled = client.post("/api/tasks/T001/toggle", headers=staff_headers).json()
    assert toggled["isCompleted"] is True

    assert client.delete("/api/tasks/T001", headers=staff_headers).status_code == 403
    assert client.delete("/api/tasks/T001", headers=admin_headers).status_code == 200


def test_users_never_expose_password_hash(client, admin_headers):
    users = client.get("/api/users", headers=admin_headers).json()

    assert {u["id"] for u in users} == {"admin", "hassan.o", "ali.h", "mona.s"}
    assert all("passwordHash" not in u for u in users)


def test_admin_cannot_delete_self(client, admin_headers):
    response = client.delete("/api/users/admin", headers=admin_headers)

    assert response.status_code == 400


def test_activity_log_records_actions(client, admin_headers):
    client.delete("/api/bookings/B003", headers=admin_headers)

    log = client.get("/api/activity-log", headers=admin_headers).json()

    assert log[0]["action"] == "Deleted"
    assert log[0]["entityId"] == "B003"
    assert log[0]["user"] == "Admin User"


def test_dashboard(client, staff_headers):
    stats = client.get("/api/dashboard", headers=staff_headers).json()

    assert stats["totalCustomers"] == 5
    assert stats["activeBookings"] == 6


def test_change_own_password(client, staff_headers):
    wrong = client.post("/api/me/password", headers=staff_headers,
                        json={"currentPassword": "nope", "newPassword": "fresh"})
    assert wrong.status_code == 400

    ok = client.post("/api/me/password", headers=staff_headers,
                     json={"currentPassword": "staff_password", "newPassword": "fresh"})
    assert ok.status_code == 200
    login(client, "ali.h", "fresh")


def test_documents_survive_deleted_customer(client, admin_headers):
    assert client.delete("/api/customers/C001", headers=admin_headers).status_code == 200

    assert client.get("/api/bookings/B001/invoice", headers=admin_headers).status_code == 200
    assert client.get("/api/payments/PAY001/receipt", headers=admin_headers).status_code == 200


def test_customer_update_checks_given_flight_date(client, staff_headers):
    response = client.put(
        "/api/customers/C003?flight_departure_date=2026-12-01",
        headers=staff_headers,
        json={"name": "Youssef Ibrahim", "phone": "+201298765432", "passportNumber": "C54321678",
              "passportExpiry": "2027-01-30", "age": 42},
    )

    assert response.status_code == 422
    assert response.json()["detail"]["kind"] == "PassportExpiringTooSoon"
    assert response.json()["detail"]["minExpiry"] == "2027-06-01"
