from datetime import datetime, timedelta, timezone

import jwt

from conftest import (
    HOSTEL_ADMIN_EMAIL,
    STUDENT_EMAIL,
    SUPER_ADMIN_EMAIL,
    auth_headers,
)
from security import JWT_ALGORITHM, JWT_SECRET


def test_first_request_provisions_user(client):
    response = client.get("/api/auth/me", headers=auth_headers(STUDENT_EMAIL.upper()))
    assert response.status_code == 200
    data = response.json()
    assert data["email"] == STUDENT_EMAIL
    assert data["role"] == "student"
    assert data["department"] == "n/a"

    # same identity on the next request
    again = client.get("/api/auth/me", headers=auth_headers(STUDENT_EMAIL))
    assert again.json()["id"] == data["id"]


def test_staff_identity_is_classified(client):
    admin = client.get("/api/auth/me", headers=auth_headers(HOSTEL_ADMIN_EMAIL)).json()
    assert admin["role"] == "admin"
    assert admin["department"] == "hostel"

    root = client.get("/api/auth/me", headers=auth_headers(SUPER_ADMIN_EMAIL)).json()
    assert root["role"] == "super_admin"
    assert root["department"] == "all"


def test_subject_claim_is_accepted(client):
    token = jwt.encode({"sub": STUDENT_EMAIL}, JWT_SECRET, algorithm=JWT_ALGORITHM)
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200


def test_missing_token(client):
    response = client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["error"] == "unauthenticated"


def test_invalid_and_expired_tokens(client):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401

    expired = jwt.encode(
        {"email": STUDENT_EMAIL, "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401
    assert response.json()["message"] == "Token expired"


def test_foreign_domain_is_refused(client):
    response = client.get("/api/auth/me", headers=auth_headers("someone@gmail.com"))
    assert response.status_code == 403
    assert response.json()["message"] == "Domain not allowed"


def test_rate_limiting_complaint_filing(client):
    # The rate limiter is configured to 5/minute for filing complaints
    payload = {"title": "No water", "category": "hostel"}
    headers = auth_headers(STUDENT_EMAIL)

    for _ in range(5):
        response = client.post("/api/complaints", json=payload, headers=headers)
        assert response.status_code in (201, 400)

    # The 6th request MUST be rate limited (429)
    response = client.post("/api/complaints", json=payload, headers=headers)
    assert response.status_code == 429


def test_health_endpoints(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"

    response = client.get("/api/health/ready")
    assert response.status_code == 200
    assert response.json() == {"ready": True, "database": "connected"}
