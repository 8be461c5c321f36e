from __future__ import annotations

from datetime import timedelta

from sqlmodel import select

from app import crud
from app.models import PasswordResetToken, User, VerificationToken, utc_now


def _register(client, email: str = "new@example.com", password: str = "secret123"):
    return client.post("/api/v1/auth/register", json={"email": email, "password": password, "name": "New"})


def test_register_starts_on_free_plan(client, db):
    r = _register(client)
    assert r.status_code == 200
    body = r.json()
    assert body["code"] == 0
    assert body["data"] == {"success": "Confirmation email sent!"}

    user = crud.user.get_by_email(session=db, email="new@example.com")
    assert user is not None
    assert user.nuts == 100
    assert user.email_verified is None
    token = db.exec(select(VerificationToken).where(VerificationToken.email == "new@example.com")).first()
    assert token is not None


def test_register_duplicate_email(client):
    _register(client)
    r = _register(client)
    assert r.status_code == 400
    assert r.json() == {"code": 400001, "message": "Email already in use!", "data": None}


def test_register_validation_message(client):
    r = client.post("/api/v1/auth/register", json={"email": "nope", "password": "123", "name": "x"})
    assert r.status_code == 422
    body = r.json()
    assert body["code"] == 422000
    assert body["message"].startswith("email:")
    assert "password:" in body["message"]


def test_login_unverified_requires_code(client, db):
    _register(client)

    r = client.post("/api/v1/auth/login", json={"email": "new@example.com", "password": "secret123"})
    assert r.status_code == 200
    assert r.json()["data"]["two_factor"] is True

    otp = crud.token.get_otp(session=db, email="new@example.com")
    wrong = "0000" if otp.code != "0000" else "1111"
    r = client.post("/api/v1/auth/login",
                    json={"email": "new@example.com", "password": "secret123", "code": wrong})
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid code!"

    r = client.post("/api/v1/auth/login",
                    json={"email": "new@example.com", "password": "secret123", "code": otp.code})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["access_token"]
    assert data["user"]["email"] == "new@example.com"
    assert data["user"]["email_verified"] is not None

    r = client.get("/api/v1/user/profile", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert r.status_code == 200
    assert r.json()["data"]["email"] == "new@example.com"


def test_login_expired_code(client, db):
    _register(client)
    client.post("/api/v1/auth/login", json={"email": "new@example.com", "password": "secret123"})
    otp = crud.token.get_otp(session=db, email="new@example.com")
    otp.expires = utc_now() - timedelta(minutes=1)
    db.add(otp)
    db.commit()

    r = client.post("/api/v1/auth/login",
                    json={"email": "new@example.com", "password": "secret123", "code": otp.code})
    assert r.status_code == 400
    assert r.json()["message"] == "Code expired!"


def test_login_errors(client, user):
    r = client.post("/api/v1/auth/login", json={"email": "missing@example.com", "password": "x"})
    assert r.json()["message"] == "Email does not exist!"

    r = client.post("/api/v1/auth/login", json={"email": user.email, "password": "wrong-password"})
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid credentials!"


def test_verified_user_logs_in_directly(client, user):
    r = client.post("/api/v1/auth/login", json={"email": user.email, "password": "secret123"})
    assert r.status_code == 200
    assert r.json()["data"]["token_type"] == "bearer"


def test_verify_email_link(client, db):
    _register(client)
    token = db.exec(select(VerificationToken).where(VerificationToken.email == "new@example.com")).first()

    r = client.post("/api/v1/auth/verify-email", json={"token": token.token})
    assert r.status_code == 200

    db.expire_all()
    user = db.exec(select(User).where(User.email == "new@example.com")).one()
    assert user.email_verified is not None

    r = client.post("/api/v1/auth/verify-email", json={"token": token.token})
    assert r.json()["message"] == "Token does not exist!"


def test_password_reset_by_link(client, db, user):
    r = client.post("/api/v1/auth/reset", json={"email": "missing@example.com"})
    assert r.status_code == 404
    assert r.json()["message"] == "Email not found!"

    r = client.post("/api/v1/auth/reset", json={"email": user.email})
    assert r.status_code == 200
    reset = db.exec(select(PasswordResetToken).where(PasswordResetToken.email == user.email)).one()
    r = client.post("/api/v1/auth/new-password", json={"password": "another123", "token": reset.token})
    assert r.status_code == 200

    r = client.post("/api/v1/auth/login", json={"email": user.email, "password": "another123"})
    assert r.status_code == 200


def test_password_reset_by_code(client, db, user):
    r = client.post("/api/v1/auth/send-code", json={"email": user.email})
    assert r.status_code == 200
    code = crud.token.get_otp(session=db, email=user.email).code

    r = client.post("/api/v1/auth/new-password",
                    json={"type": "otp", "email": user.email, "token": code, "password": "another123"})
    assert r.status_code == 200
    assert crud.token.get_otp(session=db, email=user.email) is None

    r = client.post("/api/v1/auth/login", json={"email": user.email, "password": "another123"})
    assert r.status_code == 200


def test_reset_code_dropped_after_failed_attempts(client, db, user):
    client.post("/api/v1/auth/send-code", json={"email": user.email})
    code = crud.token.get_otp(session=db, email=user.email).code
    wrong = "0000" if code != "0000" else "1111"
    body = {"type": "otp", "email": user.email, "password": "hijacked1"}

    for _ in range(crud.token.MAX_OTP_ATTEMPTS):
        r = client.post("/api/v1/auth/new-password", json={**body, "token": wrong})
        assert r.status_code == 400
        assert r.json()["message"] == "Invalid token!"

    r = client.post("/api/v1/auth/new-password", json={**body, "token": code})
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid token!"

    r = client.post("/api/v1/auth/login", json={"email": user.email, "password": "hijacked1"})
    assert r.json()["message"] == "Invalid credentials!"
    r = client.post("/api/v1/auth/login", json={"email": user.email, "password": "secret123"})
    assert r.status_code == 200


def test_login_code_dropped_after_failed_attempts(client, db):
    _register(client)
    credentials = {"email": "new@example.com", "password": "secret123"}
    client.post("/api/v1/auth/login", json=credentials)
    code = crud.token.get_otp(session=db, email="new@example.com").code
    wrong = "0000" if code != "0000" else "1111"

    for attempt in range(1, crud.token.MAX_OTP_ATTEMPTS):
        client.post("/api/v1/auth/login", json={**credentials, "code": wrong})
        db.expire_all()
        assert crud.token.get_otp(session=db, email="new@example.com").failed_attempts == attempt

    client.post("/api/v1/auth/login", json={**credentials, "code": wrong})
    db.expire_all()
    assert crud.token.get_otp(session=db, email="new@example.com") is None

    r = client.post("/api/v1/auth/login", json={**credentials, "code": code})
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid code!"


def test_new_password_missing_token(client):
    r = client.post("/api/v1/auth/new-password", json={"password": "another123"})
    assert r.status_code == 400
    assert r.json()["message"] == "Missing token!"


def test_protected_route_without_token(client):
    r = client.get("/api/v1/user/profile")
    assert r.status_code == 401
    assert r.json()["code"] == 401000
