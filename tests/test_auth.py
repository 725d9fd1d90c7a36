from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
import pytest

from errors import AuthError
from extensions import db
from models_students import Admin, Student
from services_auth import Hashed, Legacy, check_and_migrate, decode_token, parse_credential, verify


def test_parse_credential():
    assert parse_credential(None) is None
    assert parse_credential("") is None
    assert isinstance(parse_credential("$2b$12$abcdefghijklmnopqrstuv"), Hashed)
    assert isinstance(parse_credential("scrypt:32768:8:1$salt$hash"), Hashed)
    assert parse_credential("hunter22") == Legacy("hunter22")
    # a plaintext password that merely starts like a werkzeug method
    assert isinstance(parse_credential("pbkdf2:nodollar"), Legacy)


def test_verify_bcrypt_hash():
    h = bcrypt.hashpw(b"s3cret", bcrypt.gensalt(rounds=4)).decode()
    assert verify(Hashed(h), "s3cret")
    assert not verify(Hashed(h), "wrong")
    assert not verify(Hashed("$2b$garbage"), "s3cret")


def test_legacy_plaintext_is_migrated():
    class Holder:
        password = "plain-old"

    h = Holder()
    assert not check_and_migrate(h, "password", "nope")
    assert h.password == "plain-old"
    assert check_and_migrate(h, "password", "plain-old")
    assert isinstance(parse_credential(h.password), Hashed)
    assert check_and_migrate(h, "password", "plain-old")


def test_admin_login(client, admin_headers):
    r = client.post("/auth/admin-login", json={"username": "registrar", "password": "adminpass"})
    assert r.status_code == 200
    claims = decode_token(r.get_json()["token"])
    assert claims["role"] == "admin"
    assert r.get_json()["username"] == "registrar"

    r = client.post("/auth/admin-login", json={"username": "registrar", "password": "bad"})
    assert r.status_code == 401
    assert r.get_json() == {"error": "unauthorized", "details": "Invalid credentials"}

    r = client.post("/auth/admin-login", json={})
    assert r.status_code == 400


def test_admin_with_bcrypt_hash_can_log_in(client, app):
    db.session.add(Admin(username="legacy", password_hash=bcrypt.hashpw(b"pw123456", bcrypt.gensalt(4)).decode()))
    db.session.commit()
    r = client.post("/auth/admin-login", json={"username": "legacy", "password": "pw123456"})
    assert r.status_code == 200


def test_student_login_upgrades_plaintext(client, app):
    s = Student(registration_number="STU009", name="Amina", course="BBA", level_of_study="Year 3",
                password="27654321")
    db.session.add(s)
    db.session.commit()

    r = client.post("/auth/student-login", json={"registration_number": "STU009", "password": "27654321"})
    assert r.status_code == 200
    body = r.get_json()
    assert body["student_id"] == s.id
    assert decode_token(body["token"])["uid"] == s.id

    stored = db.session.query(Student.password).filter_by(id=s.id).scalar()
    assert stored != "27654321"
    assert isinstance(parse_credential(stored), Hashed)

    r = client.post("/auth/student-login", json={"registration_number": "STU009", "password": "27654321"})
    assert r.status_code == 200


def test_deregistered_student_cannot_log_in(client, student):
    student.status = "deregistered"
    db.session.commit()
    r = client.post("/auth/student-login", json={"registration_number": "STU001", "password": "secret1"})
    assert r.status_code == 401
    assert r.get_json()["details"] == "Account deregistered"


def test_reset_password(client, student):
    r = client.post("/student/auth/reset-password",
                    json={"registration_number": "STU001", "email": "someone@else.com", "new_password": "newpass1"})
    assert r.status_code == 404

    r = client.post("/student/auth/reset-password",
                    json={"registration_number": "STU001", "email": "JANE@example.com", "new_password": "123"})
    assert r.status_code == 400

    r = client.post("/student/auth/reset-password",
                    json={"registration_number": "STU001", "email": "JANE@example.com", "new_password": "newpass1"})
    assert r.status_code == 200
    r = client.post("/auth/student-login", json={"registration_number": "STU001", "password": "newpass1"})
    assert r.status_code == 200


def test_expired_and_forged_tokens(app, client, student):
    settings = app.extensions["portal.settings"]
    now = datetime.now(timezone.utc)
    base = {"sub": f"student:{student.id}", "role": "student", "uid": student.id, "iss": "student-portal"}

    expired = jwt.encode(dict(base, iat=now - timedelta(hours=3), exp=now - timedelta(hours=1)),
                         settings.secret_key, algorithm="HS256")
    with pytest.raises(AuthError, match="expired"):
        decode_token(expired)

    forged = jwt.encode(dict(base, iat=now, exp=now + timedelta(hours=1)), "not-the-key-" * 4, algorithm="HS256")
    r = client.get(f"/students/{student.id}", headers={"Authorization": f"Bearer {forged}"})
    assert r.status_code == 401

    r = client.get(f"/students/{student.id}", headers={"Authorization": "Basic abc"})
    assert r.status_code == 401
    assert r.get_json()["details"] == "missing bearer token"
