# routes_auth.py - admin and student login, student password reset
from flask import Blueprint, current_app, jsonify, request

from errors import AuthError, NotFoundError, ValidationError
from extensions import db
from models_students import Admin, Student
from services_auth import check_and_migrate, hash_password, make_token

bp_auth = Blueprint("auth", __name__)


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@bp_auth.post("/auth/admin-login")
def admin_login():
    data = _body()
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    if not username or not password:
        raise ValidationError("Username and password required")

    admin = Admin.query.filter_by(username=username).first()
    if not admin or not check_and_migrate(admin, "password_hash", password):
        raise AuthError("Invalid credentials")
    db.session.commit()

    token = make_token("admin", admin.id, username=admin.username)
    return jsonify(token=token, username=admin.username)


@bp_auth.post("/auth/student-login")
def student_login():
    """
    JSON: {registration_number, password}
    Legacy plaintext passwords are upgraded to a hash on the first good login.
    """
    data = _body()
    reg = (data.get("registration_number") or "").strip()
    password = data.get("password") or ""
    if not reg or not password:
        raise ValidationError("Registration number and password required")

    student = Student.query.filter_by(registration_number=reg).first()
    if not student or not check_and_migrate(student, "password", password):
        raise AuthError("Invalid credentials")
    if student.status == "deregistered":
        raise AuthError("Account deregistered")
    db.session.commit()
    current_app.logger.info("[AUTH] student login %s", reg)

    token = make_token("student", student.id, registration_number=student.registration_number)
    return jsonify(token=token, student_id=student.id,
                   registration_number=student.registration_number, name=student.name)


@bp_auth.post("/student/auth/reset-password")
def reset_password():
    """JSON: {registration_number, email, new_password}; email must match the record."""
    data = _body()
    reg = (data.get("registration_number") or "").strip()
    email = (data.get("email") or "").strip().lower()
    new_password = data.get("new_password") or ""
    if not reg or not email or not new_password:
        raise ValidationError("registration_number, email and new_password are required")
    if len(new_password) < 6:
        raise ValidationError("new_password must be at least 6 characters")

    student = Student.query.filter_by(registration_number=reg).first()
    if not student or (student.email or "").lower() != email:
        raise NotFoundError("No student found with the provided registration number and email")

    student.password = hash_password(new_password)
    db.session.commit()
    return jsonify(message="Password reset successful", registration_number=student.registration_number)
