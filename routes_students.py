# routes_students.py - student CRUD + status transitions
import secrets

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import IntegrityError

from errors import ConflictError, NotFoundError, StoreError, ValidationError
from extensions import db
from models_students import STUDENT_STATUSES, Student
from schemas import AcademicLeave, Promotion, StudentCreate, StudentUpdate, load
from services_auth import ensure_owner_or_admin, hash_password, token_required

bp_students = Blueprint("students", __name__)

STATUS_ALIASES = {"on_leave": "academic_leave"}


def _get_or_404(student_id: str) -> Student:
    s = db.session.get(Student, student_id)
    if s is None:
        raise NotFoundError("Student not found")
    return s


def _initial_password(data: StudentCreate):
    """Explicit password, else national id, else birth certificate, else a random one."""
    if data.password:
        return data.password, False
    if data.national_id:
        return data.national_id, False
    if data.birth_certificate:
        return data.birth_certificate, False
    return secrets.token_urlsafe(8), True


@bp_students.get("/students")
@token_required("admin")
def list_students():
    status = (request.args.get("status") or "").strip()
    q = Student.query
    if status:
        if status not in STUDENT_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(STUDENT_STATUSES)}")
        q = q.filter_by(status=status)
    return jsonify([s.to_dict() for s in q.order_by(Student.registration_number).all()])


@bp_students.get("/students/status/<status_type>")
@token_required("admin")
def students_by_status(status_type):
    status = STATUS_ALIASES.get(status_type, status_type)
    if status not in STUDENT_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(STUDENT_STATUSES)}")
    rows = Student.query.filter_by(status=status).order_by(Student.registration_number).all()
    return jsonify([s.to_dict() for s in rows])


@bp_students.post("/students/promote")
@token_required("admin")
def promote():
    """JSON: {registration_number, new_level} - moves the student to a new level of study."""
    data = load(Promotion, request.get_json(silent=True))
    s = Student.query.filter_by(registration_number=data.registration_number).first()
    if s is None:
        raise NotFoundError(f"No student found with registration number: {data.registration_number}")
    if s.status == "deregistered":
        raise ConflictError("Deregistered students cannot be promoted")
    previous, s.level_of_study = s.level_of_study, data.new_level
    db.session.commit()
    current_app.logger.info("[STUDENTS] promoted %s from %s to %s", s.registration_number, previous, data.new_level)
    return jsonify(message="Student promoted successfully", student=s.to_dict())


@bp_students.get("/students/<student_id>")
@token_required()
def get_student(student_id):
    ensure_owner_or_admin(student_id)
    return jsonify(_get_or_404(student_id).to_dict())


@bp_students.get("/student/registration/<registration_number>")
@token_required()
def get_student_by_registration(registration_number):
    s = Student.query.filter_by(registration_number=registration_number).first()
    if s is None:
        raise NotFoundError("Student not found")
    ensure_owner_or_admin(s.id)
    return jsonify(s.to_dict())


@bp_students.post("/students")
@token_required("admin")
def create_student():
    data = load(StudentCreate, request.get_json(silent=True))
    password, generated = _initial_password(data)
    s = Student(
        registration_number=data.registration_number, name=data.name, course=data.course,
        level_of_study=data.level_of_study, email=str(data.email).lower() if data.email else None,
        national_id=data.national_id, birth_certificate=data.birth_certificate,
        date_of_birth=data.date_of_birth, password=hash_password(password), status="active",
    )
    db.session.add(s)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"registration number {data.registration_number} already exists")
    body = {"message": "Student created successfully", "student": s.to_dict()}
    if generated:
        body["temporary_password"] = password
    return jsonify(body), 201


@bp_students.put("/students/<student_id>")
@token_required("admin")
def update_student(student_id):
    s = _get_or_404(student_id)
    data = load(StudentUpdate, request.get_json(silent=True))
    for field, value in data.model_dump(exclude_unset=True).items():
        if field == "email" and value:
            value = str(value).lower()
        setattr(s, field, value)
    db.session.commit()
    return jsonify(message="Student updated successfully", student=s.to_dict())


@bp_students.delete("/students/<student_id>")
@token_required("admin")
def delete_student(student_id):
    """Cascades to documents, fees and units; the stored blobs are removed afterwards."""
    s = _get_or_404(student_id)
    keys = [d.storage_key for d in s.documents if d.storage_key]
    db.session.delete(s)
    db.session.commit()

    store = current_app.extensions["portal.blob_store"]
    leftover = []
    for key in keys:
        try:
            store.remove(key)
        except StoreError as e:
            current_app.logger.warning("[STUDENTS] blob %s not removed: %s", key, e.details)
            leftover.append(key)
    return jsonify(message="Student deleted", id=student_id, orphaned_keys=leftover)


# ---------- status ----------
@bp_students.post("/students/<student_id>/academic-leave")
@token_required("admin")
def academic_leave(student_id):
    s = _get_or_404(student_id)
    data = load(AcademicLeave, request.get_json(silent=True))
    if s.status == "deregistered":
        raise ConflictError("Deregistered students cannot go on academic leave")
    s.status = "academic_leave"
    s.academic_leave_reason = data.reason
    db.session.commit()
    return jsonify(message="Student placed on academic leave", student=s.to_dict())


@bp_students.post("/students/<student_id>/deregister")
@token_required("admin")
def deregister(student_id):
    s = _get_or_404(student_id)
    s.status = "deregistered"
    db.session.commit()
    return jsonify(message="Student deregistered", student=s.to_dict())


@bp_students.post("/students/<student_id>/restore")
@token_required("admin")
def restore(student_id):
    s = _get_or_404(student_id)
    s.status = "active"
    s.academic_leave_reason = None
    db.session.commit()
    return jsonify(message="Student restored", student=s.to_dict())
