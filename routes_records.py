# routes_records.py - finance statements, semester results, timetables
#
# Record creation is nested under the student (POST /students/<id>/results|timetables)
# because POST /results and POST /timetables are document upload collections.
from flask import Blueprint, jsonify, request

from errors import NotFoundError, ValidationError
from extensions import db
from models_academics import FinanceRecord, ResultRecord, Timetable
from models_students import Student
from schemas import (FinanceIn, FinanceUpdate, ResultIn, ResultUpdate, TimetableIn,
                     TimetableUpdate, load)
from services_auth import ensure_owner_or_admin, token_required

bp_records = Blueprint("records", __name__)


def _student_or_404(student_id: str) -> Student:
    s = db.session.get(Student, student_id)
    if s is None:
        raise NotFoundError("Student not found")
    return s


def _get_or_404(model, record_id: str, label: str):
    row = db.session.get(model, record_id)
    if row is None:
        raise NotFoundError(f"{label} not found")
    return row


def _apply(row, data, required=()):
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None and field in required:
            raise ValidationError(f"{field} cannot be null")
        setattr(row, field, value)


# ---------- finance ----------
@bp_records.get("/finance")
@token_required("admin")
def list_finance():
    rows = FinanceRecord.query.order_by(FinanceRecord.created_at.desc()).all()
    return jsonify([r.to_dict() for r in rows])


@bp_records.get("/students/<student_id>/finance")
@token_required()
def student_finance(student_id):
    ensure_owner_or_admin(student_id)
    _student_or_404(student_id)
    rows = (FinanceRecord.query.filter_by(student_id=student_id)
            .order_by(FinanceRecord.created_at.desc()).all())
    return jsonify([r.to_dict() for r in rows])


@bp_records.get("/finance/<record_id>")
@token_required()
def get_finance(record_id):
    row = _get_or_404(FinanceRecord, record_id, "Finance record")
    ensure_owner_or_admin(row.student_id)
    return jsonify(row.to_dict())


@bp_records.post("/finance")
@token_required("admin")
def create_finance():
    data = load(FinanceIn, request.get_json(silent=True))
    _student_or_404(data.student_id)
    row = FinanceRecord(**data.model_dump())
    db.session.add(row)
    db.session.commit()
    return jsonify(message="Finance record created", finance=row.to_dict()), 201


@bp_records.put("/finance/<record_id>")
@token_required("admin")
def update_finance(record_id):
    row = _get_or_404(FinanceRecord, record_id, "Finance record")
    _apply(row, load(FinanceUpdate, request.get_json(silent=True)))
    db.session.commit()
    return jsonify(message="Finance record updated", finance=row.to_dict())


@bp_records.delete("/finance/<record_id>")
@token_required("admin")
def delete_finance(record_id):
    row = _get_or_404(FinanceRecord, record_id, "Finance record")
    db.session.delete(row)
    db.session.commit()
    return jsonify(message="Finance record deleted", id=record_id)


# ---------- results ----------
@bp_records.get("/results")
@token_required("admin")
def list_results():
    rows = ResultRecord.query.order_by(ResultRecord.student_id, ResultRecord.semester).all()
    return jsonify([r.to_dict() for r in rows])


@bp_records.get("/students/<student_id>/results")
@token_required()
def student_results(student_id):
    ensure_owner_or_admin(student_id)
    _student_or_404(student_id)
    rows = ResultRecord.query.filter_by(student_id=student_id).order_by(ResultRecord.semester).all()
    return jsonify([r.to_dict() for r in rows])


@bp_records.get("/results/<record_id>")
@token_required()
def get_result(record_id):
    row = _get_or_404(ResultRecord, record_id, "Result")
    ensure_owner_or_admin(row.student_id)
    return jsonify(row.to_dict())


@bp_records.post("/students/<student_id>/results")
@token_required("admin")
def create_result(student_id):
    """JSON: {semester, result_data}"""
    _student_or_404(student_id)
    data = load(ResultIn, request.get_json(silent=True))
    row = ResultRecord(student_id=student_id, semester=data.semester, result_data=data.result_data)
    db.session.add(row)
    db.session.commit()
    return jsonify(message="Result recorded", result=row.to_dict()), 201


@bp_records.put("/results/<record_id>")
@token_required("admin")
def update_result(record_id):
    row = _get_or_404(ResultRecord, record_id, "Result")
    _apply(row, load(ResultUpdate, request.get_json(silent=True)), required=("semester", "result_data"))
    db.session.commit()
    return jsonify(message="Result updated", result=row.to_dict())


@bp_records.delete("/results/<record_id>")
@token_required("admin")
def delete_result(record_id):
    row = _get_or_404(ResultRecord, record_id, "Result")
    db.session.delete(row)
    db.session.commit()
    return jsonify(message="Result deleted", id=record_id)


# ---------- timetables ----------
def _ensure_can_read(tt: Timetable):
    # course-wide timetables are readable by any signed-in user
    if tt.student_id:
        ensure_owner_or_admin(tt.student_id)


@bp_records.get("/timetables")
@token_required("admin")
def list_timetables():
    rows = Timetable.query.order_by(Timetable.created_at.desc()).all()
    return jsonify([t.to_dict() for t in rows])


@bp_records.get("/students/<student_id>/timetables")
@token_required()
def student_timetables(student_id):
    ensure_owner_or_admin(student_id)
    _student_or_404(student_id)
    rows = (Timetable.query.filter_by(student_id=student_id)
            .order_by(Timetable.semester, Timetable.created_at.desc()).all())
    return jsonify([t.to_dict() for t in rows])


@bp_records.get("/timetables/<record_id>")
@token_required()
def get_timetable(record_id):
    tt = _get_or_404(Timetable, record_id, "Timetable")
    _ensure_can_read(tt)
    return jsonify(tt.to_dict())


@bp_records.get("/timetable/<course>/<int:semester>")
@token_required()
def course_timetable(course, semester):
    """Latest course-wide timetable for the semester."""
    tt = (Timetable.query.filter_by(course=course, semester=semester, student_id=None)
          .order_by(Timetable.created_at.desc()).first())
    if tt is None:
        raise NotFoundError("No timetable found for this course and semester")
    return jsonify(tt.to_dict())


@bp_records.post("/students/<student_id>/timetables")
@token_required("admin")
def create_student_timetable(student_id):
    """JSON: {semester, timetable_data, course?}; course defaults to the student's."""
    s = _student_or_404(student_id)
    data = load(TimetableIn, request.get_json(silent=True))
    tt = Timetable(student_id=s.id, course=data.course or s.course, semester=data.semester,
                   timetable_data=data.timetable_data)
    db.session.add(tt)
    db.session.commit()
    return jsonify(message="Timetable created", timetable=tt.to_dict()), 201


@bp_records.post("/timetable/<course>/<int:semester>")
@token_required("admin")
def create_course_timetable(course, semester):
    """JSON: {timetable_data}; a newer timetable supersedes older ones for reads."""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("timetable_data is required")
    data = load(TimetableIn, {**body, "course": course, "semester": semester})
    tt = Timetable(course=data.course, semester=data.semester, timetable_data=data.timetable_data)
    db.session.add(tt)
    db.session.commit()
    return jsonify(message="Timetable created", timetable=tt.to_dict()), 201


@bp_records.put("/timetables/<record_id>")
@token_required("admin")
def update_timetable(record_id):
    tt = _get_or_404(Timetable, record_id, "Timetable")
    _apply(tt, load(TimetableUpdate, request.get_json(silent=True)), required=("semester", "timetable_data"))
    db.session.commit()
    return jsonify(message="Timetable updated", timetable=tt.to_dict())


@bp_records.delete("/timetables/<record_id>")
@token_required("admin")
def delete_timetable(record_id):
    tt = _get_or_404(Timetable, record_id, "Timetable")
    db.session.delete(tt)
    db.session.commit()
    return jsonify(message="Timetable deleted", id=record_id)
