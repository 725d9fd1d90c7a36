# routes_academics.py - fees, registered units and the unit catalog
from decimal import Decimal

from flask import Blueprint, jsonify, request
from sqlalchemy.exc import IntegrityError

from errors import ConflictError, NotFoundError, ValidationError
from extensions import db
from models_academics import Fee, RegisteredUnit, Unit
from models_students import Student
from schemas import FeeIn, FeeUpdate, UnitIn, UnitsIn, UnitUpdate, load
from services_auth import ensure_owner_or_admin, token_required

bp_academics = Blueprint("academics", __name__)


def _student_or_404(student_id: str) -> Student:
    s = db.session.get(Student, student_id)
    if s is None:
        raise NotFoundError("Student not found")
    return s


# ---------- fees ----------
@bp_academics.get("/students/<student_id>/fees")
@token_required()
def student_fees(student_id):
    ensure_owner_or_admin(student_id)
    _student_or_404(student_id)
    return jsonify([f.to_dict() for f in Fee.query.filter_by(student_id=student_id).all()])


@bp_academics.post("/fees")
@token_required("admin")
def create_fee():
    data = load(FeeIn, request.get_json(silent=True))
    if not data.student_id:
        raise ValidationError("student_id is required")
    _student_or_404(data.student_id)
    fee = Fee(student_id=data.student_id, semester_fee=Decimal(str(data.semester_fee)),
              total_paid=Decimal(str(data.total_paid)))
    fee.recompute()
    db.session.add(fee)
    db.session.commit()
    return jsonify(message="Fee record created", fee=fee.to_dict()), 201


@bp_academics.put("/fees/<fee_id>")
@token_required("admin")
def update_fee(fee_id):
    fee = db.session.get(Fee, fee_id)
    if fee is None:
        raise NotFoundError("Fee record not found")
    data = load(FeeUpdate, request.get_json(silent=True))
    if data.semester_fee is not None:
        fee.semester_fee = Decimal(str(data.semester_fee))
    if data.total_paid is not None:
        fee.total_paid = Decimal(str(data.total_paid))
    fee.recompute()
    db.session.commit()
    return jsonify(message="Fee record updated", fee=fee.to_dict())


# ---------- registered units ----------
@bp_academics.get("/students/<student_id>/registered-units")
@token_required()
def registered_units(student_id):
    ensure_owner_or_admin(student_id)
    _student_or_404(student_id)
    units = RegisteredUnit.query.filter_by(student_id=student_id).order_by(RegisteredUnit.unit_code).all()
    return jsonify([u.to_dict() for u in units])


@bp_academics.post("/students/<student_id>/register-units")
@token_required("admin")
def register_units(student_id):
    """JSON: {units: [{unit_code, unit_name}, ...]} - all or nothing."""
    s = _student_or_404(student_id)
    if s.status != "active":
        raise ConflictError(f"Student is {s.status}; units can only be registered for active students")
    data = load(UnitsIn, request.get_json(silent=True))
    codes = [u.unit_code for u in data.units]
    if len(set(codes)) != len(codes):
        raise ValidationError("duplicate unit_code in request")
    rows = [RegisteredUnit(student_id=s.id, unit_code=u.unit_code, unit_name=u.unit_name) for u in data.units]
    db.session.add_all(rows)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("one or more units are already registered")
    return jsonify(message=f"{len(rows)} units registered", units=[r.to_dict() for r in rows]), 201


@bp_academics.delete("/registered_units/<unit_id>")
@token_required("admin")
def delete_registered_unit(unit_id):
    u = db.session.get(RegisteredUnit, unit_id)
    if u is None:
        raise NotFoundError("Registered unit not found")
    db.session.delete(u)
    db.session.commit()
    return jsonify(message="Registered unit deleted", id=unit_id)


# ---------- unit catalog ----------
def _unit_or_404(unit_id: str) -> Unit:
    u = db.session.get(Unit, unit_id)
    if u is None:
        raise NotFoundError("Unit not found")
    return u


@bp_academics.get("/units")
@token_required()
def list_units():
    return jsonify([u.to_dict() for u in Unit.query.order_by(Unit.unit_code).all()])


@bp_academics.get("/units/<unit_id>")
@token_required()
def get_unit(unit_id):
    return jsonify(_unit_or_404(unit_id).to_dict())


@bp_academics.post("/units")
@token_required("admin")
def create_unit():
    data = load(UnitIn, request.get_json(silent=True))
    u = Unit(unit_code=data.unit_code, unit_name=data.unit_name)
    db.session.add(u)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"unit {data.unit_code} already exists")
    return jsonify(message="Unit created", unit=u.to_dict()), 201


@bp_academics.put("/units/<unit_id>")
@token_required("admin")
def update_unit(unit_id):
    u = _unit_or_404(unit_id)
    changes = load(UnitUpdate, request.get_json(silent=True)).model_dump(exclude_none=True)
    for field, value in changes.items():
        setattr(u, field, value)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"unit {changes.get('unit_code')} already exists")
    return jsonify(message="Unit updated", unit=u.to_dict())


@bp_academics.delete("/units/<unit_id>")
@token_required("admin")
def delete_unit(unit_id):
    u = _unit_or_404(unit_id)
    db.session.delete(u)
    db.session.commit()
    return jsonify(message="Unit deleted", id=unit_id)
