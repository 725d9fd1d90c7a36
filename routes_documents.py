# routes_documents.py - upload collections + artifact reads
from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import func

from errors import ForbiddenError, NotFoundError
from extensions import db
from models_academics import Fee
from models_documents import ARTIFACT_TYPES
from models_students import Student
from services_auth import ensure_owner_or_admin, token_required
from services_documents import (DocumentRegistrar, ReferenceRequest, all_for_subject,
                                latest_by_type, unix_millis)
from services_negotiation import negotiate

bp_documents = Blueprint("documents", __name__)

# POST /<collection> -> artifact type
COLLECTIONS = {
    "exam-cards": "exam-card",
    "fee-statements": "fee-statement",
    "fee-receipts": "fee-receipt",
    "results": "results-file",
    "timetables": "timetable-file",
    "photos": "photo",
}


def registrar() -> DocumentRegistrar:
    ext = current_app.extensions
    return DocumentRegistrar(ext["portal.blob_store"], ext["portal.settings"],
                             clock=ext.get("portal.clock", unix_millis))


def _created(doc, message):
    return jsonify(message=message, data=doc.to_dict()), 201


@bp_documents.post("/<any(" + ", ".join(repr(c) for c in COLLECTIONS) + "):collection>")
@token_required("admin")
def upload(collection):
    """
    Raw binary (Content-Type: application/pdf | image/* | octet-stream | Word):
      headers  X-Registration-Number | X-Student-Id, X-File-Name
      query    registration_number | student_id, filename   (headers win)
    Legacy multipart/form-data:
      file, registration_number | student_id
    JSON reference (any other Content-Type):
      {registration_number | student_id, file_url, file_name?, file_size?, content_type?}
    """
    artifact_type = COLLECTIONS[collection]
    req = negotiate(request, artifact_type)
    r = registrar()
    if isinstance(req, ReferenceRequest):
        doc = r.register_reference(req)
        return _created(doc, f"{artifact_type} recorded")
    doc = r.register(req)
    return _created(doc, f"{artifact_type} uploaded")


def _require_clearance(student_id: str):
    outstanding = (db.session.query(func.coalesce(func.sum(Fee.fee_balance), 0))
                   .filter(Fee.student_id == student_id).scalar())
    if float(outstanding or 0) > 0:
        raise ForbiddenError("Please complete your fee payment to download your exam card.")


@bp_documents.get("/subjects/<student_id>/<artifact_type>")
@bp_documents.get("/students/<student_id>/<artifact_type>")
@token_required()
def latest_document(student_id, artifact_type):
    if artifact_type not in ARTIFACT_TYPES:
        raise NotFoundError(f"unknown artifact type: {artifact_type}")
    ensure_owner_or_admin(student_id)
    if db.session.get(Student, student_id) is None:
        raise NotFoundError("student not found")
    if artifact_type == "exam-card" and current_app.extensions["portal.settings"].exam_card_requires_clearance:
        _require_clearance(student_id)
    doc = latest_by_type(student_id, artifact_type)
    return jsonify(message="ok", data=doc.to_dict())


@bp_documents.get("/documents/<registration_number>")
@token_required()
def student_documents(registration_number):
    student = Student.query.filter_by(registration_number=registration_number).first()
    if student is None:
        raise NotFoundError("student not found")
    ensure_owner_or_admin(student.id)
    docs = all_for_subject(student.id)
    return jsonify(message="ok", data=[d.to_dict() for d in docs])
