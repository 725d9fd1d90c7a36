# services_documents.py - upload-and-register workflow + artifact queries
#
# Framework-agnostic: nothing here touches the Flask request. Callers hand in
# an UploadRequest / ReferenceRequest and get back a Document or a PortalError.
import enum
import logging
import mimetypes
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from io import BytesIO
from typing import Optional
from urllib.parse import urlparse

from PIL import Image, UnidentifiedImageError
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.utils import secure_filename

from errors import (DatabaseWriteError, NotFoundError, OrphanedBlobError, StoreError,
                    StoreWriteError, ValidationError)
from extensions import db
from models_documents import ARTIFACT_TYPES, Document
from models_students import Student

log = logging.getLogger("portal.documents")

IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})
WORD_TYPES = frozenset({
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
})
DOCUMENT_TYPES = IMAGE_TYPES | WORD_TYPES | {"application/pdf"}

ALLOWED_CONTENT_TYPES = {t: DOCUMENT_TYPES for t in ARTIFACT_TYPES}
ALLOWED_CONTENT_TYPES["photo"] = IMAGE_TYPES

GENERIC_TYPES = ("", "application/octet-stream", "binary/octet-stream")


class UploadState(enum.Enum):
    VALIDATING = "validating"
    KEY_DERIVED = "key_derived"
    STORED = "stored"
    RECORDED = "recorded"
    REJECTED = "rejected"
    STORE_FAILED = "store_failed"
    RECORD_FAILED = "record_failed"
    COMPENSATED = "compensated"
    COMPENSATION_FAILED = "compensation_failed"


@dataclass(frozen=True)
class SubjectRef:
    student_id: Optional[str] = None
    registration_number: Optional[str] = None

    def __bool__(self):
        return bool(self.student_id or self.registration_number)


@dataclass(frozen=True)
class UploadRequest:
    subject: SubjectRef
    artifact_type: str
    data: bytes
    content_type: str
    filename: str
    mode: str = "binary"          # binary|multipart


@dataclass(frozen=True)
class ReferenceRequest:
    subject: SubjectRef
    artifact_type: str
    file_url: str
    filename: Optional[str] = None
    file_size: Optional[int] = None
    content_type: Optional[str] = None


def unix_millis() -> int:
    return time.time_ns() // 1_000_000


def millis_to_datetime(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc).replace(tzinfo=None)


def resolve_subject(subject: SubjectRef) -> Optional[Student]:
    if subject.student_id:
        return db.session.get(Student, subject.student_id)
    if subject.registration_number:
        return Student.query.filter_by(registration_number=subject.registration_number.strip()).first()
    return None


def resolve_content_type(declared: Optional[str], filename: Optional[str]) -> str:
    """Declared type wins unless it is generic; then guess from the filename."""
    ct = (declared or "").split(";", 1)[0].strip().lower()
    if ct in GENERIC_TYPES and filename:
        ct = (mimetypes.guess_type(filename)[0] or ct).lower()
    return ct


def sanitize_filename(filename: Optional[str]) -> str:
    return secure_filename(filename or "") or "upload"


def derive_key(artifact_type: str, registration_number: str, millis: int, filename: str) -> str:
    return f"{artifact_type}/{secure_filename(registration_number) or 'unknown'}_{millis}_{sanitize_filename(filename)}"


def _check_image(data: bytes):
    try:
        with Image.open(BytesIO(data)) as im:
            im.verify()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as e:
        raise ValidationError(f"photo is not a readable image: {e}", state=UploadState.REJECTED)


class DocumentRegistrar:
    """
    Turns one upload into one Document row plus one stored object, or into
    an error with nothing left behind.

        VALIDATING -> KEY_DERIVED -> STORED -> RECORDED
              |             |            |
          REJECTED    STORE_FAILED  RECORD_FAILED -> COMPENSATED
                                                 -> COMPENSATION_FAILED

    Every raised PortalError carries the state it was raised from.
    """

    def __init__(self, store, settings, session=None, clock=unix_millis):
        self.store = store
        self.settings = settings
        self.session = session or db.session
        self.clock = clock

    def ceiling_for(self, mode: str) -> int:
        if mode == "multipart":
            return self.settings.max_form_upload_bytes
        return self.settings.max_binary_upload_bytes

    # ---------- validation ----------
    def _check_type(self, artifact_type: str):
        if artifact_type not in ARTIFACT_TYPES:
            raise ValidationError(f"unknown artifact type: {artifact_type}", state=UploadState.REJECTED)

    def _subject(self, subject: SubjectRef) -> Student:
        if not subject:
            raise ValidationError("registration number or student id is required", state=UploadState.REJECTED)
        student = resolve_subject(subject)
        if student is None:
            raise ValidationError("subject not found", state=UploadState.REJECTED)
        return student

    def validate(self, req: UploadRequest):
        self._check_type(req.artifact_type)
        student = self._subject(req.subject)
        if not req.data:
            raise ValidationError("missing file", state=UploadState.REJECTED)
        ceiling = self.ceiling_for(req.mode)
        if len(req.data) > ceiling:
            raise ValidationError(f"file too large: {len(req.data)} bytes exceeds {ceiling}",
                                  state=UploadState.REJECTED)
        ct = resolve_content_type(req.content_type, req.filename)
        allowed = ALLOWED_CONTENT_TYPES[req.artifact_type]
        if ct not in allowed:
            raise ValidationError(f"content type '{ct or 'unknown'}' not allowed for {req.artifact_type}",
                                  state=UploadState.REJECTED)
        if req.artifact_type == "photo":
            _check_image(req.data)
        return student, ct

    # ---------- url ----------
    def retrieval_url(self, key: str) -> str:
        if self.settings.signed_urls:
            try:
                return self.store.signed_url(key, self.settings.signed_url_ttl)
            except StoreError as e:
                log.warning("signed url failed for %s, using public url: %s", key, e)
        return self.store.public_url(key)

    # ---------- record ----------
    def _insert(self, student: Student, **fields) -> Document:
        doc = Document(student_id=student.id, **fields)
        self.session.add(doc)
        if fields["artifact_type"] == "photo":
            student.photo_url = fields["file_url"]
        self.session.commit()
        return doc

    def register(self, req: UploadRequest) -> Document:
        student, content_type = self.validate(req)

        millis = self.clock()
        key = derive_key(req.artifact_type, student.registration_number, millis, req.filename)
        log.debug("%s key=%s", UploadState.KEY_DERIVED.name, key)

        try:
            self.store.put(key, req.data, content_type)
        except StoreError as e:
            log.warning("%s key=%s: %s", UploadState.STORE_FAILED.name, key, e.details)
            raise StoreWriteError(e.details, state=UploadState.STORE_FAILED) from e
        log.debug("%s key=%s", UploadState.STORED.name, key)

        try:
            url = self.retrieval_url(key)
            doc = self._insert(
                student,
                artifact_type=req.artifact_type, storage_key=key, file_url=url,
                file_name=req.filename or sanitize_filename(req.filename),
                file_size=len(req.data), content_type=content_type,
                created_at=millis_to_datetime(millis),
            )
        except SQLAlchemyError as e:
            self.session.rollback()
            log.warning("%s key=%s: %s", UploadState.RECORD_FAILED.name, key, e)
            raise self._compensate(key, e) from e
        log.info("%s %s for %s key=%s size=%d", UploadState.RECORDED.name, req.artifact_type,
                 student.registration_number, key, len(req.data))
        return doc

    def _compensate(self, key: str, cause: Exception):
        """One delete attempt for the stored blob; returns the error to raise."""
        try:
            self.store.remove(key)
        except StoreError as e:
            log.error("%s orphaned blob key=%s: %s", UploadState.COMPENSATION_FAILED.name, key, e)
            return OrphanedBlobError(
                key, f"record failed ({cause}) and compensation failed ({e.details})",
                state=UploadState.COMPENSATION_FAILED)
        log.info("%s key=%s", UploadState.COMPENSATED.name, key)
        return DatabaseWriteError(f"could not record document: {cause}", state=UploadState.COMPENSATED)

    def register_reference(self, req: ReferenceRequest) -> Document:
        """Reference mode: the file is already in storage, only the row is written."""
        self._check_type(req.artifact_type)
        student = self._subject(req.subject)
        url = (req.file_url or "").strip()
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError("file_url must be an absolute http(s) url", state=UploadState.REJECTED)
        if req.file_size is not None and req.file_size < 0:
            raise ValidationError("file_size must not be negative", state=UploadState.REJECTED)
        filename = req.filename or parsed.path.rsplit("/", 1)[-1] or None
        ct = resolve_content_type(req.content_type, filename) or None
        if ct and ct not in ALLOWED_CONTENT_TYPES[req.artifact_type]:
            raise ValidationError(f"content type '{ct}' not allowed for {req.artifact_type}",
                                  state=UploadState.REJECTED)
        try:
            doc = self._insert(
                student, artifact_type=req.artifact_type, storage_key=None, file_url=url,
                file_name=filename, file_size=req.file_size, content_type=ct,
                created_at=millis_to_datetime(self.clock()),
            )
        except SQLAlchemyError as e:
            self.session.rollback()
            raise DatabaseWriteError(f"could not record document: {e}") from e
        log.info("%s %s reference for %s", UploadState.RECORDED.name, req.artifact_type,
                 student.registration_number)
        return doc


# ---------- queries ----------
def latest_by_type(student_id: str, artifact_type: str) -> Document:
    doc = (Document.query.filter_by(student_id=student_id, artifact_type=artifact_type)
           .order_by(Document.created_at.desc()).first())
    if doc is None:
        raise NotFoundError(f"no {artifact_type} found for student {student_id}")
    return doc


def all_for_subject(student_id: str):
    return (Document.query.filter_by(student_id=student_id)
            .order_by(Document.created_at.desc()).all())


def find_orphans(store, prefixes=ARTIFACT_TYPES):
    """Blob keys under the artifact prefixes that no Document row references."""
    known = {k for (k,) in db.session.query(Document.storage_key).filter(Document.storage_key.isnot(None))}
    orphans = []
    for prefix in prefixes:
        for key in store.list_keys(prefix + "/"):
            if key not in known:
                orphans.append(key)
    return orphans
