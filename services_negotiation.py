# services_negotiation.py - three wire shapes in, one UploadRequest/ReferenceRequest out
#
#   raw binary   body = file, metadata in X-* headers or query string (header wins)
#   multipart    legacy form: file part + registration_number/student_id fields
#   reference    JSON body pointing at a file already uploaded elsewhere
import json

from pydantic import BaseModel, ConfigDict, Field, model_validator
from werkzeug.exceptions import ClientDisconnected

from errors import TransportError, ValidationError
from schemas import load
from services_documents import ReferenceRequest, SubjectRef, UploadRequest, UploadState

MULTIPART = "multipart/form-data"

BINARY_TYPES = frozenset({
    "application/octet-stream",
    "binary/octet-stream",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
})

HEADER_REG = "X-Registration-Number"
HEADER_ID = "X-Student-Id"
HEADER_NAME = "X-File-Name"


class ReferenceBody(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    registration_number: str | None = None
    student_id: str | None = None
    file_url: str = Field(min_length=1)
    file_name: str | None = None
    file_size: int | None = Field(default=None, ge=0)
    content_type: str | None = None

    @model_validator(mode="after")
    def _needs_subject(self):
        if not (self.registration_number or self.student_id):
            raise ValueError("registration_number or student_id is required")
        return self


def mimetype_of(content_type: str | None) -> str:
    return (content_type or "").split(";", 1)[0].strip().lower()


def classify(content_type: str | None) -> str:
    """binary|multipart|reference, decided from the Content-Type header alone."""
    mt = mimetype_of(content_type)
    if not mt:
        raise ValidationError("missing Content-Type header", state=UploadState.REJECTED)
    if mt == MULTIPART:
        return "multipart"
    if mt in BINARY_TYPES or mt.startswith("image/"):
        return "binary"
    return "reference"


def _pick(headers, args, header: str, param: str) -> str | None:
    v = (headers.get(header) or "").strip()
    if v:
        return v
    return (args.get(param) or "").strip() or None


def from_binary(request, artifact_type: str) -> UploadRequest:
    h, a = request.headers, request.args
    subject = SubjectRef(
        student_id=_pick(h, a, HEADER_ID, "student_id"),
        registration_number=_pick(h, a, HEADER_REG, "registration_number"),
    )
    try:
        data = request.get_data(cache=False)
    except (ClientDisconnected, OSError) as e:
        raise TransportError(f"could not read request body: {e}") from e
    return UploadRequest(
        subject=subject, artifact_type=artifact_type, data=data,
        content_type=mimetype_of(request.content_type),
        filename=_pick(h, a, HEADER_NAME, "filename") or "",
        mode="binary",
    )


def from_multipart(request, artifact_type: str) -> UploadRequest:
    if "boundary=" not in (request.content_type or ""):
        raise TransportError("multipart/form-data without boundary parameter")
    try:
        form, files = request.form, request.files
        fs = files.get("file")
        data = fs.read() if fs else b""
    except (ClientDisconnected, ValueError, OSError) as e:
        raise TransportError(f"malformed multipart body: {e}") from e
    # werkzeug parses silently: an unparseable body comes back as an empty form
    if not form and not files and (request.content_length or 0) > 0:
        raise TransportError("malformed multipart body: no parts found")
    subject = SubjectRef(
        student_id=(form.get("student_id") or "").strip() or None,
        registration_number=(form.get("registration_number") or "").strip() or None,
    )
    return UploadRequest(
        subject=subject, artifact_type=artifact_type, data=data,
        content_type=mimetype_of(fs.mimetype) if fs else "",
        filename=(fs.filename or "") if fs else "",
        mode="multipart",
    )


def from_reference(request, artifact_type: str) -> ReferenceRequest:
    try:
        payload = json.loads(request.get_data(cache=True) or b"")
    except (ValueError, UnicodeDecodeError) as e:
        raise TransportError(f"body is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise TransportError("JSON body must be an object")
    body = load(ReferenceBody, payload, state=UploadState.REJECTED)
    return ReferenceRequest(
        subject=SubjectRef(student_id=body.student_id, registration_number=body.registration_number),
        artifact_type=artifact_type, file_url=body.file_url, filename=body.file_name,
        file_size=body.file_size, content_type=body.content_type,
    )


def negotiate(request, artifact_type: str):
    """Normalizes a werkzeug Request into what DocumentRegistrar consumes."""
    mode = classify(request.headers.get("Content-Type"))
    if mode == "multipart":
        return from_multipart(request, artifact_type)
    if mode == "binary":
        return from_binary(request, artifact_type)
    return from_reference(request, artifact_type)
