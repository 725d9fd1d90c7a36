import pytest
from flask import request

from errors import TransportError, ValidationError
from services_documents import ReferenceRequest, UploadRequest
from services_negotiation import classify, negotiate


@pytest.mark.parametrize("content_type, mode", [
    ("application/pdf", "binary"),
    ("application/octet-stream", "binary"),
    ("binary/octet-stream", "binary"),
    ("image/jpeg", "binary"),
    ("application/msword", "binary"),
    ("Application/PDF; charset=binary", "binary"),
    ("multipart/form-data; boundary=abc", "multipart"),
    ("application/json", "reference"),
    ("text/plain", "reference"),
])
def test_classify(content_type, mode):
    assert classify(content_type) == mode


@pytest.mark.parametrize("content_type", [None, "", "  "])
def test_classify_without_content_type(content_type):
    with pytest.raises(ValidationError):
        classify(content_type)


def test_headers_win_over_query(app):
    with app.test_request_context("/exam-cards?registration_number=Q1&filename=q.pdf&student_id=abc",
                                  method="POST", data=b"%PDF", content_type="application/pdf",
                                  headers={"X-Registration-Number": "H1", "X-File-Name": "h.pdf"}):
        req = negotiate(request, "exam-card")
    assert isinstance(req, UploadRequest)
    assert req.subject.registration_number == "H1"
    assert req.filename == "h.pdf"
    assert req.subject.student_id == "abc"
    assert req.mode == "binary"
    assert req.data == b"%PDF"


def test_query_used_when_headers_absent(app):
    with app.test_request_context("/exam-cards?registration_number=Q1&filename=q.pdf",
                                  method="POST", data=b"%PDF", content_type="application/pdf"):
        req = negotiate(request, "exam-card")
    assert req.subject.registration_number == "Q1"
    assert req.filename == "q.pdf"


def test_reference_body(app):
    with app.test_request_context("/fee-receipts", method="POST", json={
            "student_id": " abc ", "file_url": "https://x.test/r.pdf", "file_name": "r.pdf", "file_size": 10}):
        req = negotiate(request, "fee-receipt")
    assert isinstance(req, ReferenceRequest)
    assert req.subject.student_id == "abc"
    assert req.file_size == 10


@pytest.mark.parametrize("body", [b"{not json", b"[1, 2]", b""])
def test_reference_body_must_be_a_json_object(app, body):
    with app.test_request_context("/fee-receipts", method="POST", data=body, content_type="application/json"):
        with pytest.raises(TransportError):
            negotiate(request, "fee-receipt")


def test_multipart_without_boundary(app):
    with app.test_request_context("/exam-cards", method="POST", data=b"--x\r\n",
                                  content_type="multipart/form-data"):
        with pytest.raises(TransportError):
            negotiate(request, "exam-card")


# ---------- over HTTP ----------
def test_header_precedence_over_http(student, upload, pdf):
    r = upload("exam-cards", pdf(), query_string={"registration_number": "NOPE", "filename": "ignored.pdf"})
    assert r.status_code == 201
    data = r.get_json()["data"]
    assert data["registrationNumber"] == "STU001"
    assert data["fileName"] == "card.pdf"


def test_query_only_upload(student, upload, pdf):
    r = upload("exam-cards", pdf(), reg=None, filename=None,
               query_string={"registration_number": "STU001", "filename": "q.pdf"})
    assert r.status_code == 201
    assert r.get_json()["data"]["fileName"] == "q.pdf"


def test_missing_content_type_over_http(client, student, admin_headers):
    r = client.post("/exam-cards", data=b"%PDF-1.4", headers=dict(admin_headers, **{"X-Registration-Number": "STU001"}))
    assert r.status_code == 400
    assert r.get_json() == {"error": "validation_error", "details": "missing Content-Type header"}


def test_malformed_json_over_http(client, student, admin_headers, store):
    r = client.post("/exam-cards", data="{oops", content_type="text/plain", headers=admin_headers)
    assert r.status_code == 400
    assert r.get_json()["error"] == "transport_error"
    assert store.objects == {}


def test_multipart_without_boundary_over_http(client, student, admin_headers, store):
    r = client.post("/exam-cards", data=b"--x\r\n", content_type="multipart/form-data", headers=admin_headers)
    assert r.status_code == 400
    assert r.get_json()["error"] == "transport_error"


def test_unparseable_multipart_body_over_http(client, student, admin_headers, store):
    r = client.post("/exam-cards", data=b"garbage without any boundary lines",
                    content_type="multipart/form-data; boundary=abc", headers=admin_headers)
    assert r.status_code == 400
    assert r.get_json()["error"] == "transport_error"
    assert store.objects == {}
