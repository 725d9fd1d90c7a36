import io
import itertools

import pytest
from PIL import Image

from app import create_app
from config import Settings
from errors import StoreDeleteError, StoreError, StoreWriteError
from extensions import db
from models_students import Admin, Student
from services_auth import hash_password, make_token


class MemoryBlobStore:
    """Blob store double: objects live in a dict; each operation can be made to fail."""

    def __init__(self):
        self.objects = {}
        self.fail_put = False
        self.fail_remove = False
        self.fail_sign = False
        self.removed = []

    def put(self, key, data, content_type):
        if self.fail_put:
            raise StoreWriteError("bucket unreachable")
        if key in self.objects:
            raise StoreWriteError(f"key already exists: {key}")
        self.objects[key] = (bytes(data), content_type)
        return key

    def public_url(self, key):
        return f"https://storage.test/public/{key}"

    def signed_url(self, key, ttl_seconds):
        if self.fail_sign:
            raise StoreError("signing unavailable")
        return f"https://storage.test/signed/{key}?expires={ttl_seconds}"

    def remove(self, key):
        if self.fail_remove:
            raise StoreDeleteError("bucket unreachable")
        self.removed.append(key)
        return self.objects.pop(key, None) is not None

    def list_keys(self, prefix=""):
        return [k for k in list(self.objects) if k.startswith(prefix)]


@pytest.fixture
def settings(tmp_path):
    return Settings(database_url="sqlite://", secret_key="x" * 40, log_dir=str(tmp_path / "logs"),
                    environment="test")


@pytest.fixture
def store():
    return MemoryBlobStore()


@pytest.fixture
def app(settings, store):
    app = create_app(settings, blob_store=store, test_config={"TESTING": True})
    ticks = itertools.count(1_700_000_000_000)
    app.extensions["portal.clock"] = lambda: next(ticks)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def student(app):
    s = Student(registration_number="STU001", name="Jane Wanjiru", course="Diploma in ICT",
                level_of_study="Year 1", email="jane@example.com", password=hash_password("secret1"))
    db.session.add(s)
    db.session.commit()
    return s


@pytest.fixture
def other_student(app):
    s = Student(registration_number="STU002", name="Otieno Kamau", course="Diploma in ICT",
                level_of_study="Year 2", password=hash_password("secret2"))
    db.session.add(s)
    db.session.commit()
    return s


@pytest.fixture
def admin_headers(app):
    admin = Admin(username="registrar", password_hash=hash_password("adminpass"))
    db.session.add(admin)
    db.session.commit()
    return {"Authorization": f"Bearer {make_token('admin', admin.id, username=admin.username)}"}


@pytest.fixture
def student_headers(student):
    token = make_token("student", student.id, registration_number=student.registration_number)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def pdf():
    def make(size=2048):
        head = b"%PDF-1.4\n"
        return head + b"0" * (size - len(head))
    return make


@pytest.fixture
def png():
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), (200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def upload(client, admin_headers):
    """Raw binary upload as an admin; metadata travels in the X-* headers."""
    def post(collection, data, content_type="application/pdf", filename="card.pdf", reg="STU001",
             query_string=None):
        headers = dict(admin_headers)
        if reg:
            headers["X-Registration-Number"] = reg
        if filename:
            headers["X-File-Name"] = filename
        return client.post(f"/{collection}", data=data, content_type=content_type, headers=headers,
                           query_string=query_string)
    return post
