# models_students.py
import uuid
from datetime import datetime, timezone

from extensions import db

STUDENT_STATUSES = ("active", "academic_leave", "deregistered")


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Student(db.Model):
    __tablename__ = "students"
    id                  = db.Column(db.String(36), primary_key=True, default=new_id)
    created_at          = db.Column(db.DateTime, default=utcnow, nullable=False)

    registration_number = db.Column(db.String(64), unique=True, index=True, nullable=False)
    name                = db.Column(db.String(200), nullable=False)
    course              = db.Column(db.String(200), nullable=False)
    level_of_study      = db.Column(db.String(64), nullable=False)
    email               = db.Column(db.String(200), index=True)
    national_id         = db.Column(db.String(64))
    birth_certificate   = db.Column(db.String(64))
    date_of_birth       = db.Column(db.Date)
    password            = db.Column(db.Text)          # werkzeug/bcrypt hash, or legacy plaintext
    status              = db.Column(db.String(24), default="active", nullable=False)
    academic_leave_reason = db.Column(db.Text)
    photo_url           = db.Column(db.Text)

    documents = db.relationship("Document", back_populates="student",
                                cascade="all, delete-orphan", passive_deletes=True)
    fees      = db.relationship("Fee", back_populates="student",
                                cascade="all, delete-orphan", passive_deletes=True)
    units     = db.relationship("RegisteredUnit", back_populates="student",
                                cascade="all, delete-orphan", passive_deletes=True)

    def to_dict(self):
        return dict(
            id=self.id, registration_number=self.registration_number, name=self.name,
            course=self.course, level_of_study=self.level_of_study, email=self.email,
            national_id=self.national_id, birth_certificate=self.birth_certificate,
            date_of_birth=self.date_of_birth.isoformat() if self.date_of_birth else None,
            status=self.status, academic_leave_reason=self.academic_leave_reason,
            photo_url=self.photo_url,
        )


class Admin(db.Model):
    __tablename__ = "admins"
    id            = db.Column(db.String(36), primary_key=True, default=new_id)
    username      = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.Text, nullable=False)
