# models_academics.py
from decimal import Decimal

from extensions import db
from models_students import new_id, utcnow


class Fee(db.Model):
    __tablename__ = "fees"
    id           = db.Column(db.String(36), primary_key=True, default=new_id)
    student_id   = db.Column(db.String(36), db.ForeignKey("students.id", ondelete="CASCADE"),
                             index=True, nullable=False)
    semester_fee = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_paid   = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    fee_balance  = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    student = db.relationship("Student", back_populates="fees")

    def recompute(self):
        self.fee_balance = Decimal(self.semester_fee or 0) - Decimal(self.total_paid or 0)

    def to_dict(self):
        return dict(id=self.id, student_id=self.student_id,
                    semester_fee=float(self.semester_fee or 0),
                    total_paid=float(self.total_paid or 0),
                    fee_balance=float(self.fee_balance or 0))


class RegisteredUnit(db.Model):
    __tablename__ = "registered_units"
    __table_args__ = (db.UniqueConstraint("student_id", "unit_code", name="uq_student_unit"),)
    id         = db.Column(db.String(36), primary_key=True, default=new_id)
    student_id = db.Column(db.String(36), db.ForeignKey("students.id", ondelete="CASCADE"),
                           index=True, nullable=False)
    unit_code  = db.Column(db.String(32), nullable=False)
    unit_name  = db.Column(db.String(200), nullable=False)
    status     = db.Column(db.String(24), default="registered", nullable=False)

    student = db.relationship("Student", back_populates="units")

    def to_dict(self):
        return dict(id=self.id, student_id=self.student_id, unit_code=self.unit_code,
                    unit_name=self.unit_name, status=self.status)


class Unit(db.Model):
    """Course unit catalog; registered units copy code and name from here."""
    __tablename__ = "units"
    id        = db.Column(db.String(36), primary_key=True, default=new_id)
    unit_code = db.Column(db.String(32), unique=True, nullable=False)
    unit_name = db.Column(db.String(200), nullable=False)

    def to_dict(self):
        return dict(id=self.id, unit_code=self.unit_code, unit_name=self.unit_name)


class FinanceRecord(db.Model):
    __tablename__ = "finance"
    id            = db.Column(db.String(36), primary_key=True, default=new_id)
    created_at    = db.Column(db.DateTime, default=utcnow, nullable=False)
    student_id    = db.Column(db.String(36), db.ForeignKey("students.id", ondelete="CASCADE"),
                              index=True, nullable=False)
    statement     = db.Column(db.Text)
    statement_url = db.Column(db.Text)
    receipt_url   = db.Column(db.Text)

    def to_dict(self):
        return dict(id=self.id, student_id=self.student_id, statement=self.statement,
                    statement_url=self.statement_url, receipt_url=self.receipt_url,
                    created_at=_iso(self.created_at))


class ResultRecord(db.Model):
    __tablename__ = "results"
    id          = db.Column(db.String(36), primary_key=True, default=new_id)
    created_at  = db.Column(db.DateTime, default=utcnow, nullable=False)
    student_id  = db.Column(db.String(36), db.ForeignKey("students.id", ondelete="CASCADE"),
                            index=True, nullable=False)
    semester    = db.Column(db.Integer, nullable=False)
    result_data = db.Column(db.JSON, nullable=False)      # {"ICT101": "A", ...} or a list of rows

    def to_dict(self):
        return dict(id=self.id, student_id=self.student_id, semester=self.semester,
                    result_data=self.result_data, created_at=_iso(self.created_at))


class Timetable(db.Model):
    """Per-student timetable, or a course-wide one when student_id is NULL."""
    __tablename__ = "timetables"
    __table_args__ = (db.Index("ix_timetables_course_semester", "course", "semester", "created_at"),)
    id             = db.Column(db.String(36), primary_key=True, default=new_id)
    created_at     = db.Column(db.DateTime, default=utcnow, nullable=False)
    student_id     = db.Column(db.String(36), db.ForeignKey("students.id", ondelete="CASCADE"), index=True)
    course         = db.Column(db.String(200))
    semester       = db.Column(db.Integer, nullable=False)
    timetable_data = db.Column(db.JSON, nullable=False)

    def to_dict(self):
        return dict(id=self.id, student_id=self.student_id, course=self.course, semester=self.semester,
                    timetable_data=self.timetable_data, created_at=_iso(self.created_at))


def _iso(dt):
    return dt.isoformat(timespec="seconds") + "Z" if dt else None
