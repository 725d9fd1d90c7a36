# models_documents.py - append-only artifact log, one row per upload
from extensions import db
from models_students import new_id, utcnow

ARTIFACT_TYPES = ("exam-card", "fee-statement", "fee-receipt", "results-file", "timetable-file", "photo")


class Document(db.Model):
    __tablename__ = "documents"
    __table_args__ = (db.Index("ix_documents_student_type_created", "student_id", "artifact_type", "created_at"),)

    id            = db.Column(db.String(36), primary_key=True, default=new_id)
    created_at    = db.Column(db.DateTime, default=utcnow, nullable=False)

    student_id    = db.Column(db.String(36), db.ForeignKey("students.id", ondelete="CASCADE"),
                              nullable=False)
    artifact_type = db.Column(db.String(32), nullable=False)     # exam-card|fee-statement|...
    storage_key   = db.Column(db.String(400), unique=True)       # NULL for reference-mode rows
    file_url      = db.Column(db.Text, nullable=False)
    file_name     = db.Column(db.String(255))
    file_size     = db.Column(db.Integer)
    content_type  = db.Column(db.String(120))

    student = db.relationship("Student", back_populates="documents")

    def to_dict(self):
        uploaded = self.created_at.isoformat(timespec="milliseconds") + "Z" if self.created_at else None
        return {
            "id": self.id,
            "registrationNumber": self.student.registration_number if self.student else None,
            "artifactType": self.artifact_type,
            "fileUrl": self.file_url,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "contentType": self.content_type,
            "uploadedAt": uploaded,
        }
