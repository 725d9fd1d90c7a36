"""Initial student portal schema (students, admins, fees, registered units, documents)

Revision ID: 0001_init_portal
Revises: 
Create Date: 2026-10-17 09:12:40
"""
from alembic import op
import sqlalchemy as sa

revision = '0001_init_portal'
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    # students
    op.create_table('students',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('registration_number', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('course', sa.String(length=200), nullable=False),
        sa.Column('level_of_study', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=200), nullable=True),
        sa.Column('national_id', sa.String(length=64), nullable=True),
        sa.Column('birth_certificate', sa.String(length=64), nullable=True),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('password', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=24), nullable=False, server_default='active'),
        sa.Column('academic_leave_reason', sa.Text(), nullable=True),
        sa.Column('photo_url', sa.Text(), nullable=True),
    )
    op.create_index('ix_students_registration_number', 'students', ['registration_number'], unique=True)
    op.create_index('ix_students_email', 'students', ['email'])

    # admins
    op.create_table('admins',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('username', sa.String(length=120), nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=False),
        sa.UniqueConstraint('username', name='uq_admins_username')
    )

    # fees
    op.create_table('fees',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('student_id', sa.String(length=36),
                  sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('semester_fee', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total_paid', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('fee_balance', sa.Numeric(12, 2), nullable=False, server_default='0'),
    )
    op.create_index('ix_fees_student_id', 'fees', ['student_id'])

    # registered units
    op.create_table('registered_units',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('student_id', sa.String(length=36),
                  sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('unit_code', sa.String(length=32), nullable=False),
        sa.Column('unit_name', sa.String(length=200), nullable=False),
        sa.Column('status', sa.String(length=24), nullable=False, server_default='registered'),
        sa.UniqueConstraint('student_id', 'unit_code', name='uq_student_unit')
    )
    op.create_index('ix_registered_units_student_id', 'registered_units', ['student_id'])

    # documents (append-only; one row per upload)
    op.create_table('documents',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('student_id', sa.String(length=36),
                  sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('artifact_type', sa.String(length=32), nullable=False),
        sa.Column('storage_key', sa.String(length=400), nullable=True),
        sa.Column('file_url', sa.Text(), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('content_type', sa.String(length=120), nullable=True),
        sa.UniqueConstraint('storage_key', name='uq_documents_storage_key')
    )
    op.create_index('ix_documents_student_type_created', 'documents',
                    ['student_id', 'artifact_type', 'created_at'])

def downgrade() -> None:
    op.drop_index('ix_documents_student_type_created', table_name='documents')
    op.drop_table('documents')
    op.drop_index('ix_registered_units_student_id', table_name='registered_units')
    op.drop_table('registered_units')
    op.drop_index('ix_fees_student_id', table_name='fees')
    op.drop_table('fees')
    op.drop_table('admins')
    op.drop_index('ix_students_email', table_name='students')
    op.drop_index('ix_students_registration_number', table_name='students')
    op.drop_table('students')
