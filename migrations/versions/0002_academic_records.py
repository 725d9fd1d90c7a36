"""Unit catalog, finance statements, semester results and timetables

Revision ID: 0002_academic_records
Revises: 0001_init_portal
Create Date: 2026-10-17 15:40:02
"""
from alembic import op
import sqlalchemy as sa

revision = '0002_academic_records'
down_revision = '0001_init_portal'
branch_labels = None
depends_on = None


def upgrade() -> None:
    # unit catalog
    op.create_table('units',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('unit_code', sa.String(length=32), nullable=False, unique=True),
        sa.Column('unit_name', sa.String(length=200), nullable=False),
    )

    # finance statements
    op.create_table('finance',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('student_id', sa.String(length=36),
                  sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('statement', sa.Text(), nullable=True),
        sa.Column('statement_url', sa.Text(), nullable=True),
        sa.Column('receipt_url', sa.Text(), nullable=True),
    )
    op.create_index('ix_finance_student_id', 'finance', ['student_id'])

    # results
    op.create_table('results',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('student_id', sa.String(length=36),
                  sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('semester', sa.Integer(), nullable=False),
        sa.Column('result_data', sa.JSON(), nullable=False),
    )
    op.create_index('ix_results_student_id', 'results', ['student_id'])

    # timetables (student_id NULL = course-wide)
    op.create_table('timetables',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('student_id', sa.String(length=36),
                  sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=True),
        sa.Column('course', sa.String(length=200), nullable=True),
        sa.Column('semester', sa.Integer(), nullable=False),
        sa.Column('timetable_data', sa.JSON(), nullable=False),
    )
    op.create_index('ix_timetables_student_id', 'timetables', ['student_id'])
    op.create_index('ix_timetables_course_semester', 'timetables', ['course', 'semester', 'created_at'])


def downgrade() -> None:
    op.drop_index('ix_timetables_course_semester', table_name='timetables')
    op.drop_index('ix_timetables_student_id', table_name='timetables')
    op.drop_table('timetables')
    op.drop_index('ix_results_student_id', table_name='results')
    op.drop_table('results')
    op.drop_index('ix_finance_student_id', table_name='finance')
    op.drop_table('finance')
    op.drop_table('units')
