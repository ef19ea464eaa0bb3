"""create reports and report_sections tables

Revision ID: 4e1c2a9b7d10
Revises:
Create Date: 2026-10-19 09:12:44.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '4e1c2a9b7d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

report_status = postgresql.ENUM(
    'processing', 'fetching_apollo', 'completed', 'failed',
    name='report_status',
    create_type=False,
)


def upgrade() -> None:
    report_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'reports',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('status', report_status, nullable=False),
        sa.Column('report_owner_name', sa.String(), nullable=True),
        sa.Column('meeting_date', sa.String(), nullable=True),
        sa.Column('meeting_time', sa.String(), nullable=True),
        sa.Column('meeting_timezone', sa.String(), nullable=True),
        sa.Column('meeting_platform', sa.String(), nullable=True),
        sa.Column('meeting_link', sa.String(), nullable=True),
        sa.Column('meeting_location', sa.String(), nullable=True),
        sa.Column('meeting_name', sa.String(), nullable=True),
        sa.Column('meeting_objective', sa.String(), nullable=True),
        sa.Column('problem_pitch', sa.Text(), nullable=True),
        sa.Column('enrichment_data', postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column('company_news', postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column('narrative_report', sa.Text(), nullable=True),
        sa.Column('lead_data', postgresql.JSON(astext_type=sa.Text()), nullable=False),
        sa.Column('error', sa.String(), nullable=True),
        sa.Column('claim_token', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_reports_email'), 'reports', ['email'], unique=False)

    op.create_table(
        'report_sections',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('report_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('section', sa.String(), nullable=False),
        sa.Column('content', postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column('error', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['report_id'], ['reports.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('report_id', 'section', name='uq_report_sections_report_section')
    )
    op.create_index(op.f('ix_report_sections_report_id'), 'report_sections', ['report_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_report_sections_report_id'), table_name='report_sections')
    op.drop_table('report_sections')
    op.drop_index(op.f('ix_reports_email'), table_name='reports')
    op.drop_table('reports')
    report_status.drop(op.get_bind(), checkfirst=True)
