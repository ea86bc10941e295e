"""rfq_questions

Revision ID: 8b2e4d61c5a3
Revises: 3f1a9c2d7e10
Create Date: 2026-10-20 08:41:17.502933+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '8b2e4d61c5a3'
down_revision: Union[str, None] = '3f1a9c2d7e10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('rfq_questions',
    sa.Column('pk', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('rfq_id', sa.String(length=36), nullable=False),
    sa.Column('supplier_id', sa.String(length=36), nullable=False),
    sa.Column('question', sa.Text(), nullable=False),
    sa.Column('status', sa.String(length=30), nullable=False),
    sa.Column('admin_approved_at', sa.DateTime(), nullable=True),
    sa.Column('rejection_reason', sa.Text(), nullable=True),
    sa.Column('buyer_answer', sa.Text(), nullable=True),
    sa.Column('buyer_answered_at', sa.DateTime(), nullable=True),
    sa.Column('published_at', sa.DateTime(), nullable=True),
    sa.Column('version_id', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint("status IN ('pending_admin','approved_by_admin','sent_to_buyer','answered_by_buyer','published','rejected')", name='chk_question_status'),
    sa.ForeignKeyConstraint(['rfq_id'], ['rfqs.id'], ),
    sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ),
    sa.PrimaryKeyConstraint('pk'),
    sa.UniqueConstraint('id')
    )
    op.create_index('idx_questions_rfq', 'rfq_questions', ['rfq_id'], unique=False)
    op.create_index('idx_questions_supplier', 'rfq_questions', ['supplier_id'], unique=False)
    op.create_index('idx_questions_status', 'rfq_questions', ['status'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_questions_status', table_name='rfq_questions')
    op.drop_index('idx_questions_supplier', table_name='rfq_questions')
    op.drop_index('idx_questions_rfq', table_name='rfq_questions')
    op.drop_table('rfq_questions')
