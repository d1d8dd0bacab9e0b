"""create_idempotency_records

Revision ID: 20261019_1200_idempotency
Revises: None
Create Date: 2026-10-19 12:00:00

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20261019_1200_idempotency'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """
    Create idempotency_records keyed by (use_case, key).
    """
    op.create_table(
        'idempotency_records',
        sa.Column('use_case', sa.String(length=255), nullable=False),
        sa.Column('key', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('result_data', sa.JSON(), nullable=True),
        sa.Column('expiration', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('use_case', 'key')
    )
    op.create_index('ix_idempotency_records_expiration', 'idempotency_records', ['expiration'])


def downgrade() -> None:
    """
    Drop idempotency_records.
    """
    op.drop_index('ix_idempotency_records_expiration', table_name='idempotency_records')
    op.drop_table('idempotency_records')
