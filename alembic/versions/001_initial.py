# alembic/versions/001_initial.py

"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Create decision_record table
    op.create_table('decision_record',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('decision_type', sa.String(length=16), nullable=False),
        sa.Column('confidence', sa.Float(), nullable=False),
        sa.Column('executed', sa.Boolean(), nullable=False),
        sa.Column('has_error', sa.Boolean(), nullable=False),
        sa.Column('protocols', sa.JSON(), nullable=False),
        sa.Column('assets', sa.JSON(), nullable=False),
        sa.Column('risk_change', sa.String(length=16), nullable=False),
        sa.Column('apy_impact', sa.Float(), nullable=False),
        sa.Column('reasoning_preview', sa.String(length=280), nullable=False),
        sa.Column('full_reasoning', sa.Text(), nullable=True),
        sa.Column('actions', sa.JSON(), nullable=False),
        sa.Column('tx_ids', sa.JSON(), nullable=False),
        sa.Column('risk_analysis', sa.JSON(), nullable=True),
        sa.Column('portfolio_snapshot', sa.JSON(), nullable=True),
        sa.Column('strategy_config', sa.JSON(), nullable=True),
        sa.Column('market_conditions', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_decision_record_timestamp', 'decision_record', ['timestamp'])
    op.create_index('ix_decision_record_decision_type', 'decision_record', ['decision_type'])
    op.create_index('ix_decision_record_timestamp_id', 'decision_record', ['timestamp', 'id'])

    # Create commitment_entry table
    op.create_table('commitment_entry',
        sa.Column('hash', sa.String(length=256), nullable=False),
        sa.Column('trace', sa.JSON(), nullable=False),
        sa.Column('commitment', sa.Text(), nullable=True),
        sa.Column('recorded_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('hash')
    )
    op.create_index('ix_commitment_entry_recorded_at', 'commitment_entry', ['recorded_at'])


def downgrade():
    op.drop_index('ix_commitment_entry_recorded_at', table_name='commitment_entry')
    op.drop_table('commitment_entry')
    op.drop_index('ix_decision_record_timestamp_id', table_name='decision_record')
    op.drop_index('ix_decision_record_decision_type', table_name='decision_record')
    op.drop_index('ix_decision_record_timestamp', table_name='decision_record')
    op.drop_table('decision_record')
