"""create_shop_events

Revision ID: 2026_10_17_101500
Revises:
Create Date: 2026-10-17 10:15:04.118260

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '2026_10_17_101500'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'shop_events',
        sa.Column('transaction_hash', sa.String(66), nullable=False),
        sa.Column('log_index', sa.Integer(), nullable=False),
        sa.Column('block_number', sa.BigInteger(), nullable=False),
        sa.Column('kind', sa.String(4), nullable=False),
        sa.Column('user', sa.String(42), nullable=False),
        sa.Column('asset', sa.String(42), nullable=False),
        sa.Column('asset_symbol', sa.Text(), nullable=False),
        sa.Column('amount_in', sa.Numeric(78, 0), nullable=False),
        sa.Column('amount_out', sa.Numeric(78, 0), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('transaction_hash', 'log_index'),
        sa.CheckConstraint("kind IN ('BUY', 'SELL')", name='ck_shop_events_kind'),
    )
    op.create_index('ix_shop_events_block_log', 'shop_events', ['block_number', 'log_index'])
    op.create_index('ix_shop_events_user_block', 'shop_events', ['user', 'block_number'])
    op.create_index('ix_shop_events_asset_kind', 'shop_events', ['asset', 'kind'])

    op.create_table(
        'sync_state',
        sa.Column('id', sa.Integer(), autoincrement=False, nullable=False),
        sa.Column('last_synced_block', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )


def downgrade() -> None:
    op.drop_table('sync_state')
    op.drop_index('ix_shop_events_asset_kind', table_name='shop_events')
    op.drop_index('ix_shop_events_user_block', table_name='shop_events')
    op.drop_index('ix_shop_events_block_log', table_name='shop_events')
    op.drop_table('shop_events')
