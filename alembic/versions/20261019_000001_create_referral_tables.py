"""Create referral period, link, code, points, bonus, trade and archive tables

Revision ID: 20261019_000001
Revises: 
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '20261019_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')
POINTS_TYPE = sa.DECIMAL(18, 8)


def upgrade() -> None:
    # Periods
    op.create_table(
        'referral_periods',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('strategy', sa.String(32), nullable=False),
        sa.Column('strategy_config', JSON_TYPE, nullable=False),
        sa.Column('reset_mode', sa.String(32), nullable=False, server_default='manual'),
        sa.Column('reset_config', JSON_TYPE, nullable=False),
        sa.Column('referee_benefits', JSON_TYPE, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft',
                  comment='draft, active, completed, cancelled'),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('ends_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id', name='pk_referral_periods')
    )
    op.create_index('ix_referral_periods_status', 'referral_periods', ['status'])
    # At most one active period
    op.create_index(
        'uq_referral_periods_single_active',
        'referral_periods',
        ['status'],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )

    # Codes (shared across periods)
    op.create_table(
        'referral_codes',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('address', sa.String(42), nullable=False),
        sa.Column('code', sa.String(20), nullable=False),
        sa.Column('referral_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id', name='pk_referral_codes')
    )
    op.create_index('ix_referral_codes_address', 'referral_codes', ['address'], unique=True)
    op.create_index('ix_referral_codes_code', 'referral_codes', ['code'], unique=True)

    # Links
    op.create_table(
        'referral_links',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('period_id', sa.Integer(), nullable=False),
        sa.Column('referrer_address', sa.String(42), nullable=False),
        sa.Column('referred_address', sa.String(42), nullable=False),
        sa.Column('referral_code', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('linked_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('first_bet_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_bet_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('lifetime_volume', POINTS_TYPE, nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['period_id'], ['referral_periods.id'], ondelete='CASCADE',
                                name='fk_referral_links_period_id_referral_periods'),
        sa.PrimaryKeyConstraint('id', name='pk_referral_links'),
        sa.UniqueConstraint('period_id', 'referred_address', name='uq_referral_links_period_referred')
    )
    op.create_index('ix_referral_links_period_id', 'referral_links', ['period_id'])
    op.create_index('idx_referral_links_period_referrer', 'referral_links', ['period_id', 'referrer_address'])

    # Points ledger
    op.create_table(
        'referral_points',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('period_id', sa.Integer(), nullable=False),
        sa.Column('address', sa.String(42), nullable=False),
        sa.Column('trading_points', POINTS_TYPE, nullable=False, server_default='0'),
        sa.Column('bonus_points', POINTS_TYPE, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('trading_points >= 0', name='ck_referral_points_trading_points_non_negative'),
        sa.CheckConstraint('bonus_points >= 0', name='ck_referral_points_bonus_points_non_negative'),
        sa.ForeignKeyConstraint(['period_id'], ['referral_periods.id'], ondelete='CASCADE',
                                name='fk_referral_points_period_id_referral_periods'),
        sa.PrimaryKeyConstraint('id', name='pk_referral_points'),
        sa.UniqueConstraint('period_id', 'address', name='uq_referral_points_period_address')
    )
    op.create_index('ix_referral_points_period_id', 'referral_points', ['period_id'])

    # Bonus log
    op.create_table(
        'referral_bonuses',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('period_id', sa.Integer(), nullable=False),
        sa.Column('recipient_address', sa.String(42), nullable=False),
        sa.Column('source_address', sa.String(42), nullable=True),
        sa.Column('bonus_type', sa.String(32), nullable=False),
        sa.Column('points', POINTS_TYPE, nullable=False),
        sa.Column('reason', sa.Text(), nullable=False, server_default=''),
        sa.Column('milestone_key', sa.String(200), nullable=True),
        sa.Column('awarded_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['period_id'], ['referral_periods.id'], ondelete='CASCADE',
                                name='fk_referral_bonuses_period_id_referral_periods'),
        sa.PrimaryKeyConstraint('id', name='pk_referral_bonuses'),
        sa.UniqueConstraint('period_id', 'milestone_key', name='uq_referral_bonuses_period_milestone')
    )
    op.create_index('ix_referral_bonuses_period_id', 'referral_bonuses', ['period_id'])
    op.create_index('idx_referral_bonuses_period_recipient', 'referral_bonuses', ['period_id', 'recipient_address'])

    # Trades
    op.create_table(
        'referral_trades',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('period_id', sa.Integer(), nullable=False),
        sa.Column('address', sa.String(42), nullable=False),
        sa.Column('volume', POINTS_TYPE, nullable=False),
        sa.Column('fee', POINTS_TYPE, nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['period_id'], ['referral_periods.id'], ondelete='CASCADE',
                                name='fk_referral_trades_period_id_referral_periods'),
        sa.PrimaryKeyConstraint('id', name='pk_referral_trades')
    )
    op.create_index('idx_referral_trades_period_address_time', 'referral_trades',
                    ['period_id', 'address', 'occurred_at'])

    # Archives (write-once)
    op.create_table(
        'leaderboard_archives',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('period_id', sa.Integer(), nullable=False),
        sa.Column('period_start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('period_end', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reset_mode', sa.String(32), nullable=False),
        sa.Column('rankings', JSON_TYPE, nullable=False),
        sa.Column('stats', JSON_TYPE, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['period_id'], ['referral_periods.id'], ondelete='RESTRICT',
                                name='fk_leaderboard_archives_period_id_referral_periods'),
        sa.PrimaryKeyConstraint('id', name='pk_leaderboard_archives'),
        sa.UniqueConstraint('period_id', name='uq_leaderboard_archives_period_id')
    )


def downgrade() -> None:
    op.drop_table('leaderboard_archives')

    op.drop_index('idx_referral_trades_period_address_time', 'referral_trades')
    op.drop_table('referral_trades')

    op.drop_index('idx_referral_bonuses_period_recipient', 'referral_bonuses')
    op.drop_index('ix_referral_bonuses_period_id', 'referral_bonuses')
    op.drop_table('referral_bonuses')

    op.drop_index('ix_referral_points_period_id', 'referral_points')
    op.drop_table('referral_points')

    op.drop_index('idx_referral_links_period_referrer', 'referral_links')
    op.drop_index('ix_referral_links_period_id', 'referral_links')
    op.drop_table('referral_links')

    op.drop_index('ix_referral_codes_code', 'referral_codes')
    op.drop_index('ix_referral_codes_address', 'referral_codes')
    op.drop_table('referral_codes')

    op.drop_index('uq_referral_periods_single_active', 'referral_periods')
    op.drop_index('ix_referral_periods_status', 'referral_periods')
    op.drop_table('referral_periods')
